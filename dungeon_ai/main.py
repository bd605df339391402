import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from dungeon_ai.api.account_routes import router as account_router
from dungeon_ai.api.routes import router
from dungeon_ai.assets.startup import init_assets_for_app

app = FastAPI(title="dungeon-ai", version="0.1.0")
app.include_router(account_router)
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    init_assets_for_app()
    logger.info("assets loaded")


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies are client errors, reported as 400 rather than FastAPI's default 422.
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    out: list[dict[str, object]] = []
    for err in exc.errors():
        out.append({"loc": list(err.get("loc", ())), "msg": str(err.get("msg", "")), "type": str(err.get("type", ""))})
    return out


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "dungeon-ai", "version": "0.1.0"}
