"""Core narrative primitives (context stacking and memory merge).

Kept free of FastAPI and Redis concerns so the turn processor, scripts and tests can reuse them.
"""
