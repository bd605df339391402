"""Dice rolls and D&D 5E ability modifiers."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass

# Scan order for matching a roll reason to an ability; first match wins.
ABILITIES: tuple[str, ...] = (
    "strength",
    "dexterity",
    "constitution",
    "intelligence",
    "wisdom",
    "charisma",
)

MAX_SIDES = 1000

_DICE_RE = re.compile(r"^\s*[dD]?(\d+)\s*$")

_rng = random.SystemRandom()


class DiceError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class DiceRoll:
    sides: int
    rolls: tuple[int, ...]
    raw: int

    @property
    def notation(self) -> str:
        return f"d{self.sides}"


def ability_modifier(score: int) -> int:
    """Standard 5E modifier: floor((score - 10) / 2)."""
    return (score - 10) // 2


def parse_dice(dice_type: str) -> int:
    """Parse `d20`, `D6` or a bare `20` into a side count."""
    m = _DICE_RE.match(dice_type or "")
    if not m:
        raise DiceError(f"Invalid dice type: {dice_type!r}")
    sides = int(m.group(1))
    if sides < 1 or sides > MAX_SIDES:
        raise DiceError(f"Dice must have between 1 and {MAX_SIDES} sides")
    return sides


def roll_die(sides: int, *, rng: random.Random | None = None) -> int:
    if sides < 1:
        raise DiceError("Dice must have at least 1 side")
    return (rng or _rng).randint(1, sides)


def roll(sides: int, *, advantage: bool = False, disadvantage: bool = False, rng: random.Random | None = None) -> DiceRoll:
    """Roll one die, or two and keep the higher/lower with advantage/disadvantage.

    Advantage and disadvantage together cancel out into a single roll.
    """
    if advantage and not disadvantage:
        rolls = (roll_die(sides, rng=rng), roll_die(sides, rng=rng))
        return DiceRoll(sides=sides, rolls=rolls, raw=max(rolls))
    if disadvantage and not advantage:
        rolls = (roll_die(sides, rng=rng), roll_die(sides, rng=rng))
        return DiceRoll(sides=sides, rolls=rolls, raw=min(rolls))
    value = roll_die(sides, rng=rng)
    return DiceRoll(sides=sides, rolls=(value,), raw=value)


def match_ability(reason: str | None) -> str | None:
    """Return the first ability name contained in `reason` (case-insensitive)."""
    if not reason:
        return None
    text = reason.casefold()
    for ability in ABILITIES:
        if ability in text:
            return ability
    return None


def format_roll(*, sender: str, notation: str, raw: int, ability: str | None, modifier: int, total: int, reason: str | None) -> str:
    """Render a roll as the log line the narrator sees as the player's input."""
    if ability:
        sign = "+" if modifier >= 0 else "-"
        body = f"{sender} rolled a {notation}: {raw} {sign} {abs(modifier)} ({ability.capitalize()}) = {total}"
    else:
        body = f"{sender} rolled a {notation}: {total}"
    if reason and reason.strip():
        body += f" for {reason.strip()}"
    return body
