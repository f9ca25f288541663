"""Cosmetic variety for detail text.

Only ever touches ``detail``. Pass a seeded ``random.Random`` to get
repeatable output.
"""

import random
from typing import Optional

from ..models import ClassificationResult
from ..states import SemanticState

GLITCH_CHARS = "░▒▓█"
GLITCH_RATE = 0.12


def glitch_text(text: str, rng: Optional[random.Random] = None, rate: float = GLITCH_RATE) -> str:
    """Replace a few characters of ``text`` with block glyphs."""
    rng = rng or random.Random()
    out = []
    for ch in text:
        if ch != " " and rng.random() < rate:
            out.append(rng.choice(GLITCH_CHARS))
        else:
            out.append(ch)
    return "".join(out)


def add_flavor(result: ClassificationResult, rng: Optional[random.Random] = None) -> ClassificationResult:
    """Return a copy with glitched detail text for error outcomes."""
    if result.state not in (SemanticState.ERROR, SemanticState.RATELIMITED) or not result.detail:
        return result
    return ClassificationResult(
        state=result.state,
        detail=glitch_text(result.detail, rng),
        diff_info=result.diff_info,
    )
