"""
Over/ball arithmetic.

Cricket writes overs as ``overs.balls`` where the part after the dot is a
ball count (0-5), not a decimal fraction: 22 balls is ``3.4``, never
``3.67``.  Keep every conversion in this module so nothing downstream does
naive decimal maths on an overs value.
"""

from typing import Union

BALLS_PER_OVER = 6


def to_overs_notation(balls: int) -> str:
    """Return ``"3.4"`` for 22 balls and ``"3"`` for 18."""
    if balls < 0:
        raise ValueError(f"balls must be non-negative, got {balls}")
    completed, remainder = divmod(balls, BALLS_PER_OVER)
    if remainder:
        return f"{completed}.{remainder}"
    return str(completed)


def overs_value(balls: int) -> float:
    """Numeric form of the notation (22 balls -> 3.4) for JSON/display."""
    if balls < 0:
        raise ValueError(f"balls must be non-negative, got {balls}")
    completed, remainder = divmod(balls, BALLS_PER_OVER)
    return round(completed + remainder / 10, 1)


def completed_overs(balls: int) -> int:
    return balls // BALLS_PER_OVER


def to_balls(overs: Union[str, int, float]) -> int:
    """Inverse of :func:`to_overs_notation`.

    Accepts ``"3.4"``, ``3.4`` or ``3``.  The fractional part must be a
    ball count between 0 and 5.
    """
    if isinstance(overs, bool):
        raise ValueError("overs must be a number or an overs string")

    if isinstance(overs, int):
        whole, part = overs, 0
    elif isinstance(overs, float):
        whole = int(overs)
        part = int(round((overs - whole) * 10))
    else:
        text = str(overs).strip()
        if not text:
            raise ValueError("overs string is empty")
        if "." in text:
            whole_txt, part_txt = text.split(".", 1)
            if len(part_txt) != 1:
                raise ValueError(f"invalid overs notation: {overs!r}")
        else:
            whole_txt, part_txt = text, "0"
        try:
            whole, part = int(whole_txt), int(part_txt)
        except ValueError:
            raise ValueError(f"invalid overs notation: {overs!r}") from None

    if whole < 0 or part < 0:
        raise ValueError(f"overs must be non-negative, got {overs!r}")
    if part >= BALLS_PER_OVER:
        raise ValueError(f"ball part of {overs!r} must be between 0 and 5")
    return whole * BALLS_PER_OVER + part


def per_over_rate(runs: int, balls: int) -> float:
    """Runs per six legal balls; 0.0 before the first legal ball."""
    if balls <= 0:
        return 0.0
    return round(runs / (balls / BALLS_PER_OVER), 2)
