"""
Tick-range and position-count policy.

Only mint and increase are held to the allowed range. Decrease, collect and
burn stay available whatever the range has since moved to, so they are never
checked here.
"""

from .errors import InvalidTickParams, PositionLimitExceeded, PositionOutOfBounds
from .pool import MAX_INT24, MIN_INT24


def _require_int24(tick: int) -> None:
    if not MIN_INT24 <= tick <= MAX_INT24:
        raise InvalidTickParams(f"tick {tick} outside int24")


def validate_tick_order(lower: int, upper: int) -> None:
    _require_int24(lower)
    _require_int24(upper)
    if lower >= upper:
        raise InvalidTickParams(f"tick lower {lower} must be below upper {upper}")


def validate_mint_or_increase_ticks(
    lower: int,
    upper: int,
    allowed_lower: int,
    allowed_upper: int,
    tick_spacing: int,
) -> None:
    validate_tick_order(lower, upper)
    if lower < allowed_lower or upper > allowed_upper:
        raise InvalidTickParams(
            f"range [{lower}, {upper}] outside allowed [{allowed_lower}, {allowed_upper}]"
        )
    if tick_spacing <= 0:
        raise InvalidTickParams(f"tick spacing {tick_spacing} must be positive")
    if lower % tick_spacing != 0 or upper % tick_spacing != 0:
        raise InvalidTickParams(
            f"range [{lower}, {upper}] not aligned to spacing {tick_spacing}"
        )


def validate_existing_position_in_bounds(
    position_lower: int,
    position_upper: int,
    allowed_lower: int,
    allowed_upper: int,
) -> None:
    if position_lower < allowed_lower or position_upper > allowed_upper:
        raise PositionOutOfBounds(
            f"position [{position_lower}, {position_upper}] outside allowed "
            f"[{allowed_lower}, {allowed_upper}]"
        )


def enforce_count_cap_for_mint(current_count: int, max_positions_k: int) -> None:
    """0 means unlimited. Never applied to positions already held."""
    if max_positions_k == 0:
        return
    if current_count >= max_positions_k:
        raise PositionLimitExceeded(
            f"{current_count} positions held, cap is {max_positions_k}"
        )
