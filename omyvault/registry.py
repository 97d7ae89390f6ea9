"""
PositionRegistry: the set of positions a vault currently holds.

Dense id list plus an id -> slot index, so removal is a swap-with-last and
truncate. Removal does not preserve order: when removing everything while
iterating, walk from the tail toward the head.
"""

from .errors import DuplicatePosition, InvalidTickParams, UnknownPosition
from .interfaces import Checkpointable


class PositionRegistry(Checkpointable):
    def __init__(self):
        self._ids: list[int] = []
        self._slot: dict[int, int] = {}
        self._ticks: dict[int, tuple[int, int]] = {}

    def add(self, token_id: int, tick_lower: int, tick_upper: int) -> None:
        if token_id in self._slot:
            raise DuplicatePosition(f"position {token_id} already managed")
        if tick_lower >= tick_upper:
            raise InvalidTickParams(f"position {token_id} has empty range")
        self._slot[token_id] = len(self._ids)
        self._ids.append(token_id)
        self._ticks[token_id] = (tick_lower, tick_upper)

    def remove(self, token_id: int) -> None:
        slot = self._slot.pop(token_id, None)
        if slot is None:
            raise UnknownPosition(f"position {token_id} is not managed")
        del self._ticks[token_id]

        last = self._ids.pop()
        if last != token_id:
            # the freed slot takes the former last id
            self._ids[slot] = last
            self._slot[last] = slot

    def __len__(self) -> int:
        return len(self._ids)

    def length(self) -> int:
        return len(self._ids)

    def contains(self, token_id: int) -> bool:
        return token_id in self._slot

    __contains__ = contains

    def ticks_of(self, token_id: int) -> tuple[int, int]:
        try:
            return self._ticks[token_id]
        except KeyError:
            raise UnknownPosition(f"position {token_id} is not managed") from None

    def id_at(self, index: int) -> int:
        if not 0 <= index < len(self._ids):
            raise UnknownPosition(f"no position at index {index}")
        return self._ids[index]

    def ids(self) -> list[int]:
        return list(self._ids)

    def snapshot(self):
        return (list(self._ids), dict(self._slot), dict(self._ticks))

    def restore(self, state) -> None:
        ids, slot, ticks = state
        self._ids = list(ids)
        self._slot = dict(slot)
        self._ticks = dict(ticks)
