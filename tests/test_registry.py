import pytest

from omyvault.errors import DuplicatePosition, InvalidTickParams, UnknownPosition
from omyvault.registry import PositionRegistry


@pytest.fixture
def registry():
    registry = PositionRegistry()
    for token_id in (1, 2, 3, 4):
        registry.add(token_id, -60 * token_id, 60 * token_id)
    return registry


def test_add_records_membership_and_ticks(registry):
    assert registry.length() == 4
    assert registry.contains(3)
    assert 3 in registry
    assert registry.ticks_of(3) == (-180, 180)
    assert registry.ids() == [1, 2, 3, 4]


def test_add_rejects_duplicate(registry):
    with pytest.raises(DuplicatePosition):
        registry.add(2, -60, 60)
    assert registry.length() == 4


def test_add_rejects_empty_range():
    registry = PositionRegistry()
    with pytest.raises(InvalidTickParams):
        registry.add(1, 60, 60)
    assert registry.length() == 0


def test_remove_swaps_last_into_slot(registry):
    registry.remove(2)
    assert registry.ids() == [1, 4, 3]
    assert not registry.contains(2)
    assert registry.id_at(1) == 4

    # removing the tail needs no swap
    registry.remove(3)
    assert registry.ids() == [1, 4]

    # slot index stays in sync after the swap
    registry.remove(4)
    assert registry.ids() == [1]


def test_remove_unknown(registry):
    with pytest.raises(UnknownPosition):
        registry.remove(99)
    assert registry.length() == 4


def test_remove_clears_ticks(registry):
    registry.remove(1)
    with pytest.raises(UnknownPosition):
        registry.ticks_of(1)


def test_id_at_out_of_range(registry):
    with pytest.raises(UnknownPosition):
        registry.id_at(4)
    with pytest.raises(UnknownPosition):
        registry.id_at(-1)


def test_remove_all_from_tail(registry):
    removed = []
    for index in reversed(range(registry.length())):
        token_id = registry.id_at(index)
        registry.remove(token_id)
        removed.append(token_id)

    assert registry.length() == 0
    assert sorted(removed) == [1, 2, 3, 4]


def test_membership_matches_list_after_churn(registry):
    registry.remove(1)
    registry.add(5, -60, 60)
    registry.remove(4)
    registry.add(1, -120, 120)

    ids = registry.ids()
    assert len(ids) == len(set(ids)) == registry.length()
    for token_id in range(1, 7):
        assert registry.contains(token_id) == (token_id in ids)


def test_snapshot_restore(registry):
    state = registry.snapshot()
    registry.remove(1)
    registry.add(9, -60, 60)

    registry.restore(state)
    assert registry.ids() == [1, 2, 3, 4]
    assert not registry.contains(9)
    assert registry.ticks_of(1) == (-60, 60)
