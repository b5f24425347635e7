import pytest

from budget_planner.errors import InvalidMoveError, ValidationError
from budget_planner.ordering import changed_orders, move_item

from conftest import make_item


def _siblings(n):
    return [make_item("category", f"Cat {i}", f"c{i}", order=i) for i in range(n)]


def test_move_last_to_first():
    siblings = _siblings(4)
    result = move_item(siblings, 3, 0)

    assert [i.order for i in result] == [0, 1, 2, 3]
    assert [i.id for i in result] == ["c3", "c0", "c1", "c2"]


def test_move_first_to_middle():
    result = move_item(_siblings(4), 0, 2)

    assert [i.id for i in result] == ["c1", "c2", "c0", "c3"]
    assert [i.order for i in result] == [0, 1, 2, 3]


def test_orders_stay_contiguous_for_every_move():
    siblings = _siblings(5)
    for src in range(5):
        for dst in range(5):
            result = move_item(siblings, src, dst)
            assert sorted(i.order for i in result) == list(range(5))
            assert [i.order for i in result] == list(range(5))
            assert {i.id for i in result} == {i.id for i in siblings}
            assert result[dst].id == siblings[src].id


def test_same_index_is_a_no_op():
    siblings = _siblings(3)
    result = move_item(siblings, 1, 1)

    assert result == siblings
    assert all(a is b for a, b in zip(result, siblings))


@pytest.mark.parametrize("src,dst", [(-1, 0), (0, 3), (3, 0), (0, -1)])
def test_out_of_range_indices_are_rejected(src, dst):
    siblings = _siblings(3)
    with pytest.raises(InvalidMoveError):
        move_item(siblings, src, dst)
    assert [i.order for i in siblings] == [0, 1, 2]


def test_invalid_move_is_a_validation_error():
    with pytest.raises(ValidationError):
        move_item([], 0, 0)


def test_changed_orders_lists_only_moved_items():
    siblings = _siblings(4)
    result = move_item(siblings, 1, 2)

    assert changed_orders(siblings, result) == [("c2", 1), ("c1", 2)]
