import pytest

from taskboard import ordering
from taskboard.errors import InvalidPermutation
from taskboard.ordering import Assignment, Sibling


def positions(assignments):
    return {a.child_id: a.position for a in assignments}


def test_append_places_child_last():
    assert ordering.append(["a", "b"], "c") == [Assignment("a", 0), Assignment("b", 1), Assignment("c", 2)]
    assert ordering.append([], "a") == [Assignment("a", 0)]


def test_append_rejects_existing_member():
    with pytest.raises(InvalidPermutation):
        ordering.append(["a"], "a")


def test_insert_at_shifts_later_siblings():
    assert positions(ordering.insert_at(["a", "b", "c"], "x", 1)) == {"a": 0, "x": 1, "b": 2, "c": 3}


@pytest.mark.parametrize("index, expected", [(-5, ["x", "a", "b"]), (99, ["a", "b", "x"]), (2, ["a", "b", "x"])])
def test_insert_at_clamps_index(index, expected):
    assert [a.child_id for a in ordering.insert_at(["a", "b"], "x", index)] == expected


def test_reorder_scenario():
    assert positions(ordering.reorder(["A", "B", "C"], ["C", "A", "B"])) == {"A": 1, "B": 2, "C": 0}


def test_reorder_is_idempotent():
    first = ordering.reorder(["a", "b", "c"], ["b", "c", "a"])
    current = [a.child_id for a in sorted(first, key=lambda a: a.position)]
    assert ordering.reorder(current, ["b", "c", "a"]) == first


@pytest.mark.parametrize(
    "supplied, missing, extra, duplicates",
    [
        (["a", "b"], ["c"], [], []),
        (["a", "b", "c", "z"], [], ["z"], []),
        (["a", "b", "b", "c"], [], [], ["b"]),
        (["a", "a", "z"], ["b", "c"], ["z"], ["a"]),
    ],
)
def test_reorder_rejects_invalid_permutations(supplied, missing, extra, duplicates):
    with pytest.raises(InvalidPermutation) as info:
        ordering.reorder(["a", "b", "c"], supplied)
    assert info.value.missing == missing
    assert info.value.extra == extra
    assert info.value.duplicates == duplicates
    assert info.value.details == {"missing": missing, "extra": extra, "duplicates": duplicates}


def test_move_across_parent_scenario():
    plan = ordering.move_across_parent(["A", "B", "C"], ["X", "Y"], ["A", "X", "Y"], "A")
    assert plan.moved_id == "A"
    assert plan.dest == [Assignment("A", 0), Assignment("X", 1), Assignment("Y", 2)]
    assert plan.source == [Assignment("B", 0), Assignment("C", 1)]


def test_move_across_parent_preserves_totals():
    source, dest = ["a", "b", "c"], ["x"]
    plan = ordering.move_across_parent(source, dest, ["x", "b"], "b")
    assert len(plan.source) + len(plan.dest) == len(source) + len(dest)
    ids = [a.child_id for a in plan.source + plan.dest]
    assert ids.count("b") == 1 and "b" in positions(plan.dest)


def test_move_across_parent_validates_destination_order():
    with pytest.raises(InvalidPermutation) as info:
        ordering.move_across_parent(["a", "b"], ["x", "y"], ["a", "x"], "a")
    assert info.value.missing == ["y"]

    with pytest.raises(InvalidPermutation) as info:
        ordering.move_across_parent(["a", "b"], ["x"], ["a", "x", "a"], "a")
    assert info.value.duplicates == ["a"]


def test_move_of_unknown_child_is_rejected():
    with pytest.raises(InvalidPermutation):
        ordering.move_across_parent(["a"], ["x"], ["q", "x"], "q")


def test_move_into_current_parent_is_a_reorder():
    plan = ordering.move_across_parent([], ["x", "y"], ["y", "x"], "y")
    assert plan.source == []
    assert positions(plan.dest) == {"y": 0, "x": 1}


def test_remove_closes_gap():
    assert ordering.remove(["a", "b", "c"], "b") == [Assignment("a", 0), Assignment("c", 1)]


def test_reposition_within_parent():
    assert [a.child_id for a in ordering.reposition(["a", "b", "c"], "a", 2)] == ["b", "c", "a"]
    with pytest.raises(InvalidPermutation):
        ordering.reposition(["a"], "z", 0)


def test_move_to_index_defaults_to_append():
    plan = ordering.move_to_index(["a", "b"], ["x", "y"], "a")
    assert [a.child_id for a in plan.dest] == ["x", "y", "a"]
    plan = ordering.move_to_index(["a", "b"], ["x", "y"], "b", 1)
    assert [a.child_id for a in plan.dest] == ["x", "b", "y"]
    assert plan.source == [Assignment("a", 0)]


def test_normalize_breaks_ties_by_id():
    siblings = [Sibling("c", 1), Sibling("b", 1), Sibling("a", 0)]
    assert ordering.normalize(siblings) == ["a", "b", "c"]
