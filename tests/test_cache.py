import pytest

from taskboard.cache import OrderedListCache
from taskboard.errors import Conflict, InvalidPermutation, NotFound


class Boom(Exception):
    pass


def fail():
    raise Boom()


def test_reorder_rolls_back_on_failure():
    cache = OrderedListCache()
    cache.load("c", ["a", "b", "c"], server_version=4)
    before = cache.entry("c")

    with pytest.raises(Boom):
        cache.reorder("c", ["c", "b", "a"], fail)

    assert cache.entry("c") == before


def test_reorder_keeps_local_order_on_success():
    cache = OrderedListCache()
    cache.load("c", ["a", "b"], server_version=1)
    seen = []
    assert cache.reorder("c", ["b", "a"], lambda: seen.append(cache.get("c")) or "done") == "done"
    # the optimistic order is visible while the commit runs
    assert seen == [["b", "a"]]
    assert cache.get("c") == ["b", "a"]
    assert cache.entry("c").revision == 1
    assert cache.entry("c").server_version is None


def test_move_rolls_back_both_lists():
    cache = OrderedListCache()
    cache.load("c", ["a", "b"])
    with pytest.raises(Boom):
        cache.move("c", "d", ["a"], "a", fail)
    assert cache.get("c") == ["a", "b"]
    assert cache.get("d") == []
    assert cache.entry("d") is None


def test_load_bumps_revision():
    cache = OrderedListCache()
    assert cache.load("c", ["a"]).revision == 0
    assert cache.load("c", ["a", "b"], 3) == cache.entry("c")
    assert cache.entry("c").revision == 1


def test_client_reorder_confirms_and_refreshes(alice):
    board = alice.create_board("Work")
    column = alice.create_column(board["id"], "Todo")
    ids = [alice.create_task(column["id"], t)["id"] for t in "ABC"]
    cache = OrderedListCache()
    alice.refresh_tasks(cache, column["id"])
    assert cache.get(column["id"]) == ids
    assert cache.entry(column["id"]).server_version == 3

    alice.drag_task(cache, column["id"], column["id"], ids[::-1], ids[0])
    assert cache.get(column["id"]) == ids[::-1]

    alice.refresh_tasks(cache, column["id"])
    assert cache.get(column["id"]) == ids[::-1]
    assert cache.entry(column["id"]).server_version == 4


def test_rejected_reorder_restores_cache(alice):
    board = alice.create_board("Work")
    column = alice.create_column(board["id"], "Todo")
    ids = [alice.create_task(column["id"], t)["id"] for t in "AB"]
    cache = OrderedListCache()
    alice.refresh_tasks(cache, column["id"])
    before = cache.entry(column["id"])

    with pytest.raises(InvalidPermutation) as info:
        alice.drag_task(cache, column["id"], column["id"], [ids[1]], ids[1])
    assert info.value.missing == [ids[0]]
    assert cache.entry(column["id"]) == before


def test_drag_across_columns(alice):
    board = alice.create_board("Work")
    c = alice.create_column(board["id"], "C")["id"]
    d = alice.create_column(board["id"], "D")["id"]
    a, b = (alice.create_task(c, t)["id"] for t in "AB")
    (x,) = (alice.create_task(d, t)["id"] for t in "X")
    cache = OrderedListCache()
    alice.refresh_tasks(cache, c)
    alice.refresh_tasks(cache, d)

    alice.drag_task(cache, c, d, [x, a], a)
    assert cache.get(c) == [b]
    assert cache.get(d) == [x, a]
    tasks, _ = alice.list_tasks(d)
    assert [t["id"] for t in tasks] == [x, a]

    # a stale view of the destination is refused and rolled back
    with pytest.raises(InvalidPermutation):
        alice.drag_task(cache, c, d, [b, x], b)
    assert cache.get(c) == [b]
    assert cache.get(d) == [x, a]


def test_stale_version_surfaces_as_conflict(alice):
    board = alice.create_board("Work")
    columns = [alice.create_column(board["id"], t)["id"] for t in "ab"]
    _, version = alice.list_columns(board["id"])
    alice.reorder_columns(board["id"], columns[::-1], if_match=version)
    with pytest.raises(Conflict) as info:
        alice.reorder_columns(board["id"], columns, if_match=version)
    assert info.value.retryable


def test_client_errors_keep_their_type(alice, bob):
    board = alice.create_board("Private")
    with pytest.raises(NotFound):
        bob.list_columns(board["id"])
    bob.create_board("Mine")
    boards, version = bob.list_boards()
    assert [b["title"] for b in boards] == ["Mine"]
    assert version == 1
