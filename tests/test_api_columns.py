import pytest


@pytest.fixture()
def board_id(client, auth):
    return client.post("/boards", json={"title": "Work"}, headers=auth()).json()["id"]


def test_create_column_appends_or_inserts(client, auth, board_id):
    first = client.post(f"/boards/{board_id}/columns", json={"title": "Todo"}, headers=auth())
    assert first.status_code == 201
    assert first.json()["position"] == 0
    second = client.post(f"/boards/{board_id}/columns", json={"title": "Done"}, headers=auth()).json()
    middle = client.post(f"/boards/{board_id}/columns", json={"title": "Doing", "order": 1}, headers=auth()).json()

    listed = client.get(f"/boards/{board_id}/columns", headers=auth()).json()
    assert [c["id"] for c in listed] == [first.json()["id"], middle["id"], second["id"]]
    assert [c["position"] for c in listed] == [0, 1, 2]


def test_create_column_on_unowned_board_is_not_found(client, auth, board_id):
    response = client.post(f"/boards/{board_id}/columns", json={"title": "x"}, headers=auth("bob"))
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"
    response = client.post("/boards/missing/columns", json={"title": "x"}, headers=auth())
    assert response.status_code == 404


def test_reorder_columns(client, auth, board_id):
    ids = [client.post(f"/boards/{board_id}/columns", json={"title": t}, headers=auth()).json()["id"] for t in "abc"]
    response = client.put(f"/boards/{board_id}/columns/reorder", json={"columnIds": ids[::-1]}, headers=auth())
    assert response.status_code == 200
    assert [c["id"] for c in client.get(f"/boards/{board_id}/columns", headers=auth()).json()] == ids[::-1]

    duplicate = client.put(
        f"/boards/{board_id}/columns/reorder", json={"columnIds": [ids[0], ids[0], ids[1]]}, headers=auth()
    )
    assert duplicate.status_code == 400
    assert duplicate.json()["error"]["details"]["duplicates"] == [ids[0]]

    foreign = client.put(f"/boards/{board_id}/columns/reorder", json={"columnIds": ids}, headers=auth("bob"))
    assert foreign.status_code == 404


def test_patch_and_delete_column(client, auth, board_id):
    ids = [client.post(f"/boards/{board_id}/columns", json={"title": t}, headers=auth()).json()["id"] for t in "abc"]
    client.post(f"/columns/{ids[0]}/tasks", json={"title": "t"}, headers=auth())

    moved = client.patch(f"/columns/{ids[0]}", json={"order": 5, "title": "A"}, headers=auth())
    assert moved.status_code == 200
    assert moved.json()["position"] == 2
    assert moved.json()["title"] == "A"

    assert client.delete(f"/columns/{ids[1]}", headers=auth("bob")).status_code == 404
    assert client.delete(f"/columns/{ids[1]}", headers=auth()).status_code == 204
    listed = client.get(f"/boards/{board_id}/columns", headers=auth()).json()
    assert [(c["id"], c["position"]) for c in listed] == [(ids[2], 0), (ids[0], 1)]

    assert client.delete(f"/boards/{board_id}", headers=auth()).status_code == 204
    assert client.get(f"/columns/{ids[0]}/tasks", headers=auth()).status_code == 404
