from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx

from .cache import OrderedListCache
from .errors import error_from_envelope


def _version(response: httpx.Response) -> Optional[int]:
    etag = response.headers.get("ETag")
    if not etag:
        return None
    return int(etag.removeprefix("W/").strip('"'))


class TaskboardClient:
    """Thin wrapper over the HTTP API; failures raise :mod:`taskboard.errors`."""

    def __init__(self, http: httpx.Client, token: str) -> None:
        self.http = http
        self.token = token

    def _request(self, method: str, path: str, if_match: Optional[int] = None, **kwargs: Any) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.token}"}
        if if_match is not None:
            headers["If-Match"] = f'"{if_match}"'
        response = self.http.request(method, path, headers=headers, **kwargs)
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            raise error_from_envelope(response.status_code, body)
        return response

    # === Boards ===
    def list_boards(self) -> tuple[list[dict], Optional[int]]:
        response = self._request("GET", "/boards")
        return response.json(), _version(response)

    def create_board(self, title: str, **fields: Any) -> dict:
        return self._request("POST", "/boards", json={"title": title, **fields}).json()

    def delete_board(self, board_id: str) -> None:
        self._request("DELETE", f"/boards/{board_id}")

    def reorder_boards(self, board_ids: Sequence[str], if_match: Optional[int] = None) -> dict:
        return self._request("PUT", "/boards/reorder", if_match, json={"boardIds": list(board_ids)}).json()

    # === Columns ===
    def list_columns(self, board_id: str) -> tuple[list[dict], Optional[int]]:
        response = self._request("GET", f"/boards/{board_id}/columns")
        return response.json(), _version(response)

    def create_column(self, board_id: str, title: str, order: Optional[int] = None) -> dict:
        body: dict[str, Any] = {"title": title}
        if order is not None:
            body["order"] = order
        return self._request("POST", f"/boards/{board_id}/columns", json=body).json()

    def reorder_columns(self, board_id: str, column_ids: Sequence[str], if_match: Optional[int] = None) -> dict:
        return self._request(
            "PUT", f"/boards/{board_id}/columns/reorder", if_match, json={"columnIds": list(column_ids)}
        ).json()

    # === Tasks ===
    def list_tasks(self, column_id: str) -> tuple[list[dict], Optional[int]]:
        response = self._request("GET", f"/columns/{column_id}/tasks")
        return response.json(), _version(response)

    def create_task(self, column_id: str, title: str, **fields: Any) -> dict:
        return self._request("POST", f"/columns/{column_id}/tasks", json={"title": title, **fields}).json()

    def reorder_tasks(self, column_id: str, task_ids: Sequence[str], if_match: Optional[int] = None) -> dict:
        return self._request(
            "PUT", f"/columns/{column_id}/tasks/reorder", if_match, json={"taskIds": list(task_ids)}
        ).json()

    # === Cache synchronisation ===
    def refresh_boards(self, cache: OrderedListCache, owner: str) -> None:
        boards, version = self.list_boards()
        cache.load(owner, [b["id"] for b in boards], version)

    def refresh_columns(self, cache: OrderedListCache, board_id: str) -> None:
        columns, version = self.list_columns(board_id)
        cache.load(board_id, [c["id"] for c in columns], version)

    def refresh_tasks(self, cache: OrderedListCache, column_id: str) -> None:
        tasks, version = self.list_tasks(column_id)
        cache.load(column_id, [t["id"] for t in tasks], version)

    def drag_task(
        self,
        cache: OrderedListCache,
        source_id: str,
        dest_id: str,
        dest_ordered_ids: Sequence[str],
        moved_id: str,
    ) -> None:
        """Optimistically render a drag-release, then confirm it with the service."""
        if source_id == dest_id:
            cache.reorder(dest_id, dest_ordered_ids, lambda: self.reorder_tasks(dest_id, dest_ordered_ids))
        else:
            cache.move(
                source_id,
                dest_id,
                dest_ordered_ids,
                moved_id,
                lambda: self.reorder_tasks(dest_id, dest_ordered_ids),
            )
