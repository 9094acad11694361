"""Optimistic board client.

Keeps a local copy of a board's lists and tasks, applies drags immediately
and then persists the new positions through the move endpoints. A failed
persist leaves the local copy as it is; the next ``refresh()`` (typically
triggered by a realtime refresh signal) reconciles it with the server.
"""

import httpx
import structlog

from boardhub.services.ordering import ListPosition, TaskPosition, plan_drag_end

logger = structlog.get_logger()


class BoardSession:
    """Local view of one board for a signed-in user.

    ``client`` must already carry the user's bearer token; any
    ``httpx.Client`` works, including a test client.
    """

    def __init__(self, client: httpx.Client, board_id: str, api_prefix: str = "/api/v1"):
        self.client = client
        self.board_id = str(board_id)
        self.api_prefix = api_prefix.rstrip("/")
        self.lists: list[ListPosition] = []
        self.tasks: list[TaskPosition] = []
        self.can_edit = False

    @property
    def board_url(self) -> str:
        return f"{self.api_prefix}/boards/{self.board_id}"

    def refresh(self) -> dict:
        """Reload the board from the server, discarding local changes."""
        response = self.client.get(self.board_url)
        response.raise_for_status()
        data = response.json()

        self.lists = [ListPosition(id=item["id"], position=item["position"]) for item in data["lists"]]
        self.tasks = [
            TaskPosition(id=item["id"], list_id=item["list_id"], position=item["position"])
            for item in data["tasks"]
        ]
        self.can_edit = bool(data["can_edit"])
        return data

    def ordered_lists(self) -> list[ListPosition]:
        return sorted(self.lists, key=lambda item: item.position)

    def tasks_in(self, list_id: str) -> list[TaskPosition]:
        return sorted(
            (task for task in self.tasks if task.list_id == list_id),
            key=lambda task: task.position,
        )

    def drag_end(self, active_id: str, over_id: str | None) -> bool:
        """Apply a finished drag locally, then persist it.

        Returns True when something moved and every persist call succeeded.
        """
        if not self.can_edit:
            return False

        plan = plan_drag_end(self.lists, self.tasks, active_id, over_id)
        if plan is None:
            return False

        self.lists = plan.lists
        self.tasks = plan.tasks

        ok = True
        if plan.list_updates:
            ok = self._persist("lists", plan.list_updates) and ok
        if plan.task_updates:
            ok = self._persist("tasks", plan.task_updates) and ok
        return ok

    def _persist(self, kind: str, updates: list[dict]) -> bool:
        url = f"{self.board_url}/{kind}/move"
        try:
            response = self.client.post(url, json={"updates": updates})
        except httpx.HTTPError as e:
            logger.warning("Board move request failed", board_id=self.board_id, kind=kind, error=str(e))
            return False

        if response.status_code != 200:
            try:
                error = response.json().get("error")
            except ValueError:
                error = response.text
            logger.warning(
                "Board move rejected",
                board_id=self.board_id,
                kind=kind,
                status=response.status_code,
                error=error,
            )
            return False
        return True
