"""Planning tool handlers."""

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from orgchart.event_bus import TODO_UPDATED

if TYPE_CHECKING:
    from orgchart.event_bus import EventBus
    from orgchart.worker import Worker


TODO_STATUSES = ("pending", "in_progress", "completed")

_STATUS_MARKERS = {
    "pending": " ",
    "in_progress": "+",
    "completed": "✓",
}


@dataclass(frozen=True)
class TodoItem:
    """One entry of a worker's advisory TODO list."""
    title: str
    description: str = ""
    status: str = "pending"
    best_role: Optional[str] = None

    @classmethod
    def from_dict(cls, item: dict) -> "TodoItem":
        status = item.get("status") or "pending"
        if status not in TODO_STATUSES:
            status = "pending"
        return cls(
            title=str(item.get("title", "")),
            description=str(item.get("detailed_description", "")),
            status=status,
            best_role=item.get("best_agent_for_task"),
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "best_role": self.best_role,
        }


def format_todo_list(items: list[TodoItem]) -> str:
    return "\n".join(
        f' * [{_STATUS_MARKERS[item.status]}] "{item.title}"' for item in items
    )


def handle_update_todo_list(tool_args: dict, worker: "Worker", events: "EventBus") -> str:
    raw_items = tool_args.get("todo_items")
    if not isinstance(raw_items, list):
        raise ValueError("todo_items must be an array of objects")
    items = [TodoItem.from_dict(i) for i in raw_items if isinstance(i, dict)]

    events.emit(
        TODO_UPDATED,
        agent=worker.name,
        agent_id=worker.instance_id,
        title="UpdateTodoList",
        content=format_todo_list(items),
        data={"todo_items": [i.to_dict() for i in items]},
    )
    worker.todo_list = items
    return "TODO list successfully updated"
