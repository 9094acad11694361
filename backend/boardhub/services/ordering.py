"""Stride-based positions and drag-end reorder planning for lists and tasks.

Positions are loose integers spaced ``POSITION_STRIDE`` apart. Appending
takes the highest position plus one stride; every drag re-stripes the
affected lists wholesale as ``(index + 1) * POSITION_STRIDE``.

Drag ids follow the board UI: a list column is ``listcol:<id>``, the drop
area inside a column is ``list:<id>`` and a task is its bare id.
"""

from collections.abc import Collection, Sequence
from dataclasses import dataclass, field, replace
from typing import TypeVar

POSITION_STRIDE = 1000
LIST_COLUMN_PREFIX = "listcol:"
LIST_DROP_PREFIX = "list:"

T = TypeVar("T")


@dataclass(frozen=True)
class ListPosition:
    id: str
    position: int


@dataclass(frozen=True)
class TaskPosition:
    id: str
    list_id: str
    position: int


@dataclass
class ReorderPlan:
    """Result of a drag: the new local state plus the updates to persist."""

    lists: list[ListPosition] = field(default_factory=list)
    tasks: list[TaskPosition] = field(default_factory=list)
    list_updates: list[dict] = field(default_factory=list)
    task_updates: list[dict] = field(default_factory=list)


def next_position(last_position: int | None, stride: int = POSITION_STRIDE) -> int:
    """Position for an item appended after ``last_position``."""
    return (last_position or 0) + stride


def stripe(index: int, stride: int = POSITION_STRIDE) -> int:
    return (index + 1) * stride


def array_move(items: Sequence[T], from_index: int, to_index: int) -> list[T]:
    """Move one element, shifting the others, like a sortable drag."""
    moved = list(items)
    moved.insert(to_index, moved.pop(from_index))
    return moved


def _ordered(items):
    return sorted(items, key=lambda item: item.position)


def _strip_prefix(value: str, prefix: str) -> str | None:
    return value[len(prefix):] if value.startswith(prefix) else None


def plan_list_move(
    lists: Sequence[ListPosition], active_id: str, over_id: str
) -> ReorderPlan | None:
    """Reorder list columns by dropping ``listcol:<a>`` over ``listcol:<b>``."""
    active_list_id = _strip_prefix(active_id, LIST_COLUMN_PREFIX)
    over_list_id = _strip_prefix(over_id, LIST_COLUMN_PREFIX)
    if active_list_id is None or over_list_id is None:
        return None

    ordered = _ordered(lists)
    ids = [item.id for item in ordered]
    if active_list_id not in ids or over_list_id not in ids:
        return None
    old_index = ids.index(active_list_id)
    new_index = ids.index(over_list_id)
    if old_index == new_index:
        return None

    reordered = [
        replace(item, position=stripe(index))
        for index, item in enumerate(array_move(ordered, old_index, new_index))
    ]
    return ReorderPlan(
        lists=reordered,
        list_updates=[{"id": item.id, "position": item.position} for item in reordered],
    )


def plan_task_move(
    tasks: Sequence[TaskPosition],
    active_id: str,
    over_id: str,
    list_ids: Collection[str] | None = None,
) -> ReorderPlan | None:
    """Move a task within its list or into another list.

    Dropping on a task inserts before it; dropping on a list column or its
    drop area appends to that list. Only the lists touched by the move are
    re-striped and persisted.
    """
    by_id = {task.id: task for task in tasks}
    active = by_id.get(active_id)
    if active is None:
        return None

    over_task = by_id.get(over_id)
    if over_task is not None:
        destination_list_id = over_task.list_id
    else:
        destination_list_id = _strip_prefix(over_id, LIST_DROP_PREFIX) or _strip_prefix(
            over_id, LIST_COLUMN_PREFIX
        )
    if not destination_list_id:
        return None
    if list_ids is not None and destination_list_id not in list_ids:
        return None

    source_list_id = active.list_id
    ordered = _ordered(tasks)

    if source_list_id == destination_list_id and over_task is not None:
        list_tasks = [task for task in ordered if task.list_id == source_list_id]
        ids = [task.id for task in list_tasks]
        old_index = ids.index(active.id)
        new_index = ids.index(over_task.id)
        if old_index == new_index:
            return None
        changed = {
            task.id: replace(task, position=stripe(index))
            for index, task in enumerate(array_move(list_tasks, old_index, new_index))
        }
        affected = [source_list_id]
    else:
        destination = [
            task for task in ordered if task.list_id == destination_list_id and task.id != active.id
        ]
        insert_index = len(destination)
        if over_task is not None:
            insert_index = next(
                (i for i, task in enumerate(destination) if task.id == over_task.id),
                len(destination),
            )
        destination.insert(insert_index, replace(active, list_id=destination_list_id))
        source = [task for task in ordered if task.list_id == source_list_id and task.id != active.id]

        changed = {}
        for index, task in enumerate(source):
            changed[task.id] = replace(task, position=stripe(index))
        for index, task in enumerate(destination):
            changed[task.id] = replace(task, position=stripe(index))
        affected = list(dict.fromkeys([source_list_id, destination_list_id]))

    next_tasks = [changed.get(task.id, task) for task in tasks]
    task_updates = [
        {"id": task.id, "listId": task.list_id, "position": task.position}
        for list_id in affected
        for task in _ordered(t for t in next_tasks if t.list_id == list_id)
    ]
    return ReorderPlan(tasks=next_tasks, task_updates=task_updates)


def plan_drag_end(
    lists: Sequence[ListPosition],
    tasks: Sequence[TaskPosition],
    active_id: str,
    over_id: str | None,
) -> ReorderPlan | None:
    """Plan the reorder for a finished drag, or ``None`` when nothing moves."""
    if not over_id or active_id == over_id:
        return None

    if active_id.startswith(LIST_COLUMN_PREFIX):
        plan = plan_list_move(lists, active_id, over_id)
        if plan is not None:
            plan.tasks = list(tasks)
        return plan

    plan = plan_task_move(tasks, active_id, over_id, {item.id for item in lists})
    if plan is not None:
        plan.lists = list(lists)
    return plan
