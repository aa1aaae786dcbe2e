"""Prerequisite gate for orchestrated tasks.

The tracker never rejects a cycle at insertion time. A task on a
prerequisite cycle simply never becomes executable, and
:meth:`TaskDependencyTracker.deadlocked_tasks` reports it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping

import networkx as nx

from depweave.analysis.dependency_graph import find_cycles
from depweave.errors import UnknownCheckError

logger = logging.getLogger(__name__)


@dataclass
class TaskNode:
    task_id: str
    prerequisites: set[str] = field(default_factory=set)
    completed: bool = False
    added_at: str = field(default_factory=lambda: datetime.now().isoformat())
    completed_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.task_id,
            "prerequisites": sorted(self.prerequisites),
            "completed": self.completed,
            "added_at": self.added_at,
            "completed_at": self.completed_at,
        }


class TaskDependencyTracker:
    """Tracks which tasks have their prerequisites satisfied.

    Prerequisite ids may name tasks that are added later. An id that is never
    added can never be completed, so its dependents stay blocked.
    """

    def __init__(self):
        self._tasks: dict[str, TaskNode] = {}

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def add_task(self, task_id: str, prerequisites: Iterable[str] = ()) -> bool:
        if task_id in self._tasks:
            logger.warning("Task %s is already registered; ignoring", task_id)
            return False
        self._tasks[task_id] = TaskNode(task_id, set(prerequisites))
        logger.debug("Added task %s (%d prerequisite(s))", task_id, len(self._tasks[task_id].prerequisites))
        return True

    def can_execute(self, task_id: str) -> bool:
        node = self._require(task_id)
        return not self._pending_prerequisites(node)

    def mark_complete(self, task_id: str) -> list[str]:
        """Mark a task done and return the dependents it just unblocked.

        The return value is informational; nothing is started or cascaded.
        """
        node = self._require(task_id)
        if node.completed:
            return []
        node.completed = True
        node.completed_at = datetime.now().isoformat()
        logger.debug("Task %s complete", task_id)
        return [
            other.task_id for other in self._tasks.values()
            if task_id in other.prerequisites
            and not other.completed
            and not self._pending_prerequisites(other)
        ]

    def ready_tasks(self) -> list[str]:
        """Incomplete tasks whose prerequisites are all done, in insertion order."""
        return [
            node.task_id for node in self._tasks.values()
            if not node.completed and not self._pending_prerequisites(node)
        ]

    def blocked_tasks(self) -> dict[str, list[str]]:
        blocked = {}
        for node in self._tasks.values():
            if node.completed:
                continue
            pending = self._pending_prerequisites(node)
            if pending:
                blocked[node.task_id] = pending
        return blocked

    def deadlocked_tasks(self) -> list[str]:
        """Tasks that sit on a prerequisite cycle, sorted."""
        adjacency = {
            node.task_id: [p for p in node.prerequisites if p in self._tasks]
            for node in self._tasks.values()
        }
        on_cycle = {task_id for cycle in find_cycles(adjacency) for task_id in cycle}
        return sorted(on_cycle)

    def execution_stages(self) -> list[list[str]]:
        """Group runnable tasks into stages that can execute in parallel.

        Completed tasks are left out. Tasks that can never run (on a cycle,
        waiting on an unknown id, or downstream of either) are left out too.
        """
        graph = self._graph()
        stuck = set(self.deadlocked_tasks())
        stuck.update(
            node.task_id for node in self._tasks.values()
            if any(p not in self._tasks for p in node.prerequisites)
        )
        for task_id in list(stuck):
            stuck.update(nx.descendants(graph, task_id))
        graph.remove_nodes_from(stuck)

        return [
            [task_id for task_id in generation if not self._tasks[task_id].completed]
            for generation in nx.topological_generations(graph)
            if any(not self._tasks[task_id].completed for task_id in generation)
        ]

    def critical_path(self, durations: Mapping[str, float] | None = None) -> list[str]:
        """Longest prerequisite chain by total duration (each task defaults to 1)."""
        durations = durations or {}
        stages = self.execution_stages()
        runnable = {task_id for stage in stages for task_id in stage}

        best: dict[str, tuple[float, list[str]]] = {}
        for stage in stages:
            for task_id in stage:
                before = max(
                    (best[p] for p in self._tasks[task_id].prerequisites if p in runnable),
                    key=lambda entry: entry[0],
                    default=(0.0, []),
                )
                best[task_id] = (before[0] + durations.get(task_id, 1), before[1] + [task_id])

        if not best:
            return []
        return max(best.values(), key=lambda entry: entry[0])[1]

    def status_report(self, durations: Mapping[str, float] | None = None) -> dict:
        total = len(self._tasks)
        completed = sum(1 for node in self._tasks.values() if node.completed)
        ready = self.ready_tasks()
        blocked = self.blocked_tasks()
        path = self.critical_path(durations)
        durations = durations or {}

        return {
            "summary": {
                "total": total,
                "completed": completed,
                "ready": len(ready),
                "blocked": len(blocked),
                "progress": (completed / total) * 100 if total else 0.0,
            },
            "tasks": [node.to_dict() for node in self._tasks.values()],
            "ready_tasks": ready,
            "blocked_tasks": [
                {"id": task_id, "blocking": pending} for task_id, pending in blocked.items()
            ],
            "deadlocked_tasks": self.deadlocked_tasks(),
            "critical_path": {
                "tasks": path,
                "estimated_duration": sum(durations.get(task_id, 1) for task_id in path),
            },
        }

    def reset(self) -> None:
        """Drop every task; the only way tasks are removed."""
        self._tasks.clear()
        logger.debug("Task tracker reset")

    def _pending_prerequisites(self, node: TaskNode) -> list[str]:
        return sorted(
            p for p in node.prerequisites
            if p not in self._tasks or not self._tasks[p].completed
        )

    def _graph(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        for node in self._tasks.values():
            graph.add_node(node.task_id)
            for prerequisite in node.prerequisites:
                if prerequisite in self._tasks:
                    graph.add_edge(prerequisite, node.task_id)
        return graph

    def _require(self, task_id: str) -> TaskNode:
        node = self._tasks.get(task_id)
        if node is None:
            raise UnknownCheckError("task", task_id)
        return node
