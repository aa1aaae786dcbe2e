"""Prerequisite tracking for orchestrated tasks."""

from depweave.orchestration.task_graph import TaskDependencyTracker, TaskNode

__all__ = ["TaskDependencyTracker", "TaskNode"]
