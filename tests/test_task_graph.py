"""Tests for the task prerequisite tracker."""

import itertools

import pytest

from depweave.errors import UnknownCheckError
from depweave.orchestration import TaskDependencyTracker


def _tracker(tasks):
    tracker = TaskDependencyTracker()
    for task_id, prerequisites in tasks.items():
        tracker.add_task(task_id, prerequisites)
    return tracker


class TestGate:
    def test_no_prerequisites_is_executable(self):
        tracker = _tracker({"T": []})
        assert tracker.can_execute("T")

    def test_gate_under_every_completion_order(self):
        prerequisites = ["p1", "p2", "p3", "p4"]
        for order in itertools.permutations(prerequisites):
            tracker = _tracker({**{p: [] for p in prerequisites}, "T": prerequisites})
            for index, task_id in enumerate(order):
                assert not tracker.can_execute("T")
                unblocked = tracker.mark_complete(task_id)
                last = index == len(order) - 1
                assert tracker.can_execute("T") is last
                assert unblocked == (["T"] if last else [])

    def test_mark_complete_does_not_cascade(self):
        tracker = _tracker({"a": [], "b": ["a"], "c": ["b"]})
        assert tracker.mark_complete("a") == ["b"]
        assert tracker.can_execute("b")
        assert not tracker.can_execute("c")
        assert tracker.mark_complete("a") == []

    def test_unknown_ids(self):
        tracker = _tracker({"a": []})
        with pytest.raises(UnknownCheckError):
            tracker.can_execute("zzz")
        with pytest.raises(KeyError):
            tracker.mark_complete("zzz")

    def test_duplicate_add(self):
        tracker = TaskDependencyTracker()
        assert tracker.add_task("a", ["x"])
        assert not tracker.add_task("a", [])
        assert not tracker.can_execute("a")

    def test_prerequisite_added_later(self):
        tracker = _tracker({"b": ["a"]})
        assert not tracker.can_execute("b")
        tracker.add_task("a")
        tracker.mark_complete("a")
        assert tracker.can_execute("b")


class TestPlanning:
    def test_cycle_never_executes(self):
        tracker = _tracker({"a": ["c"], "b": ["a"], "c": ["b"], "d": []})
        assert tracker.deadlocked_tasks() == ["a", "b", "c"]
        assert tracker.ready_tasks() == ["d"]
        tracker.mark_complete("d")
        assert not any(tracker.can_execute(t) for t in "abc")

    def test_ready_and_blocked(self):
        tracker = _tracker({"a": [], "b": ["a"], "c": ["a", "b"]})
        assert tracker.ready_tasks() == ["a"]
        assert tracker.blocked_tasks() == {"b": ["a"], "c": ["a", "b"]}
        tracker.mark_complete("a")
        assert tracker.ready_tasks() == ["b"]
        assert tracker.blocked_tasks() == {"c": ["b"]}

    def test_execution_stages(self):
        tracker = _tracker({
            "lint": [],
            "build": [],
            "test": ["build"],
            "package": ["build", "lint"],
            "deploy": ["test", "package"],
            "loop1": ["loop2"],
            "loop2": ["loop1"],
            "after_loop": ["loop1"],
            "orphan": ["missing"],
        })
        assert [sorted(stage) for stage in tracker.execution_stages()] == [
            ["build", "lint"],
            ["package", "test"],
            ["deploy"],
        ]

        tracker.mark_complete("build")
        tracker.mark_complete("lint")
        assert [sorted(stage) for stage in tracker.execution_stages()] == [
            ["package", "test"],
            ["deploy"],
        ]

    def test_critical_path(self):
        tracker = _tracker({
            "a": [],
            "b": ["a"],
            "c": ["a"],
            "d": ["b", "c"],
        })
        assert tracker.critical_path() in (["a", "b", "d"], ["a", "c", "d"])
        assert tracker.critical_path({"c": 10}) == ["a", "c", "d"]
        assert _tracker({}).critical_path() == []

    def test_status_report_and_reset(self):
        tracker = _tracker({"a": [], "b": ["a"]})
        tracker.mark_complete("a")
        report = tracker.status_report({"b": 3})

        assert report["summary"] == {
            "total": 2, "completed": 1, "ready": 1, "blocked": 0, "progress": 50.0,
        }
        assert report["ready_tasks"] == ["b"]
        assert report["tasks"][0]["completed_at"] is not None
        assert report["tasks"][1]["completed_at"] is None
        assert report["critical_path"] == {"tasks": ["b"], "estimated_duration": 3}

        tracker.reset()
        assert len(tracker) == 0
        assert "a" not in tracker
