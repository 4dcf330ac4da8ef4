import threading

import pytest

from pdfrag.services.rag.task_group import TaskGroup, TaskTimeoutError


def test_join_all_collects_every_result_and_isolates_failures() -> None:
    def work(value: int) -> int:
        if value == 2:
            raise ValueError("bad input")
        return value * 10

    with TaskGroup[int](max_workers=4) as group:
        for value in range(4):
            group.spawn(f"task-{value}", work, value)
        results = group.join_all()

    assert [result.name for result in results] == ["task-0", "task-1", "task-2", "task-3"]
    assert [result.value for result in results if result.ok] == [0, 10, 30]
    failed = [result for result in results if not result.ok]
    assert len(failed) == 1
    assert isinstance(failed[0].error, ValueError)


def test_tasks_run_concurrently() -> None:
    barrier = threading.Barrier(3, timeout=5)

    def wait_for_siblings() -> str:
        barrier.wait()
        return "released"

    with TaskGroup[str](max_workers=3) as group:
        for index in range(3):
            group.spawn(f"task-{index}", wait_for_siblings)
        results = group.join_all()

    assert all(result.ok for result in results)


def test_deadline_reports_stuck_tasks_as_timeouts() -> None:
    release = threading.Event()

    def stuck() -> str:
        release.wait(5)
        return "late"

    try:
        with TaskGroup[str](max_workers=2, timeout_seconds=0.5) as group:
            group.spawn("fast", lambda: "done")
            group.spawn("stuck", stuck)
            results = group.join_all()
    finally:
        release.set()

    by_name = {result.name: result for result in results}
    assert by_name["fast"].value == "done"
    assert isinstance(by_name["stuck"].error, TaskTimeoutError)


def test_empty_group_joins_immediately() -> None:
    with TaskGroup[int](max_workers=1) as group:
        assert group.join_all() == []


def test_group_cannot_be_joined_twice() -> None:
    with TaskGroup[int](max_workers=1) as group:
        group.join_all()
        with pytest.raises(RuntimeError, match="already joined"):
            group.join_all()


def test_max_workers_must_be_positive() -> None:
    with pytest.raises(ValueError):
        TaskGroup[int](max_workers=0)
