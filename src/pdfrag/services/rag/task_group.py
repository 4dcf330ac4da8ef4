from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class TaskTimeoutError(RuntimeError):
    pass


@dataclass(frozen=True)
class TaskResult(Generic[T]):
    name: str
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TaskGroup(Generic[T]):
    """Fan out independent callables on a thread pool and join all of them.

    A task that raises is reported through its ``TaskResult``; siblings keep
    running. With ``timeout_seconds`` set, tasks still running when the phase
    deadline passes are reported as ``TaskTimeoutError`` and the pool is shut
    down without waiting for them.
    """

    def __init__(self, *, max_workers: int, timeout_seconds: float | None = None) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pdfrag")
        self._timeout_seconds = timeout_seconds
        self._tasks: list[tuple[str, Future[T]]] = []
        self._joined = False

    def __enter__(self) -> TaskGroup[T]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._joined:
            self._executor.shutdown(wait=True, cancel_futures=True)

    def spawn(self, name: str, fn: Callable[..., T], *args: object) -> None:
        if self._joined:
            raise RuntimeError("cannot spawn into a joined task group")
        self._tasks.append((name, self._executor.submit(fn, *args)))

    def join_all(self) -> list[TaskResult[T]]:
        if self._joined:
            raise RuntimeError("task group already joined")
        self._joined = True

        futures = [future for _, future in self._tasks]
        _, pending = wait(futures, timeout=self._timeout_seconds)
        self._executor.shutdown(wait=not pending, cancel_futures=True)

        results: list[TaskResult[T]] = []
        for name, future in self._tasks:
            if future in pending:
                future.cancel()
                results.append(
                    TaskResult(
                        name=name,
                        error=TaskTimeoutError(
                            f"{name} did not finish within {self._timeout_seconds}s"
                        ),
                    )
                )
                continue

            error = future.exception()
            if error is not None:
                results.append(TaskResult(name=name, error=error))
            else:
                results.append(TaskResult(name=name, value=future.result()))
        return results
