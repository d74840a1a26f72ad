"""Run tasks against every active connection and server.

Purpose
    Drive a list of task callables over the handler's active connections, one
    server at a time, either sequentially on the shared cursor or in parallel
    with one forked cursor per job. A pretend run lists the targets without
    connecting.

Contents
    - ``Task``: callable signature accepted by the queue.
    - ``TaskResult``: outcome of one task on one server.
    - ``TasksQueue``: the runner.

System Integration
    The CLI ``check`` command runs a connect-only task through this queue; host
    applications pass their own deployment steps. Task semantics themselves are
    out of scope: a task receives the connected
    :class:`~deploy_connections.domain.connection.ConnectionInstance` and
    returns whatever it wants recorded.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from ..domain.connection import ConnectionInstance, ConnectionKey
from ..observability import log_debug, log_info, make_event
from .handler import ConnectionsHandler

Task = Callable[[ConnectionInstance], Any]


@dataclass(frozen=True, slots=True)
class TaskResult:
    """Output of one task run on one connection key."""

    key: ConnectionKey
    host: str
    task: str
    output: Any


class TasksQueue:
    """Execute tasks on each (active connection, server) pair.

    Sequential mode moves the handler's own cursor and leaves it on the last
    target. Parallel mode never touches it: each job forks the handler, so
    bootstrap still runs at most once per key through the shared ledger.
    Pretend mode only resolves each target and reports what would run; tasks
    are not called and the handler state is left untouched.
    """

    def __init__(
        self,
        handler: ConnectionsHandler,
        *,
        parallel: bool = False,
        pretend: bool = False,
        max_workers: int | None = None,
    ) -> None:
        self.handler = handler
        self.parallel = parallel
        self.pretend = pretend
        self.max_workers = max_workers

    def targets(self) -> list[ConnectionKey]:
        """Return the keys the queue will visit, in run order."""

        stage = self.handler.current.stage
        keys: list[ConnectionKey] = []
        for name in self.handler.get_active_connections():
            for index, _ in enumerate(self.handler.catalog.servers(name)):
                keys.append(ConnectionKey(name, index, stage))
        return keys

    def run(self, tasks: Task | Sequence[Task]) -> list[TaskResult]:
        """Run *tasks* on every target and return results in target order.

        The first failing task aborts the run and its exception propagates. In
        pretend mode every result has ``output=None``.
        """

        task_list = [tasks] if callable(tasks) else list(tasks)
        targets = self.targets()
        log_info(
            "queue_started",
            targets=[str(key) for key in targets],
            tasks=len(task_list),
            parallel=self.parallel,
            pretend=self.pretend,
        )

        if self.pretend:
            return [result for key in targets for result in self._pretend_on(key, task_list)]

        if not self.parallel or len(targets) < 2:
            results: list[TaskResult] = []
            for key in targets:
                results.extend(self._run_on(self.handler, key, task_list))
            return results

        with ThreadPoolExecutor(max_workers=self.max_workers or len(targets)) as pool:
            futures = [pool.submit(self._run_on, self.handler.fork(), key, task_list) for key in targets]
            return [result for future in futures for result in future.result()]

    def _pretend_on(self, key: ConnectionKey, tasks: Sequence[Task]) -> list[TaskResult]:
        host = self.handler.resolver.resolve(key).host
        results: list[TaskResult] = []
        for task in tasks:
            name = _task_name(task)
            log_info("task_pretended", **make_event(key.name, key.server, key.stage, {"task": name, "host": host}))
            results.append(TaskResult(key, host, name, None))
        return results

    @staticmethod
    def _run_on(handler: ConnectionsHandler, key: ConnectionKey, tasks: Sequence[Task]) -> list[TaskResult]:
        handler.set_current_connection(key)
        results: list[TaskResult] = []
        for task in tasks:
            instance = handler.get_current_connection()
            name = _task_name(task)
            log_debug("task_started", **make_event(key.name, key.server, key.stage, {"task": name}))
            results.append(TaskResult(key, instance.credentials.host, name, task(instance)))
        return results


def _task_name(task: Task) -> str:
    return getattr(task, "__name__", type(task).__name__)
