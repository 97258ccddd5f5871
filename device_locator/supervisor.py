"""
Supervisor: owns the process lifetime.

Responsibilities:
- Start one AccountWorker task per configured account.
- Own the error sink shared by all workers and the shutdown event.
- Block until a shutdown request or a worker error, then stop every worker
  and close the publisher.

Under ErrorPolicy.FAIL_FAST (the default) the first reported error ends the
whole process; there is no per-account restart.
"""
from __future__ import annotations

import asyncio
import logging
import signal
from typing import Callable, Iterable

from .const import REFRESH_INTERVAL, REFRESH_JITTER, DEFAULT_PREFIX
from .errors import AccountFailure
from .models import Credentials
from .session import LocationSession
from .worker import AccountWorker, ErrorPolicy

_LOGGER = logging.getLogger(__name__)


class Supervisor:
    """Runs every account worker and decides when the process stops."""

    def __init__(
        self,
        accounts: Iterable[Credentials],
        publisher,
        session_factory: Callable[[Credentials], LocationSession],
        prefix: str = DEFAULT_PREFIX,
        interval: float = REFRESH_INTERVAL,
        jitter: float = REFRESH_JITTER,
        policy: ErrorPolicy = ErrorPolicy.FAIL_FAST,
    ) -> None:
        self.accounts = list(accounts)
        self.publisher = publisher
        self._session_factory = session_factory
        self.prefix = prefix
        self.interval = interval
        self.jitter = jitter
        self.policy = policy

        self._errors: asyncio.Queue[AccountFailure] = asyncio.Queue()
        self._shutdown = asyncio.Event()
        self.workers: list[AccountWorker] = []
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Shutdown signal
    # ------------------------------------------------------------------

    def request_shutdown(self) -> None:
        """Ask the supervisor to stop gracefully."""
        self._shutdown.set()

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to request_shutdown()."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_shutdown)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """
        Run until shutdown or failure.

        Returns normally after a shutdown request. Raises the AccountFailure
        that ended the run otherwise.
        """
        self._start_workers()
        try:
            failure = await self._wait_for_outcome()
        finally:
            await self._stop_workers()
            await self.publisher.close()

        if failure is not None:
            raise failure

    def _start_workers(self) -> None:
        for credentials in self.accounts:
            worker = AccountWorker(
                credentials,
                self._session_factory(credentials),
                self.publisher,
                self._errors,
                prefix=self.prefix,
                interval=self.interval,
                jitter=self.jitter,
                policy=self.policy,
            )
            self.workers.append(worker)
            task = asyncio.create_task(self._run_worker(worker), name=f"worker-{worker.account}")
            self._tasks.add(task)
        _LOGGER.info("Started %s account worker(s)", len(self._tasks))

    async def _run_worker(self, worker: AccountWorker) -> None:
        try:
            await worker.run()
        except Exception as exc:
            _LOGGER.exception("Account worker %s crashed", worker.account)
            self._errors.put_nowait(AccountFailure(worker.account, exc))

    async def _wait_for_outcome(self) -> AccountFailure | None:
        shutdown = asyncio.ensure_future(self._shutdown.wait())
        workers_done = asyncio.ensure_future(asyncio.wait(self._tasks)) if self._tasks else None
        waiters = {shutdown} | ({workers_done} if workers_done else set())
        last_failure: AccountFailure | None = None
        next_error: asyncio.Future | None = None

        try:
            while True:
                next_error = asyncio.ensure_future(self._errors.get())
                done, _ = await asyncio.wait(waiters | {next_error}, return_when=asyncio.FIRST_COMPLETED)

                if next_error in done:
                    failure = next_error.result()
                    if self.policy is ErrorPolicy.FAIL_FAST:
                        _LOGGER.error("Account %s failed, stopping: %s", failure.account, failure.error)
                        return failure
                    _LOGGER.error("Account %s failed: %s", failure.account, failure.error)
                    last_failure = failure
                    continue

                if shutdown in done:
                    _LOGGER.info("Got shutdown event, exiting gracefully ...")
                    return None

                # Every worker has returned; collect what they left behind.
                while not self._errors.empty():
                    last_failure = self._errors.get_nowait()
                    _LOGGER.error("Account %s failed: %s", last_failure.account, last_failure.error)
                _LOGGER.error("No account worker left running")
                return last_failure
        finally:
            for waiter in waiters:
                waiter.cancel()
            if next_error is not None:
                next_error.cancel()

    async def _stop_workers(self) -> None:
        for task in self._tasks:
            task.cancel()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                _LOGGER.debug("Account worker error during shutdown: %s", result)
        self._tasks.clear()
