"""
AccountWorker: drives one LocationSession through its lifecycle.

Responsibilities:
- Authenticate once, then refresh forever on a jittered schedule.
- Carry the (prsId, authToken) pair from each response into the next refresh.
- Push one telemetry record per located device to the publisher.
- Report every failure to the shared error sink, never read from it.

This is a pure asyncio primitive; the session, publisher and sink are injected.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import random

from .const import REFRESH_INTERVAL, REFRESH_JITTER, DEFAULT_PREFIX
from .errors import AccountFailure, LocatorError
from .models import Credentials, ServerContext, SessionResponse
from .session import LocationSession
from .telemetry import build_records

_LOGGER = logging.getLogger(__name__)


class WorkerState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    FAILED = "failed"


class ErrorPolicy(enum.Enum):
    """What a worker does after a failed refresh."""

    FAIL_FAST = "fail_fast"   # stop the worker; the supervisor stops the process
    CONTINUE = "continue"     # keep the last good pair and try again next period


class AccountWorker:
    """
    Polls the service for one account.

    Refresh calls are strictly sequential and the worker is the only reader
    and writer of its session pair.
    """

    def __init__(
        self,
        credentials: Credentials,
        session: LocationSession,
        publisher,
        errors: asyncio.Queue,
        prefix: str = DEFAULT_PREFIX,
        interval: float = REFRESH_INTERVAL,
        jitter: float = REFRESH_JITTER,
        policy: ErrorPolicy = ErrorPolicy.FAIL_FAST,
        rng: random.Random | None = None,
    ) -> None:
        self.credentials = credentials
        self.session = session
        self.publisher = publisher
        self._errors = errors
        self.prefix = prefix
        self.interval = interval
        self.jitter = jitter
        self.policy = policy
        self._rng = rng or random.Random()

        self.state = WorkerState.UNAUTHENTICATED
        self.context = ServerContext()

    @property
    def account(self) -> str:
        return self.credentials.username

    def next_delay(self) -> float:
        """Seconds to wait before the next refresh."""
        return self.interval + self._rng.uniform(0, self.jitter)

    async def run(self) -> None:
        """Authenticate, then refresh until a fatal failure or cancellation."""
        try:
            response = await self.session.authenticate(
                self.credentials.username, self.credentials.password
            )
        except LocatorError as exc:
            self._fail(exc, "Unable to init the client")
            return

        self._accept(response)
        self.state = WorkerState.AUTHENTICATED
        _LOGGER.info("Authenticated %s, %s device(s)", self.account, len(response.devices))

        self.state = WorkerState.REFRESHING
        while True:
            await asyncio.sleep(self.next_delay())
            try:
                response = await self.session.refresh(
                    self.context.prs_id, self.context.auth_token
                )
            except LocatorError as exc:
                if self.policy is ErrorPolicy.FAIL_FAST:
                    self._fail(exc, "Unable to refresh the client")
                    return
                _LOGGER.warning("Refresh of %s failed, retrying next period: %s", self.account, exc)
                self._report(exc)
                continue
            self._accept(response)

    def _accept(self, response: SessionResponse) -> None:
        # One assignment: the pair is never observed half-updated.
        self.context = response.context
        records = build_records(self.prefix, self.account, response)
        for record in records:
            self.publisher.publish(record.topic, record.payload())
        _LOGGER.debug("Published %s record(s) for %s", len(records), self.account)

    def _fail(self, exc: LocatorError, message: str) -> None:
        self.state = WorkerState.FAILED
        _LOGGER.error("%s for %s: %s", message, self.account, exc)
        self._report(exc)

    def _report(self, exc: LocatorError) -> None:
        self._errors.put_nowait(AccountFailure(self.account, exc))
