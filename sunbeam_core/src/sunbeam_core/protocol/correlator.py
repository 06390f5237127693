"""Request/response correlation for Sunbeam.

Outbound requests are registered in a single correlation table keyed by
request id. Each entry is bound to a namespace (the inbound event name
that carries its reply) and to a deadline. Whichever comes first, a
matching reply or the deadline, terminates the entry; the other path is
then a no-op.

Lifecycle of an entry:
    PENDING -> RESOLVED   (reply delivered, or application error reply)
    PENDING -> TIMED_OUT  (deadline elapsed; late replies are dropped)
    PENDING -> FAILED     (send failed, or cancelled by the caller/close)

Design Decisions:
- asyncio timers and futures; no threads
- Namespace bindings are removed on every terminal transition
- One delivery resolves every entry waiting on that namespace
"""

from __future__ import annotations

import asyncio
import random
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final

import structlog

from sunbeam_core.common.errors import (
    AuthenticationError,
    DuplicateRequestError,
    RequestTimeoutError,
    SunbeamError,
)

log = structlog.get_logger()

RequestId = str | int
SendFn = Callable[[str, Any], Awaitable[None]]
ReplyCallback = Callable[[BaseException | None, Any], Any]

HISTORY_SIZE: Final[int] = 256
REQUEST_ID_SPACE: Final[int] = 10**16


def random_request_id() -> int:
    """Random correlation id below 10**16."""
    return random.randrange(REQUEST_ID_SPACE)


# ==============================================================================
# Enums
# ==============================================================================
class RequestState(str, Enum):
    """State of one correlation table entry."""

    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    TIMED_OUT = "TIMED_OUT"
    FAILED = "FAILED"


# ==============================================================================
# Correlation Entry
# ==============================================================================
@dataclass
class PendingRequest:
    """One in-flight request.

    Attributes:
        request_id: Correlation id.
        namespace: Inbound event name carrying the reply.
        role: Channel role the request was sent on.
        deadline: Loop time at which the request times out.
        future: Resolved exactly once with the reply or an error.
        callback: Optional ``(error, result)`` completion callback.
    """

    request_id: RequestId
    namespace: str
    role: str
    timeout_ms: float
    deadline: float
    future: asyncio.Future[Any]
    callback: ReplyCallback | None = None
    state: RequestState = RequestState.PENDING
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)


def auth_error_from_reply(reply: Any) -> AuthenticationError | None:
    """Return the error carried by an ``auth``/``error`` reply, if any."""
    if not isinstance(reply, Mapping):
        return None
    if reply.get("channel") == "auth" and reply.get("event") == "error":
        return AuthenticationError(reply.get("msg"), code=reply.get("code"))
    return None


# ==============================================================================
# Correlator
# ==============================================================================
class RequestCorrelator:
    """Correlates outbound requests with asynchronous inbound replies.

    Attributes:
        send: Coroutine function sending a payload on a channel role.
    """

    def __init__(self, send: SendFn) -> None:
        self.send = send
        self._table: dict[RequestId, PendingRequest] = {}
        self._namespaces: dict[str, list[RequestId]] = {}
        self._history: OrderedDict[RequestId, RequestState] = OrderedDict()

    @property
    def in_flight(self) -> int:
        return len(self._table)

    def pending(self) -> list[PendingRequest]:
        return list(self._table.values())

    def waiting_on(self, namespace: str) -> list[RequestId]:
        return list(self._namespaces.get(namespace, ()))

    def state_of(self, request_id: RequestId) -> RequestState | None:
        """State of a live or recently finished request."""
        entry = self._table.get(request_id)
        if entry is not None:
            return entry.state
        return self._history.get(request_id)

    async def send_request(
        self,
        role: str,
        request_id: RequestId,
        timeout_ms: float,
        payload: Any,
        namespace: str,
        callback: ReplyCallback | None = None,
    ) -> Any:
        """Send ``payload`` and wait for the reply delivered on ``namespace``.

        Args:
            role: Channel role to send on.
            request_id: Correlation id, unique among in-flight requests.
            timeout_ms: Deadline in milliseconds.
            payload: Message to send.
            namespace: Inbound event name that carries the reply.
            callback: Optional ``(error, result)`` callback, invoked once.

        Returns:
            The raw reply.

        Raises:
            DuplicateRequestError: If ``request_id`` is already in flight.
            RequestTimeoutError: If no reply arrived before the deadline.
            AuthenticationError: If the reply is an authentication error.
        """
        if request_id in self._table:
            raise DuplicateRequestError(request_id)

        loop = asyncio.get_running_loop()
        timeout_s = max(0.0, timeout_ms / 1000.0)
        entry = PendingRequest(
            request_id=request_id,
            namespace=namespace,
            role=role,
            timeout_ms=timeout_ms,
            deadline=loop.time() + timeout_s,
            future=loop.create_future(),
            callback=callback,
        )
        entry.timer = loop.call_later(timeout_s, self._expire, request_id)
        entry.future.add_done_callback(self._on_future_done(entry))

        self._table[request_id] = entry
        self._namespaces.setdefault(namespace, []).append(request_id)

        log.debug(
            "Request registered",
            request_id=request_id,
            namespace=namespace,
            role=role,
            timeout_ms=timeout_ms,
        )

        try:
            await self.send(role, payload)
        except Exception as exc:
            log.error(
                "Request send failed",
                request_id=request_id,
                role=role,
                error=str(exc),
            )
            self._finish(entry, RequestState.FAILED, error=exc)

        return await entry.future

    def deliver(self, namespace: str, reply: Any) -> int:
        """Resolve every entry waiting on ``namespace`` with ``reply``.

        Returns:
            Number of entries resolved. Zero means the reply was late or
            unsolicited and has been dropped.
        """
        request_ids = self._namespaces.get(namespace)
        if not request_ids:
            log.debug("Dropping reply with no waiter", namespace=namespace)
            return 0

        resolved = 0
        for request_id in list(request_ids):
            entry = self._table.get(request_id)
            if entry is None:
                continue

            error = auth_error_from_reply(reply)
            if error is not None:
                log.warning(
                    "Request rejected by venue",
                    request_id=request_id,
                    namespace=namespace,
                    code=error.code,
                )
                self._finish(entry, RequestState.RESOLVED, error=error)
            else:
                self._finish(entry, RequestState.RESOLVED, result=reply)
            resolved += 1
        return resolved

    def cancel_all(self, error: BaseException | None = None) -> int:
        """Fail every in-flight request; return how many were failed."""
        entries = list(self._table.values())
        for entry in entries:
            self._finish(
                entry,
                RequestState.FAILED,
                error=error or SunbeamError("Request cancelled"),
            )
        return len(entries)

    def _expire(self, request_id: RequestId) -> None:
        entry = self._table.get(request_id)
        if entry is None:
            return
        log.warning(
            "Request timed out",
            request_id=request_id,
            namespace=entry.namespace,
            timeout_ms=entry.timeout_ms,
        )
        self._finish(
            entry,
            RequestState.TIMED_OUT,
            error=RequestTimeoutError(request_id, entry.timeout_ms),
        )

    def _finish(
        self,
        entry: PendingRequest,
        state: RequestState,
        result: Any = None,
        error: BaseException | None = None,
    ) -> None:
        """Single terminal transition of an entry."""
        if entry.state is not RequestState.PENDING:
            return
        entry.state = state

        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None

        self._table.pop(entry.request_id, None)
        waiting = self._namespaces.get(entry.namespace)
        if waiting is not None:
            if entry.request_id in waiting:
                waiting.remove(entry.request_id)
            if not waiting:
                del self._namespaces[entry.namespace]

        self._history[entry.request_id] = state
        while len(self._history) > HISTORY_SIZE:
            self._history.popitem(last=False)

        if not entry.future.done():
            if error is not None:
                entry.future.set_exception(error)
            else:
                entry.future.set_result(result)

        if entry.callback is not None:
            try:
                entry.callback(error, None if error is not None else result)
            except Exception:
                log.exception(
                    "Request callback failed",
                    request_id=entry.request_id,
                    namespace=entry.namespace,
                )

    def _on_future_done(self, entry: PendingRequest) -> Callable[[asyncio.Future[Any]], None]:
        def handler(fut: asyncio.Future[Any]) -> None:
            if fut.cancelled() and entry.state is RequestState.PENDING:
                log.info("Request abandoned by caller", request_id=entry.request_id)
                self._finish(entry, RequestState.FAILED, error=asyncio.CancelledError())

        return handler
