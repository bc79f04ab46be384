"""Execution of requests against an HTTP transport.

Each request runs in its own asyncio task, so a slow server never holds
back other requests. The result of an execution is one of three outcomes:
the request completed with a response (whatever its status code), it
failed with a TransportError, or it was cancelled.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Iterable, List, Optional, Union

from typing_extensions import TypeAlias

from reqfile.config import Settings
from reqfile.error import CancelledError, TransportError, transport_error
from reqfile.request import Request
from reqfile.response import Response
from reqfile.status import Status
from reqfile.transport import HttpxTransport, Transport

logger = logging.getLogger(__name__)


@enum.unique
class ExecutionState(enum.Enum):
    BUILT = "built"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def __str__(self):
        return self.value

    @property
    def terminal(self) -> bool:
        return self in {
            ExecutionState.COMPLETED,
            ExecutionState.FAILED,
            ExecutionState.CANCELLED,
        }


@dataclass(frozen=True)
class Completed:
    """The server answered the request."""

    response: Response

    @property
    def status(self) -> Status:
        return Status.OK


@dataclass(frozen=True)
class Failed:
    """No response could be obtained from the server."""

    error: TransportError

    @property
    def status(self) -> Status:
        return self.error.status


@dataclass(frozen=True)
class Cancelled:
    """The caller cancelled the execution before it completed."""

    error: CancelledError

    @property
    def status(self) -> Status:
        return Status.CANCELLED


Outcome: TypeAlias = Union[Completed, Failed, Cancelled]


class Execution:
    """Handle on the execution of one request.

    Executions are created by Executor.submit. The key is an opaque value
    chosen by the caller to recognize the execution when executions
    complete out of order.
    """

    __slots__ = ("request", "key", "_state", "_outcome", "_task")

    def __init__(self, request: Request, key: Any = None):
        self.request = request
        self.key = key
        self._state = ExecutionState.BUILT
        self._outcome: Optional[Outcome] = None
        self._task: Optional[asyncio.Task] = None

    def __repr__(self):
        return f"Execution({self.key!r}, {self.request.request_line!r}, {self._state})"

    @property
    def state(self) -> ExecutionState:
        return self._state

    @property
    def outcome(self) -> Optional[Outcome]:
        """The outcome of the execution, or None while it is not done."""
        return self._outcome

    @property
    def status(self) -> Status:
        if self._outcome is None:
            return Status.UNSPECIFIED
        return self._outcome.status

    def done(self) -> bool:
        return self._outcome is not None

    def cancel(self) -> bool:
        """Cancel the execution. Returns False if it was already done."""
        if self.done() or self._task is None:
            return False
        logger.debug("cancelling %s", self.request.request_line)
        return self._task.cancel()

    async def wait(self) -> Outcome:
        """Wait for the execution to settle and return its outcome. Failures
        of the request are returned, not raised."""
        if self._outcome is None:
            assert self._task is not None, "execution was not submitted"
            await asyncio.wait([self._task])
            if self._outcome is None:
                if not self._task.cancelled():
                    # Only a BaseException can escape _run without an outcome.
                    self._task.result()
                # The task was cancelled before it got a chance to run.
                self._settle_cancelled()
        assert self._outcome is not None
        return self._outcome

    async def response(self) -> Response:
        """Wait for the execution and return its response.

        Raises:
            TransportError: if no response could be obtained.
            CancelledError: if the execution was cancelled.
        """
        outcome = await self.wait()
        match outcome:
            case Completed(response=response):
                return response
            case Failed(error=error) | Cancelled(error=error):
                raise error
        raise AssertionError("unreachable")

    def _start(self, task: asyncio.Task):
        self._task = task
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task):
        if self._outcome is None and task.cancelled():
            self._settle_cancelled()

    def _settle(self, outcome: Outcome):
        self._outcome = outcome
        match outcome:
            case Completed():
                self._state = ExecutionState.COMPLETED
            case Failed():
                self._state = ExecutionState.FAILED
            case Cancelled():
                self._state = ExecutionState.CANCELLED

    def _settle_cancelled(self):
        error = CancelledError(f"{self.request.request_line} was cancelled")
        self._settle(Cancelled(error))


class Executor:
    """Executes requests through a Transport.

    The executor performs exactly one attempt per request, it never
    retries. Executions are independent of each other: the failure or
    cancellation of one never affects the others.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        settings: Optional[Settings] = None,
        timeout: Optional[float] = None,
    ):
        """Create an executor.

        Args:
            transport: The transport sending requests. When omitted, the
                executor creates an HttpxTransport from the settings and
                closes it in aclose().

            settings: Settings of the transport created by the executor.
                Loaded from the environment when omitted.

            timeout: Timeout in seconds applied to every request, overriding
                the default timeout of the transport.
        """
        self._owned = transport is None
        if transport is None:
            transport = HttpxTransport(settings=settings)
        self.transport = transport
        self.timeout = timeout
        self._executions: List[Execution] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.aclose()

    async def aclose(self):
        """Cancel the executions still in flight and close the transport
        if the executor created it."""
        pending = [e for e in self._executions if not e.done()]
        for execution in pending:
            execution.cancel()
        for execution in pending:
            await execution.wait()
        self._executions.clear()
        if self._owned:
            await self.transport.aclose()

    async def execute(self, request: Request) -> Response:
        """Send a request and return the response, whatever its status code.

        Raises:
            TransportError: if the transport failed to obtain a response.
                Other exceptions raised by the transport propagate as is.
        """
        try:
            return await self.transport.send(
                str(request.method),
                request.uri,
                request.headers,
                request.content(),
                self.timeout,
            )
        except TransportError as e:
            if e.request is None:
                e.request = request
            raise
        except OSError as e:
            raise transport_error(e, request) from e

    def submit(self, request: Request, key: Any = None) -> Execution:
        """Start executing a request in a new task and return its handle.

        Must be called from a running event loop.
        """
        execution = Execution(request, key)
        execution._start(asyncio.create_task(self._run(execution)))
        self._executions = [e for e in self._executions if not e.done()]
        self._executions.append(execution)
        return execution

    async def execute_all(self, requests: Iterable[Request]) -> List[Execution]:
        """Execute requests concurrently and wait for all of them to settle.

        The executions are returned in the order of the requests, and keyed
        by their index. If the caller is cancelled, every execution still in
        flight is cancelled.
        """
        executions = [self.submit(r, key=i) for i, r in enumerate(requests)]
        try:
            await asyncio.gather(*(e.wait() for e in executions))
        except asyncio.CancelledError:
            for execution in executions:
                execution.cancel()
            raise
        return executions

    async def as_completed(
        self, executions: Iterable[Execution]
    ) -> AsyncIterator[Execution]:
        """Yield executions as they settle, in completion order."""
        pending = {}
        for execution in executions:
            if execution.done():
                yield execution
            else:
                assert execution._task is not None, "execution was not submitted"
                pending[execution._task] = execution

        while pending:
            done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                execution = pending.pop(task)
                await execution.wait()
                yield execution

    async def _run(self, execution: Execution):
        request = execution.request
        execution._state = ExecutionState.EXECUTING
        logger.debug("executing %s", request.request_line)
        try:
            response = await self.execute(request)
            logger.debug(
                "%s completed with status %d",
                request.request_line,
                response.status_code,
            )
        except TransportError as e:
            logger.debug("%s failed: %s (%s)", request.request_line, e, e.status)
            execution._settle(Failed(e))
        except asyncio.CancelledError:
            logger.debug("%s cancelled", request.request_line)
            execution._settle_cancelled()
            raise
        except Exception as e:
            logger.error("%s crashed", request.request_line, exc_info=True)
            error = transport_error(e, request)
            error.__cause__ = e
            execution._settle(Failed(error))
        else:
            execution._settle(Completed(response))
