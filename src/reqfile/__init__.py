"""Parse request files and execute the HTTP requests they describe."""

from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional

from reqfile.config import Settings
from reqfile.error import (
    BuildError,
    CancelledError,
    ParseError,
    ReqfileError,
    TransportError,
)
from reqfile.executor import (
    Cancelled,
    Completed,
    Execution,
    ExecutionState,
    Executor,
    Failed,
    Outcome,
)
from reqfile.request import Method, Request, RequestFile, load, parse
from reqfile.response import BytePayload, Response, TextPayload
from reqfile.status import Status
from reqfile.transport import HttpxTransport, Transport

__all__ = [
    "BuildError",
    "BytePayload",
    "Cancelled",
    "CancelledError",
    "Completed",
    "Execution",
    "ExecutionState",
    "Executor",
    "Failed",
    "HttpxTransport",
    "Method",
    "Outcome",
    "ParseError",
    "ReqfileError",
    "Request",
    "RequestFile",
    "Response",
    "Settings",
    "Status",
    "TextPayload",
    "Transport",
    "TransportError",
    "load",
    "parse",
    "run",
]


async def main(
    requests: Iterable[Request],
    transport: Optional[Transport] = None,
    timeout: Optional[float] = None,
) -> List[Execution]:
    """Execute requests concurrently with a new executor and return their
    settled executions, in the order of the requests."""
    async with Executor(transport, timeout=timeout) as executor:
        return await executor.execute_all(requests)


def run(
    requests: Iterable[Request],
    transport: Optional[Transport] = None,
    timeout: Optional[float] = None,
) -> List[Execution]:
    """Execute requests from synchronous code.

    This function runs a new event loop, programs that manage their own
    loop use `main` or an Executor instead.
    """
    return asyncio.run(main(requests, transport, timeout))
