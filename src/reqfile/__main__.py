"""Execute the HTTP requests of a request file.

Usage:
  reqfile <file> [--request=<n>]... [--timeout=<seconds>] [--output=<path>] [--body-only] [--no-default-headers] [-v | --verbose]
  reqfile <file> --list
  reqfile -h | --help

Options:
  -l --list                List the requests of the file and exit.
  -r --request=<n>         Index of a request to execute, may be repeated.
                           All requests are executed when omitted.

     --timeout=<seconds>   Timeout of each request, REQFILE_TIMEOUT or 10
                           seconds when omitted.
  -o --output=<path>       Save the response of the last selected request.
     --body-only           Only save the body of the response.
     --no-default-headers  Do not send the default JSON Accept and
                           Content-Type headers.

  -v --verbose             Show verbose details in the log.
  -h --help                Show this help information.
"""

import asyncio
import logging
import os
import sys
from typing import List, Optional, Sequence

from docopt import docopt

from reqfile.config import Settings, parse_timeout
from reqfile.error import ParseError
from reqfile.executor import Completed, Execution, Executor, Failed
from reqfile.request import Request, load


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = docopt(__doc__, argv=argv)

    _configure_logging(args["--verbose"])

    path = args["<file>"]
    try:
        requests = load(path)
    except OSError as e:
        print(f"error: {path}: {e.strerror or e}", file=sys.stderr)
        return 1
    except ParseError as e:
        print(f"error: {path}: {e}", file=sys.stderr)
        return 1

    if args["--list"]:
        print(requests, end="")
        return 0

    try:
        indexes = _selected_indexes(args["--request"], len(requests))
        timeout = args["--timeout"]
        settings = Settings.from_environment(
            timeout=parse_timeout(timeout) if timeout else None,
            default_headers=False if args["--no-default-headers"] else None,
        )
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    selected = [requests[i] for i in indexes]
    try:
        failed = asyncio.run(
            _execute(selected, indexes, settings, args["--output"], args["--body-only"])
        )
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130

    return 1 if failed else 0


def _configure_logging(verbose: bool):
    if not os.getenv("NO_COLOR"):
        logging.addLevelName(logging.WARNING, "\033[1;33mWARN\033[1;0m")
        logging.addLevelName(logging.ERROR, "\033[1;31mERROR\033[1;0m")

    logger = logging.getLogger()
    if verbose:
        logger.setLevel(logging.DEBUG)
        fmt = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
    else:
        logger.setLevel(logging.INFO)
        fmt = "%(asctime)s [%(levelname)s] %(message)s"
        logging.getLogger("httpx").disabled = True

    log_formatter = logging.Formatter(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")
    log_handler = logging.StreamHandler(sys.stderr)
    log_handler.setFormatter(log_formatter)
    logger.addHandler(log_handler)


def _selected_indexes(values: List[str], count: int) -> List[int]:
    if not values:
        return list(range(count))

    indexes = []
    for value in values:
        try:
            index = int(value)
        except ValueError:
            raise ValueError(f"invalid request index: {value}") from None
        if not 0 <= index < count:
            raise ValueError(f"no request #{index} in file ({count} request(s))")
        indexes.append(index)
    return indexes


async def _execute(
    requests: List[Request],
    indexes: List[int],
    settings: Settings,
    output: Optional[str],
    body_only: bool,
) -> bool:
    failed = False
    async with Executor(settings=settings) as executor:
        executions = [executor.submit(r, key=i) for r, i in zip(requests, indexes)]
        async for execution in executor.as_completed(executions):
            print(_format(execution))
            if isinstance(execution.outcome, Failed):
                failed = True

    if output and executions:
        _save(executions[-1], output, body_only)
    return failed


def _format(execution: Execution) -> str:
    head = f"#{execution.key} {execution.request.request_line}"
    match execution.outcome:
        case Completed(response=response):
            elapsed = ""
            if response.elapsed is not None:
                elapsed = f" ({response.elapsed.total_seconds() * 1000:.0f} ms)"
            return f"{head}{elapsed}\n{response.render()}\n"
        case Failed(error=error):
            return f"{head}\nfailed: {error.status}: {error}\n"
    return f"{head}\ncancelled\n"


def _save(execution: Execution, path: str, body_only: bool):
    outcome = execution.outcome
    if not isinstance(outcome, Completed):
        print(
            f"error: #{execution.key} has no response to save", file=sys.stderr
        )
        return

    if body_only:
        with open(path, "wb") as f:
            f.write(outcome.response.body)
    else:
        with open(path, "w", encoding="utf-8") as f:
            f.write(outcome.response.render())
    print(f"saved response of #{execution.key} to {path}", file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
