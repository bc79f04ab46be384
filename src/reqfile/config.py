import os
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

DEFAULT_TIMEOUT = 10.0

DEFAULT_HEADERS = (
    ("Accept", "application/json"),
    ("Content-Type", "application/json"),
)


def parse_bool(value: str) -> bool:
    match value.strip().lower():
        case "1" | "true" | "yes" | "on":
            return True
        case "0" | "false" | "no" | "off":
            return False
    raise ValueError(f"not a boolean: {value!r}")


def parse_timeout(value: str) -> float:
    timeout = float(value)
    if timeout <= 0:
        raise ValueError(f"timeout must be positive: {value!r}")
    return timeout


class NamedValueFromEnvironment(Generic[T]):
    """A setting that takes an explicit value when one is given, and reads
    the environment variable otherwise.

    The name reports where the value came from, which is used in error
    messages so users know whether to fix an option or a variable.
    """

    __slots__ = ("_envvar", "_name", "_value", "_from_envvar")

    def __init__(
        self,
        envvar: str,
        name: str,
        parse: Callable[[str], T],
        default: T,
        value: Optional[T] = None,
    ):
        self._envvar = envvar
        self._name = name
        if value is not None:
            self._value = value
            self._from_envvar = False
            return

        raw = os.environ.get(envvar)
        if not raw:
            self._value = default
            self._from_envvar = False
            return

        try:
            self._value = parse(raw)
        except ValueError as e:
            raise ValueError(f"invalid value for {envvar}: {e}") from e
        self._from_envvar = True

    def __str__(self):
        return str(self._value)

    def __repr__(self):
        return f"NamedValueFromEnvironment({self.name}={self._value!r})"

    @property
    def name(self) -> str:
        return self._envvar if self._from_envvar else self._name

    @property
    def value(self) -> T:
        return self._value


@dataclass(frozen=True)
class Settings:
    """Execution settings of reqfile."""

    timeout: float = DEFAULT_TIMEOUT
    default_headers: bool = True
    follow_redirects: bool = True

    @classmethod
    def from_environment(
        cls,
        timeout: Optional[float] = None,
        default_headers: Optional[bool] = None,
        follow_redirects: Optional[bool] = None,
    ) -> "Settings":
        """Load settings from the REQFILE_* environment variables. Explicit
        arguments take precedence over the environment.

        Raises:
            ValueError: if an environment variable holds an invalid value.
        """
        return cls(
            timeout=NamedValueFromEnvironment(
                "REQFILE_TIMEOUT", "timeout", parse_timeout, DEFAULT_TIMEOUT, timeout
            ).value,
            default_headers=NamedValueFromEnvironment(
                "REQFILE_DEFAULT_HEADERS",
                "default_headers",
                parse_bool,
                True,
                default_headers,
            ).value,
            follow_redirects=NamedValueFromEnvironment(
                "REQFILE_FOLLOW_REDIRECTS",
                "follow_redirects",
                parse_bool,
                True,
                follow_redirects,
            ).value,
        )

    @property
    def headers(self):
        return DEFAULT_HEADERS if self.default_headers else ()
