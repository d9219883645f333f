"""Errors raised while acquiring instances and forwarding requests."""

from dataclasses import dataclass


@dataclass
class ProbeAttempt:
    """Outcome of one readiness check."""

    number: int
    succeeded: bool
    error: str | None = None


class GatewayError(Exception):
    """Base class for classified gateway failures."""


class InstanceUnavailableError(GatewayError):
    """Readiness probing exhausted its attempts or its deadline."""

    def __init__(
        self,
        name: str,
        message: str,
        attempts: list[ProbeAttempt] | None = None,
        last_error: BaseException | None = None,
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.name = name
        self.attempts = attempts or []
        self.last_error = last_error
        self.timed_out = timed_out


class ForwardTimeoutError(GatewayError):
    """Forwarded request exceeded its deadline."""

    def __init__(self, name: str, timeout: float):
        super().__init__(f"Request timed out after {_format_duration(timeout)}")
        self.name = name
        self.timeout = timeout


class TransportError(GatewayError):
    """Network or protocol failure while forwarding a request."""

    def __init__(self, name: str, cause: BaseException):
        super().__init__(str(cause) or type(cause).__name__)
        self.name = name
        self.cause = cause


class InputError(GatewayError):
    """Inbound request body could not be parsed."""


def _format_duration(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    if float(seconds).is_integer():
        return f"{int(seconds)} seconds"
    return f"{seconds:g} seconds"
