"""Exception hierarchy shared by the watch engine and its collaborators."""

from __future__ import annotations


class PRWatchError(Exception):
    """Base class for every error raised by prwatch."""


class FetchError(PRWatchError):
    """Transient failure while acquiring a snapshot (network, API, parsing)."""


class ParseError(FetchError):
    """A raw API payload could not be turned into a fully-typed record."""


class ResolutionError(PRWatchError):
    """An identifier or ticket key did not resolve to a pull request number."""


class NotificationError(PRWatchError):
    """A notification sink failed to deliver. Never propagated past the sink."""


class RetryExhaustedError(PRWatchError):
    """Raised by RetryExecutor once every allowed attempt has failed."""

    def __init__(self, label: str, attempts: int, last_error: BaseException | None):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label} failed after {attempts} attempts: {last_error}")
