"""Exception hierarchy shared by every layer of the bot."""

from __future__ import annotations


class EmtBotError(Exception):
    """Base class for all errors raised by emtbus."""


class EmtApiError(EmtBotError):
    """The EMT API could not be reached or returned an unusable answer."""


# ────────────────────────────────────────────────────────────────────────────
# Stop normalization
# ────────────────────────────────────────────────────────────────────────────

class StopNormalizationError(EmtBotError):
    """A raw stop record could not be turned into a Stop."""


class MalformedStopError(StopNormalizationError):
    pass


class UnknownLineError(StopNormalizationError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Line {code} is not in the reference catalog")
        self.code = code


class PositionUnavailableError(StopNormalizationError):
    pass


# ────────────────────────────────────────────────────────────────────────────
# Query resolution
# ────────────────────────────────────────────────────────────────────────────

class EmptyQueryError(EmtBotError):
    """Neither a usable stop number nor a location was given."""


class RefreshError(EmtBotError):
    """A refresh request cannot be completed; the message stays as it is."""


class StopNotFoundError(RefreshError):
    pass


class AmbiguousStopError(RefreshError):
    pass


class ArrivalsUnavailableError(RefreshError):
    pass
