"""Exception hierarchy for the price feed."""

from __future__ import annotations

from typing import Any


class PriceFeedError(Exception):
    """Base exception for all price feed errors.

    Carries an optional `context` dict with structured metadata that can be
    logged without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


class ConfigError(PriceFeedError):
    """Invalid environment configuration. Raised by the factory at startup."""


class MalformedRecord(PriceFeedError):
    """A provider payload fragment could not be normalized.

    Policy: drop the fragment and keep the rest of the source's records.

    Context keys:
        source: str - source key the fragment came from
        field: str - the field that failed, when known
    """


class FetchError(PriceFeedError):
    """A whole source fetch failed (transport, HTTP status, parse or timeout).

    Policy: the source contributes zero records to the refresh. Never
    raised to the view layer.
    """

    def __init__(self, source_key: str, cause: BaseException | str) -> None:
        super().__init__(
            f"Fetch from {source_key} failed: {cause}",
            {"source": source_key},
        )
        self.source_key = source_key
        self.cause = cause


class ChannelTerminalFailure(PriceFeedError):
    """Live channel reconnect attempts were exhausted.

    Delivered to every subscriber's failure callback. The channel needs a
    new subscription before it will try again.
    """

    def __init__(self, attempts: int, last_error: BaseException | None = None) -> None:
        super().__init__(
            f"Live channel gave up after {attempts} failed connection attempts",
            {"attempts": attempts},
        )
        self.attempts = attempts
        self.last_error = last_error
