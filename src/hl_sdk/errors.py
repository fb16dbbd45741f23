"""
errors.py – Exception hierarchy for the Hyperliquid SDK.

Signing-core failures are raised synchronously and never retried:

    SigningError
    ├── EncodingError        value not representable in the canonical encoding
    ├── PrecisionError       float → wire / int conversion would lose precision
    ├── MalformedInputError  bad address / cloid / order type / missing field
    └── CryptoError          the underlying secp256k1 operation failed

Transport failures (HLAPIError, HLExchangeError, HLWebSocketError) are kept
separate so callers can tell a rejected request from a local bug.
"""

from __future__ import annotations

from typing import Any


class HLError(Exception):
    """Base class for every error raised by hl_sdk."""


# ---------------------------------------------------------------------------
# Signing core
# ---------------------------------------------------------------------------

class SigningError(HLError):
    """Base class for signing-core failures."""


class EncodingError(SigningError):
    """An action could not be serialised to the canonical binary form."""


class PrecisionError(SigningError, ValueError):
    """A numeric conversion would silently round the value."""

    def __init__(self, message: str, value: Any) -> None:
        self.value = value
        super().__init__(f"{message}: {value!r}")


class MalformedInputError(SigningError, ValueError):
    """Input that can never be signed (bad hex, unknown variant, …)."""

    def __init__(self, message: str, value: Any = None) -> None:
        self.value = value
        if value is not None:
            message = f"{message}: {value!r}"
        super().__init__(message)


class CryptoError(SigningError):
    """The elliptic-curve signing or recovery operation failed."""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class HLAPIError(HLError):
    """Raised when the HTTP API returns a 4xx/5xx response."""

    def __init__(self, status_code: int, body: str, method: str = "", path: str = "") -> None:
        self.status_code = status_code
        self.body        = body
        self.method      = method.upper()
        self.path        = path
        location = f" {self.method} {self.path}" if path else ""
        super().__init__(f"Hyperliquid API error [{status_code}]{location}: {body}")


class HLExchangeError(HLError):
    """The /exchange endpoint answered with a non-"ok" status envelope."""

    def __init__(self, message: str, status: str = "err") -> None:
        self.status  = status
        self.message = message
        super().__init__(f"Exchange rejected action (status={status}): {message}")


class HLWebSocketError(HLError):
    """A WebSocket post failed or the connection dropped with posts in flight."""
