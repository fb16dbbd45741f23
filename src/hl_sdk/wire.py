"""
wire.py – Deterministic number/address conversions for signed payloads.

Everything that ends up inside a hashed action has an exact textual or
integer form.  Floats are never passed through as-is: prices and sizes are
rendered with at most 8 decimals, and integer-scaled amounts are checked for
rounding before being accepted.

NonceProvider
-------------
Nonces must be unique per signing wallet.  The default provider is a
millisecond timestamp; when several threads sign with the same wallet use a
shared ``MonotonicNonce`` so two calls in the same millisecond still get
distinct values::

    nonce = MonotonicNonce()
    sign_l1_action(wallet, action, None, nonce(), None, is_mainnet=True)
"""

from __future__ import annotations

import math
import threading
import time
from decimal import Decimal
from typing import Callable

from .errors import MalformedInputError, PrecisionError

# Callable with no args that returns a uint64 nonce value
NonceProvider = Callable[[], int]

_WIRE_DECIMALS       = 8
_WIRE_TOLERANCE      = 1e-12
_INT_TOLERANCE       = 1e-3
_HASHING_DECIMALS    = 8
_USD_DECIMALS        = 6
_ADDRESS_HEX_LEN     = 40


def float_to_wire(x: float) -> str:
    """
    Render a price or size as the exact string the exchange hashes.

    Rounds to 8 decimals, rejects the value if that rounding moved it by
    1e-12 or more, maps -0 to "0" and strips trailing zeros.

        float_to_wire(1670.1)  -> "1670.1"
        float_to_wire(100.0)   -> "100"
    """
    if not math.isfinite(x):
        raise MalformedInputError("float_to_wire requires a finite number", x)

    rounded = f"{x:.{_WIRE_DECIMALS}f}"
    if abs(float(rounded) - x) >= _WIRE_TOLERANCE:
        raise PrecisionError("float_to_wire causes rounding", x)

    normalized = Decimal(rounded).normalize()
    if normalized.is_zero():
        return "0"
    return f"{normalized:f}"


def float_to_int(x: float, power: int) -> int:
    """Scale ``x`` by 10**power, refusing values that do not land on an integer."""
    with_decimals = x * 10 ** power
    if abs(round(with_decimals) - with_decimals) >= _INT_TOLERANCE:
        raise PrecisionError("float_to_int causes rounding", x)
    return int(round(with_decimals))


def float_to_int_for_hashing(x: float) -> int:
    return float_to_int(x, _HASHING_DECIMALS)


def float_to_usd_int(x: float) -> int:
    return float_to_int(x, _USD_DECIMALS)


def round_price(px: float, sig_figs: int = 5, decimals: int = 6) -> float:
    """Round to ``sig_figs`` significant figures, then to ``decimals`` places."""
    if px == 0:
        return 0.0
    return round(float(f"{px:.{sig_figs}g}"), decimals)


def address_to_bytes(address: str) -> bytes:
    """Decode a 0x-prefixed 20-byte hex address to raw bytes (case-insensitive)."""
    stripped = address[2:] if address[:2] in ("0x", "0X") else address
    if len(stripped) != _ADDRESS_HEX_LEN:
        raise MalformedInputError(
            f"address must be {_ADDRESS_HEX_LEN} hex characters", address
        )
    try:
        return bytes.fromhex(stripped)
    except ValueError as exc:
        raise MalformedInputError("address is not valid hex", address) from exc


def get_timestamp_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


class MonotonicNonce:
    """
    Thread-safe nonce provider.

    Returns the current millisecond timestamp, bumped past the previously
    issued value so concurrent callers never share a nonce.
    """

    def __init__(self, clock: Callable[[], int] = get_timestamp_ms) -> None:
        self._clock = clock
        self._last  = 0
        self._lock  = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            self._last = max(self._clock(), self._last + 1)
            return self._last
