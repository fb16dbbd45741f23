"""
encoding.py – Canonical msgpack encoding and the L1 action hash.

The exchange recomputes the hash of every signed action from the JSON it
receives, so the bytes produced here must match the reference encoder
exactly.  Three rules matter:

1. Key order is insertion order.  A Python ``dict`` keeps it; wire records
   (pydantic models) emit their fields in declaration order under their
   aliases.
2. Non-negative integers use the unsigned msgpack tags (``cc``/``cd``/``ce``/
   ``cf``), negative integers the signed ones.  msgpack-python already does
   this for ``int``; nothing here may coerce an integer to float or string.
3. Optional wire fields that are unset are absent, not ``nil``.

Hash layout
-----------
::

    keccak256( msgpack(action)
             ‖ nonce            (8 bytes, big-endian)
             ‖ 00               (no vault)   |  01 ‖ vault (20 bytes)
             ‖ [00 ‖ expiresAfter (8 bytes, big-endian)]   only when set )
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import msgpack
from eth_utils import keccak
from pydantic import BaseModel

from .errors import EncodingError, MalformedInputError
from .types import Cloid
from .wire import address_to_bytes

logger = logging.getLogger(__name__)

_UINT64_MAX      = (1 << 64) - 1
_NO_VAULT        = b"\x00"
_VAULT_PRESENT   = b"\x01"
_EXPIRES_MARKER  = b"\x00"


def _default(obj: Any) -> Any:
    """msgpack hook for values that are not plain containers or scalars."""
    if isinstance(obj, Cloid):
        return obj.to_raw()
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True, exclude_none=True)
    raise TypeError(f"cannot serialize {type(obj).__name__!r} object")


def encode_action(action: Any) -> bytes:
    """
    Serialise an action to its canonical msgpack bytes.

    Raises EncodingError for values msgpack cannot represent (arbitrary
    objects, integers outside the 64-bit range).
    """
    try:
        return msgpack.packb(action, default=_default, use_bin_type=True)
    except (TypeError, ValueError, OverflowError) as exc:
        raise EncodingError(f"action is not encodable: {exc}") from exc


def _nonce_bytes(nonce: int) -> bytes:
    if isinstance(nonce, bool) or not isinstance(nonce, int):
        raise MalformedInputError("nonce must be an integer", nonce)
    if not 0 <= nonce <= _UINT64_MAX:
        raise MalformedInputError("nonce must fit in an unsigned 64-bit integer", nonce)
    return nonce.to_bytes(8, "big")


def _expires_bytes(expires_after: int) -> bytes:
    try:
        return expires_after.to_bytes(8, "big", signed=True)
    except (OverflowError, AttributeError) as exc:
        raise MalformedInputError(
            "expires_after must fit in a signed 64-bit integer", expires_after
        ) from exc


def action_hash(
    action: Any,
    vault_address: Optional[str],
    nonce: int,
    expires_after: Optional[int] = None,
) -> bytes:
    """
    Compute the 32-byte keccak digest that the phantom agent commits to.

    Parameters
    ----------
    action         : ordered action mapping (or wire record)
    vault_address  : vault / sub-account the action trades for, or None
    nonce          : unsigned 64-bit nonce, usually a ms timestamp
    expires_after  : optional ms timestamp after which the action is void
    """
    data = bytearray(encode_action(action))
    data += _nonce_bytes(nonce)

    if vault_address is None:
        data += _NO_VAULT
    else:
        data += _VAULT_PRESENT
        data += address_to_bytes(vault_address)

    if expires_after is not None:
        data += _EXPIRES_MARKER
        data += _expires_bytes(expires_after)

    digest = keccak(bytes(data))
    logger.debug(
        "action_hash type=%s nonce=%d vault=%s expires=%s digest=0x%s",
        action.get("type") if isinstance(action, dict) else type(action).__name__,
        nonce,
        vault_address is not None,
        expires_after,
        digest.hex(),
    )
    return digest
