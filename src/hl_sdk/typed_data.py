"""
typed_data.py – EIP-712 envelopes for L1 and user-signed actions.

Two signing domains exist:

    context        name                         version  chainId            verifyingContract
    L1 action      "Exchange"                   "1"      1337               0x000…000
    user-signed    "HyperliquidSignTransaction" "1"      signatureChainId   0x000…000

L1 actions (orders, cancels, leverage, …) are not signed directly.  Their
msgpack hash is wrapped in a *phantom agent* ``{source, connectionId}``
and that struct is signed under the "Exchange" domain.

User-signed actions (transfers, withdrawals, agent approval, …) are signed
field by field.  Each kind has a fixed field table; only the fields in that
table, in that order, reach the message.  ``signatureChainId`` is read for
the domain and never appears in the message.

Envelopes are the ``full_message`` dicts accepted by
``eth_account.messages.encode_typed_data``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from eth_account.messages import SignableMessage, encode_typed_data
from eth_utils import keccak

from .errors import MalformedInputError
from .types import ZERO_ADDRESS

logger = logging.getLogger(__name__)

SignTypeTable = list[dict[str, str]]

L1_CHAIN_ID                = 1337
DEFAULT_SIGNATURE_CHAIN_ID = "0x66eee"
MAINNET_SOURCE             = "a"
TESTNET_SOURCE             = "b"

EIP712_DOMAIN: SignTypeTable = [
    {"name": "name",              "type": "string"},
    {"name": "version",           "type": "string"},
    {"name": "chainId",           "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

AGENT_TYPE: SignTypeTable = [
    {"name": "source",       "type": "string"},
    {"name": "connectionId", "type": "bytes32"},
]


# ---------------------------------------------------------------------------
# User-signed field tables
# ---------------------------------------------------------------------------

USD_SEND_SIGN_TYPES: SignTypeTable = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "destination",      "type": "string"},
    {"name": "amount",           "type": "string"},
    {"name": "time",             "type": "uint64"},
]

SPOT_TRANSFER_SIGN_TYPES: SignTypeTable = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "destination",      "type": "string"},
    {"name": "token",            "type": "string"},
    {"name": "amount",           "type": "string"},
    {"name": "time",             "type": "uint64"},
]

WITHDRAW_SIGN_TYPES: SignTypeTable = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "destination",      "type": "string"},
    {"name": "amount",           "type": "string"},
    {"name": "time",             "type": "uint64"},
]

USD_CLASS_TRANSFER_SIGN_TYPES: SignTypeTable = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "amount",           "type": "string"},
    {"name": "toPerp",           "type": "bool"},
    {"name": "nonce",            "type": "uint64"},
]

SEND_ASSET_SIGN_TYPES: SignTypeTable = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "destination",      "type": "string"},
    {"name": "sourceDex",        "type": "string"},
    {"name": "destinationDex",   "type": "string"},
    {"name": "token",            "type": "string"},
    {"name": "amount",           "type": "string"},
    {"name": "fromSubAccount",   "type": "string"},
    {"name": "nonce",            "type": "uint64"},
]

TOKEN_DELEGATE_TYPES: SignTypeTable = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "validator",        "type": "address"},
    {"name": "wei",              "type": "uint64"},
    {"name": "isUndelegate",     "type": "bool"},
    {"name": "nonce",            "type": "uint64"},
]

APPROVE_AGENT_SIGN_TYPES: SignTypeTable = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "agentAddress",     "type": "address"},
    {"name": "agentName",        "type": "string"},
    {"name": "nonce",            "type": "uint64"},
]

APPROVE_BUILDER_FEE_SIGN_TYPES: SignTypeTable = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "maxFeeRate",       "type": "string"},
    {"name": "builder",          "type": "address"},
    {"name": "nonce",            "type": "uint64"},
]

USER_DEX_ABSTRACTION_SIGN_TYPES: SignTypeTable = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "user",             "type": "address"},
    {"name": "enabled",          "type": "bool"},
    {"name": "nonce",            "type": "uint64"},
]

CONVERT_TO_MULTI_SIG_USER_SIGN_TYPES: SignTypeTable = [
    {"name": "hyperliquidChain", "type": "string"},
    {"name": "signers",          "type": "string"},
    {"name": "nonce",            "type": "uint64"},
]

MULTI_SIG_ENVELOPE_SIGN_TYPES: SignTypeTable = [
    {"name": "hyperliquidChain",   "type": "string"},
    {"name": "multiSigActionHash", "type": "bytes32"},
    {"name": "nonce",              "type": "uint64"},
]


@dataclass(frozen=True)
class UserSignedKind:
    """Primary type name and field table for one user-signed action type."""
    primary_type: str
    sign_types:   SignTypeTable


USER_SIGNED_ACTIONS: dict[str, UserSignedKind] = {
    "usdSend":               UserSignedKind("HyperliquidTransaction:UsdSend",               USD_SEND_SIGN_TYPES),
    "spotSend":              UserSignedKind("HyperliquidTransaction:SpotSend",              SPOT_TRANSFER_SIGN_TYPES),
    "withdraw3":             UserSignedKind("HyperliquidTransaction:Withdraw",              WITHDRAW_SIGN_TYPES),
    "usdClassTransfer":      UserSignedKind("HyperliquidTransaction:UsdClassTransfer",      USD_CLASS_TRANSFER_SIGN_TYPES),
    "sendAsset":             UserSignedKind("HyperliquidTransaction:SendAsset",             SEND_ASSET_SIGN_TYPES),
    "tokenDelegate":         UserSignedKind("HyperliquidTransaction:TokenDelegate",         TOKEN_DELEGATE_TYPES),
    "approveAgent":          UserSignedKind("HyperliquidTransaction:ApproveAgent",          APPROVE_AGENT_SIGN_TYPES),
    "approveBuilderFee":     UserSignedKind("HyperliquidTransaction:ApproveBuilderFee",     APPROVE_BUILDER_FEE_SIGN_TYPES),
    "userDexAbstraction":    UserSignedKind("HyperliquidTransaction:UserDexAbstraction",    USER_DEX_ABSTRACTION_SIGN_TYPES),
    "convertToMultiSigUser": UserSignedKind("HyperliquidTransaction:ConvertToMultiSigUser", CONVERT_TO_MULTI_SIG_USER_SIGN_TYPES),
    "multiSig":              UserSignedKind("HyperliquidTransaction:SendMultiSig",          MULTI_SIG_ENVELOPE_SIGN_TYPES),
}


def user_signed_kind(action_type: str) -> UserSignedKind:
    """Look up the field table registered for a user-signed ``type``."""
    try:
        return USER_SIGNED_ACTIONS[action_type]
    except KeyError:
        raise MalformedInputError("no sign-type table for action type", action_type) from None


# ---------------------------------------------------------------------------
# Envelope builders
# ---------------------------------------------------------------------------

def construct_phantom_agent(hash: bytes, is_mainnet: bool) -> dict[str, Any]:
    """Wrap an action hash as ``{"source": "a"|"b", "connectionId": hash}``."""
    if not isinstance(hash, (bytes, bytearray)) or len(hash) != 32:
        raise MalformedInputError("connectionId must be exactly 32 bytes", hash)
    return {
        "source":       MAINNET_SOURCE if is_mainnet else TESTNET_SOURCE,
        "connectionId": bytes(hash),
    }


def l1_payload(phantom_agent: dict[str, Any]) -> dict[str, Any]:
    return {
        "domain": {
            "chainId":           L1_CHAIN_ID,
            "name":              "Exchange",
            "verifyingContract": ZERO_ADDRESS,
            "version":           "1",
        },
        "types": {
            "Agent":        AGENT_TYPE,
            "EIP712Domain": EIP712_DOMAIN,
        },
        "primaryType": "Agent",
        "message":     phantom_agent,
    }


def _parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise MalformedInputError(f"field {field!r} must be an integer, got bool", value)
    if isinstance(value, int):
        return value
    try:
        if isinstance(value, str):
            return int(value, 16) if value.startswith(("0x", "0X")) else int(value)
        if isinstance(value, float) and value.is_integer():
            return int(value)
    except ValueError as exc:
        raise MalformedInputError(f"field {field!r} is not an integer", value) from exc
    raise MalformedInputError(f"field {field!r} is not an integer", value)


def _parse_bytes32(value: Any, field: str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    else:
        try:
            raw = bytes.fromhex(str(value).removeprefix("0x"))
        except ValueError as exc:
            raise MalformedInputError(f"field {field!r} is not hex", value) from exc
    if len(raw) != 32:
        raise MalformedInputError(f"field {field!r} must be 32 bytes", value)
    return raw


def _message_value(field: dict[str, str], value: Any) -> Any:
    kind = field["type"]
    if kind.startswith(("uint", "int")):
        return _parse_int(value, field["name"])
    if kind == "bytes32":
        return _parse_bytes32(value, field["name"])
    return value


def user_signed_payload(
    primary_type: str,
    payload_types: SignTypeTable,
    action: dict[str, Any],
) -> dict[str, Any]:
    """
    Build the envelope for a user-signed action.

    The message holds exactly the fields of ``payload_types`` that are present
    in ``action``, in table order.  A declared field the action lacks is left
    out of the message here; ``typed_data_hash`` reports it.
    """
    chain_id = _parse_int(
        action.get("signatureChainId", DEFAULT_SIGNATURE_CHAIN_ID), "signatureChainId"
    )

    message: dict[str, Any] = {}
    for field in payload_types:
        name = field["name"]
        if name in action:
            message[name] = _message_value(field, action[name])

    return {
        "domain": {
            "name":              "HyperliquidSignTransaction",
            "version":           "1",
            "chainId":           chain_id,
            "verifyingContract": ZERO_ADDRESS,
        },
        "types": {
            primary_type:   payload_types,
            "EIP712Domain": EIP712_DOMAIN,
        },
        "primaryType": primary_type,
        "message":     message,
    }


# ---------------------------------------------------------------------------
# Structured-data hashing
# ---------------------------------------------------------------------------

def _check_complete(envelope: dict[str, Any]) -> None:
    primary = envelope["primaryType"]
    message = envelope["message"]
    for field in envelope["types"][primary]:
        if field["name"] not in message:
            raise MalformedInputError(
                f"{primary} message is missing declared field {field['name']!r}"
            )


def encode_envelope(envelope: dict[str, Any]) -> SignableMessage:
    """EIP-712 encode an envelope into (version, domain separator, message hash)."""
    _check_complete(envelope)
    try:
        return encode_typed_data(full_message=envelope)
    except (TypeError, ValueError, KeyError) as exc:
        raise MalformedInputError(f"typed data could not be encoded: {exc}") from exc


def domain_separator(envelope: dict[str, Any]) -> bytes:
    return encode_envelope(envelope).header


def message_hash(envelope: dict[str, Any]) -> bytes:
    return encode_envelope(envelope).body


def typed_data_hash(envelope: dict[str, Any]) -> bytes:
    """keccak256(0x19 ‖ 0x01 ‖ domainSeparator ‖ hashStruct(message))."""
    signable = encode_envelope(envelope)
    return keccak(b"\x19" + signable.version + signable.header + signable.body)
