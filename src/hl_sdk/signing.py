"""
signing.py – Signatures for Hyperliquid L1, user-signed and multi-sig actions.

Hyperliquid uses EIP-712 structured-data signing, but the struct that gets
signed depends on the action:

L1 actions
----------
1. msgpack-encode the action and hash it together with the nonce, vault
   and expiry (encoding.action_hash).
2. Wrap the 32-byte hash in a phantom agent ``{source, connectionId}``.
3. Sign the phantom agent under the "Exchange" domain (chainId 1337).

User-signed actions
-------------------
1. Stamp ``signatureChainId`` and ``hyperliquidChain`` onto the action.
2. Copy the fields named in the kind's sign-type table into the message.
3. Sign under the "HyperliquidSignTransaction" domain.

Multi-sig actions hash the whole action (minus ``type``) like an L1 action
and then sign ``{multiSigActionHash, nonce}`` as a user-signed action.

Signatures are returned as ``Signature(r, s, v)`` where r/s are hex strings
without leading zeros, the form the exchange and the reference clients use.

Key handling
------------
Every signing function takes ``wallet`` as either a hex private key or an
``eth_account`` LocalAccount.  Nothing is cached between calls.

Usage::

    from hl_sdk.signing import sign_l1_action

    action = {"type": "noop"}
    sig = sign_l1_action(private_key, action, None, nonce, None, is_mainnet=False)

References
----------
- EIP-712 spec : https://eips.ethereum.org/EIPS/eip-712
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Optional, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .encoding import action_hash
from .errors import CryptoError, MalformedInputError
from .types import (
    BuilderInfo,
    Grouping,
    ModifyRequest,
    ModifyWire,
    OrderRequest,
    OrderType,
    OrderTypeWire,
    OrderWire,
    Signature,
    TriggerOrderTypeWire,
)
from .typed_data import (
    DEFAULT_SIGNATURE_CHAIN_ID,
    MULTI_SIG_ENVELOPE_SIGN_TYPES,
    SignTypeTable,
    construct_phantom_agent,
    encode_envelope,
    l1_payload,
    typed_data_hash,
    user_signed_kind,
    user_signed_payload,
)
from .wire import float_to_wire

logger = logging.getLogger(__name__)

Wallet = Union[str, bytes, LocalAccount]

MULTI_SIG_PRIMARY_TYPE = "HyperliquidTransaction:SendMultiSig"


# ---------------------------------------------------------------------------
# Low-level signing
# ---------------------------------------------------------------------------

def to_account(wallet: Wallet) -> LocalAccount:
    """Load a hex key as a LocalAccount; a bad key raises CryptoError."""
    if isinstance(wallet, LocalAccount):
        return wallet
    try:
        return Account.from_key(wallet)
    except (ValueError, TypeError) as exc:
        raise CryptoError(f"invalid private key: {exc}") from exc


def format_signature_component(component: bytes) -> str:
    """
    Render r or s as ``0x`` + hex with leading zeros stripped.

    At least one digit is always kept, so an all-zero component is "0x0".
    This matches Python's ``hex(int)``.
    """
    return "0x" + (component.hex().lstrip("0") or "0")


def parse_signature_component(component: str) -> int:
    """Inverse of format_signature_component; accepts any number of leading zeros."""
    try:
        return int(component, 16)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError("signature component is not hex", component) from exc


def sign_hash(wallet: Wallet, final_hash: bytes) -> Signature:
    """
    Sign a 32-byte EIP-712 digest and split it into (r, s, v).

    v is normalised to 27/28.
    """
    if len(final_hash) != 32:
        raise MalformedInputError("signing hash must be 32 bytes", final_hash)
    account = to_account(wallet)
    try:
        signed = Account.unsafe_sign_hash(final_hash, private_key=account.key)
    except (ValueError, TypeError) as exc:
        raise CryptoError(f"signing failed: {exc}") from exc

    raw = bytes(signed.signature)
    r, s, v = raw[:32], raw[32:64], raw[64]
    if v < 27:
        v += 27
    return Signature(
        r=format_signature_component(r),
        s=format_signature_component(s),
        v=v,
    )


def sign_inner(wallet: Wallet, envelope: dict[str, Any]) -> Signature:
    """Hash an EIP-712 envelope and sign the result."""
    return sign_hash(wallet, typed_data_hash(envelope))


# ---------------------------------------------------------------------------
# L1 and user-signed actions
# ---------------------------------------------------------------------------

def sign_l1_action(
    wallet: Wallet,
    action: Any,
    vault_address: Optional[str],
    nonce: int,
    expires_after: Optional[int],
    is_mainnet: bool,
) -> Signature:
    """
    Sign an L1 action (order, cancel, leverage update, …).

    Parameters
    ----------
    wallet         : hex private key or LocalAccount
    action         : ordered action mapping; key order is part of the hash
    vault_address  : vault / sub-account trading on behalf of, or None
    nonce          : unsigned 64-bit nonce (ms timestamp)
    expires_after  : optional ms timestamp after which the action is rejected
    is_mainnet     : selects phantom-agent source "a" (mainnet) or "b"

    Notes
    -----
    Never reuse a nonce on retry – sign again with a fresh one.
    """
    digest  = action_hash(action, vault_address, nonce, expires_after)
    agent   = construct_phantom_agent(digest, is_mainnet)
    return sign_inner(wallet, l1_payload(agent))


def _stamp_chain(action: dict[str, Any], is_mainnet: bool) -> None:
    action["signatureChainId"] = DEFAULT_SIGNATURE_CHAIN_ID
    action["hyperliquidChain"] = "Mainnet" if is_mainnet else "Testnet"


def sign_user_signed_action(
    wallet: Wallet,
    action: dict[str, Any],
    payload_types: SignTypeTable,
    primary_type: str,
    is_mainnet: bool,
) -> Signature:
    """
    Sign a user-signed action (transfer, withdrawal, agent approval, …).

    ``action`` is updated in place with ``signatureChainId`` and
    ``hyperliquidChain``; post the same dict alongside the signature.
    """
    _stamp_chain(action, is_mainnet)
    logger.debug("sign_user_signed_action primary_type=%s", primary_type)
    return sign_inner(wallet, user_signed_payload(primary_type, payload_types, action))


def _sign_kind(wallet: Wallet, action: dict[str, Any], action_type: str, is_mainnet: bool) -> Signature:
    kind = user_signed_kind(action_type)
    return sign_user_signed_action(wallet, action, kind.sign_types, kind.primary_type, is_mainnet)


def sign_usd_transfer_action(wallet: Wallet, action: dict[str, Any], is_mainnet: bool) -> Signature:
    return _sign_kind(wallet, action, "usdSend", is_mainnet)


def sign_spot_transfer_action(wallet: Wallet, action: dict[str, Any], is_mainnet: bool) -> Signature:
    return _sign_kind(wallet, action, "spotSend", is_mainnet)


def sign_withdraw_from_bridge_action(wallet: Wallet, action: dict[str, Any], is_mainnet: bool) -> Signature:
    return _sign_kind(wallet, action, "withdraw3", is_mainnet)


def sign_usd_class_transfer_action(wallet: Wallet, action: dict[str, Any], is_mainnet: bool) -> Signature:
    return _sign_kind(wallet, action, "usdClassTransfer", is_mainnet)


def sign_send_asset_action(wallet: Wallet, action: dict[str, Any], is_mainnet: bool) -> Signature:
    return _sign_kind(wallet, action, "sendAsset", is_mainnet)


def sign_token_delegate_action(wallet: Wallet, action: dict[str, Any], is_mainnet: bool) -> Signature:
    return _sign_kind(wallet, action, "tokenDelegate", is_mainnet)


def sign_agent(wallet: Wallet, action: dict[str, Any], is_mainnet: bool) -> Signature:
    return _sign_kind(wallet, action, "approveAgent", is_mainnet)


def sign_approve_builder_fee(wallet: Wallet, action: dict[str, Any], is_mainnet: bool) -> Signature:
    return _sign_kind(wallet, action, "approveBuilderFee", is_mainnet)


def sign_user_dex_abstraction_action(wallet: Wallet, action: dict[str, Any], is_mainnet: bool) -> Signature:
    return _sign_kind(wallet, action, "userDexAbstraction", is_mainnet)


def sign_convert_to_multi_sig_user_action(wallet: Wallet, action: dict[str, Any], is_mainnet: bool) -> Signature:
    return _sign_kind(wallet, action, "convertToMultiSigUser", is_mainnet)


# ---------------------------------------------------------------------------
# Multi-sig
# ---------------------------------------------------------------------------

def multi_sig_action_hash(
    action: dict[str, Any],
    vault_address: Optional[str],
    nonce: int,
    expires_after: Optional[int] = None,
) -> bytes:
    """Action hash of a multiSig action with its ``type`` key removed."""
    without_tag = {k: v for k, v in action.items() if k != "type"}
    return action_hash(without_tag, vault_address, nonce, expires_after)


def sign_multi_sig_action(
    wallet: Wallet,
    action: dict[str, Any],
    is_mainnet: bool,
    vault_address: Optional[str],
    nonce: int,
    expires_after: Optional[int] = None,
) -> Signature:
    """
    Sign the outer envelope of a multiSig action as its outer signer.

    The action is hashed without its ``type`` key; that hash and the nonce
    are then signed as a "SendMultiSig" user-signed message.
    """
    digest = multi_sig_action_hash(action, vault_address, nonce, expires_after)
    envelope = {
        "multiSigActionHash": digest,
        "nonce":              nonce,
    }
    return sign_user_signed_action(
        wallet, envelope, MULTI_SIG_ENVELOPE_SIGN_TYPES, MULTI_SIG_PRIMARY_TYPE, is_mainnet
    )


def sign_multi_sig_l1_action_payload(
    wallet: Wallet,
    action: Any,
    is_mainnet: bool,
    vault_address: Optional[str],
    nonce: int,
    expires_after: Optional[int],
    payload_multi_sig_user: str,
    outer_signer: str,
) -> Signature:
    """Signature an authorised user contributes for an inner L1 action."""
    envelope = [payload_multi_sig_user.lower(), outer_signer.lower(), action]
    return sign_l1_action(wallet, envelope, vault_address, nonce, expires_after, is_mainnet)


def sign_multi_sig_user_signed_action_payload(
    wallet: Wallet,
    action: dict[str, Any],
    is_mainnet: bool,
    payload_types: SignTypeTable,
    primary_type: str,
    payload_multi_sig_user: str,
    outer_signer: str,
) -> Signature:
    """
    Signature an authorised user contributes for an inner user-signed action.

    The sign-type table is extended with ``payloadMultiSigUser`` and
    ``outerSigner``; ``action`` itself is left untouched.
    """
    envelope = copy.deepcopy(action)
    envelope["payloadMultiSigUser"] = payload_multi_sig_user.lower()
    envelope["outerSigner"]         = outer_signer.lower()
    extended = payload_types + [
        {"name": "payloadMultiSigUser", "type": "address"},
        {"name": "outerSigner",         "type": "address"},
    ]
    return sign_user_signed_action(wallet, envelope, extended, primary_type, is_mainnet)


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------

def recover_typed_data_signer(envelope: dict[str, Any], signature: Signature) -> str:
    """
    Recover the checksummed address that produced ``signature`` over ``envelope``.

    Useful for verification / testing without submitting to the exchange.
    """
    signable = encode_envelope(envelope)
    vrs = (
        signature.v,
        parse_signature_component(signature.r),
        parse_signature_component(signature.s),
    )
    try:
        address: str = Account.recover_message(signable, vrs=vrs)
    except (ValueError, TypeError) as exc:
        raise CryptoError(f"signature recovery failed: {exc}") from exc
    return address


def recover_l1_signer(
    action: Any,
    vault_address: Optional[str],
    nonce: int,
    expires_after: Optional[int],
    signature: Signature,
    is_mainnet: bool,
) -> str:
    digest = action_hash(action, vault_address, nonce, expires_after)
    return recover_typed_data_signer(l1_payload(construct_phantom_agent(digest, is_mainnet)), signature)


def recover_user_signed_signer(
    action: dict[str, Any],
    payload_types: SignTypeTable,
    primary_type: str,
    signature: Signature,
) -> str:
    """Recover from an action that has already been stamped by a signer."""
    return recover_typed_data_signer(
        user_signed_payload(primary_type, payload_types, action), signature
    )


# ---------------------------------------------------------------------------
# Order wire conversion
# ---------------------------------------------------------------------------

def order_type_to_wire(order_type: OrderType) -> OrderTypeWire:
    if order_type.limit is not None:
        return OrderTypeWire(limit=order_type.limit)
    if order_type.trigger is not None:
        trigger = order_type.trigger
        return OrderTypeWire(
            trigger=TriggerOrderTypeWire(
                is_market=trigger.is_market,
                trigger_px=float_to_wire(trigger.trigger_px),
                tpsl=trigger.tpsl,
            )
        )
    raise MalformedInputError("order type must have either limit or trigger")


def order_request_to_order_wire(order: OrderRequest, asset: int) -> OrderWire:
    return OrderWire(
        asset=asset,
        is_buy=order.is_buy,
        limit_px=float_to_wire(order.limit_px),
        sz=float_to_wire(order.sz),
        reduce_only=order.reduce_only,
        order_type=order_type_to_wire(order.order_type),
        cloid=order.cloid.to_raw() if order.cloid is not None else None,
    )


def modify_request_to_modify_wire(modify: ModifyRequest, asset: int) -> ModifyWire:
    oid = modify.oid if isinstance(modify.oid, int) else modify.oid.to_raw()
    return ModifyWire(oid=oid, order=order_request_to_order_wire(modify.order, asset))


def order_wires_to_order_action(
    order_wires: list[OrderWire],
    builder: Optional[BuilderInfo] = None,
    grouping: Union[Grouping, str] = Grouping.NA,
) -> dict[str, Any]:
    """
    Assemble the ``order`` action.

    Key order is ``type, orders, grouping[, builder]``.
    """
    action: dict[str, Any] = {
        "type":     "order",
        "orders":   [wire.to_wire() for wire in order_wires],
        "grouping": Grouping(grouping).value,
    }
    if builder is not None:
        action["builder"] = builder.to_wire()
    return action
