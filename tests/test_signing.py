"""
tests/test_signing.py – Unit tests for L1, user-signed and multi-sig signing.

These tests run entirely offline (no network calls).
They verify that:
  1. Known vectors reproduce byte-for-byte (phantom agent connectionId and
     r/s/v on mainnet and testnet).
  2. The signing address is recoverable from the produced signature.
  3. r/s are rendered without leading zeros and parse back to the same ints.
  4. Multi-sig helpers sign the right envelopes and never mutate inputs.
  5. Invalid keys and order types fail with a SigningError subclass.
"""

from __future__ import annotations

import copy

import pytest
from eth_account import Account

from hl_sdk.encoding import action_hash
from hl_sdk.errors import CryptoError, MalformedInputError, SigningError
from hl_sdk.signing import (
    MULTI_SIG_PRIMARY_TYPE,
    format_signature_component,
    modify_request_to_modify_wire,
    multi_sig_action_hash,
    order_request_to_order_wire,
    order_type_to_wire,
    order_wires_to_order_action,
    parse_signature_component,
    recover_l1_signer,
    recover_typed_data_signer,
    recover_user_signed_signer,
    sign_agent,
    sign_hash,
    sign_l1_action,
    sign_multi_sig_action,
    sign_multi_sig_l1_action_payload,
    sign_multi_sig_user_signed_action_payload,
    sign_usd_transfer_action,
    sign_user_signed_action,
    sign_withdraw_from_bridge_action,
)
from hl_sdk.typed_data import (
    MULTI_SIG_ENVELOPE_SIGN_TYPES,
    USD_SEND_SIGN_TYPES,
    construct_phantom_agent,
    l1_payload,
    user_signed_payload,
)
from hl_sdk.types import (
    BuilderInfo,
    Cloid,
    Grouping,
    LimitOrderType,
    ModifyRequest,
    OrderRequest,
    OrderType,
    Signature,
    Tif,
    Tpsl,
    TriggerOrderType,
)
from hl_sdk.wire import float_to_int_for_hashing

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

PRIVATE_KEY = "0x0123456789012345678901234567890123456789012345678901234567890123"
VAULT       = "0x1719884eb866cb12b2287399b15f7db5e7d775ea"
MULTI_USER  = "0x0000000000000000000000000000000000000abc"
OUTER       = "0x0000000000000000000000000000000000000DEF"


@pytest.fixture()
def wallet():
    return Account.from_key(PRIVATE_KEY)


def _dummy_action() -> dict:
    return {"type": "dummy", "num": float_to_int_for_hashing(1000)}


def _order_action(cloid: Cloid | None = None) -> dict:
    request = OrderRequest(
        coin="ETH",
        is_buy=True,
        sz=100,
        limit_px=100,
        reduce_only=False,
        order_type=OrderType(limit=LimitOrderType(tif=Tif.GTC)),
        cloid=cloid,
    )
    return order_wires_to_order_action([order_request_to_order_wire(request, 1)])


# ---------------------------------------------------------------------------
# Known vectors
# ---------------------------------------------------------------------------

class TestVectors:
    def test_phantom_agent_connection_id(self) -> None:
        request = OrderRequest(
            coin="ETH",
            is_buy=True,
            sz=0.0147,
            limit_px=1670.1,
            reduce_only=False,
            order_type=OrderType(limit=LimitOrderType(tif=Tif.IOC)),
        )
        action = order_wires_to_order_action([order_request_to_order_wire(request, 4)])
        digest = action_hash(action, None, 1677777606040)
        agent  = construct_phantom_agent(digest, is_mainnet=True)
        assert agent["connectionId"].hex() == (
            "0fcbeda5ae3c4950a548021552a4fea2226858c4453571bf3f24ba017eac2908"
        )

    def test_l1_action_mainnet(self, wallet) -> None:
        sig = sign_l1_action(wallet, _dummy_action(), None, 0, None, True)
        assert sig.r == "0x53749d5b30552aeb2fca34b530185976545bb22d0b3ce6f62e31be961a59298"
        assert sig.s == "0x755c40ba9bf05223521753995abb2f73ab3229be8ec921f350cb447e384d8ed8"
        assert sig.v == 27

    def test_l1_action_testnet(self, wallet) -> None:
        sig = sign_l1_action(wallet, _dummy_action(), None, 0, None, False)
        assert sig.r == "0x542af61ef1f429707e3c76c5293c80d01f74ef853e34b76efffcb57e574f9510"
        assert sig.s == "0x17b8b32f086e8cdede991f1e2c529f5dd5297cbe8128500e00cbaf766204a613"
        assert sig.v == 28

    def test_order_mainnet(self, wallet) -> None:
        sig = sign_l1_action(wallet, _order_action(), None, 0, None, True)
        assert sig.r == "0xd65369825a9df5d80099e513cce430311d7d26ddf477f5b3a33d2806b100d78e"
        assert sig.s == "0x2b54116ff64054968aa237c20ca9ff68000f977c93289157748a3162b6ea940e"
        assert sig.v == 28

    def test_order_testnet(self, wallet) -> None:
        sig = sign_l1_action(wallet, _order_action(), None, 0, None, False)
        assert sig.r == "0x82b2ba28e76b3d761093aaded1b1cdad4960b3af30212b343fb2e6cdfa4e3d54"
        assert sig.s == "0x6b53878fc99d26047f4d7e8c90eb98955a109f44209163f52d8dc4278cbbd9f5"
        assert sig.v == 27

    def test_order_with_cloid_mainnet(self, wallet) -> None:
        cloid = Cloid.from_str("0x00000000000000000000000000000001")
        sig = sign_l1_action(wallet, _order_action(cloid), None, 0, None, True)
        assert sig.r == "0x41ae18e8239a56cacbc5dad94d45d0b747e5da11ad564077fcac71277a946e3"
        assert sig.s == "0x3c61f667e747404fe7eea8f90ab0e76cc12ce60270438b2058324681a00116da"
        assert sig.v == 27

    def test_order_with_cloid_testnet(self, wallet) -> None:
        cloid = Cloid.from_int(1)
        sig = sign_l1_action(wallet, _order_action(cloid), None, 0, None, False)
        assert sig.r == "0xeba0664bed2676fc4e5a743bf89e5c7501aa6d870bdb9446e122c9466c5cd16d"
        assert sig.s == "0x7f3e74825c9114bc59086f1eebea2928c190fdfbfde144827cb02b85bbe90988"
        assert sig.v == 28

    def test_vault_mainnet(self, wallet) -> None:
        sig = sign_l1_action(wallet, _dummy_action(), VAULT, 0, None, True)
        assert sig.r == "0x3c548db75e479f8012acf3000ca3a6b05606bc2ec0c29c50c515066a326239"
        assert sig.s == "0x4d402be7396ce74fbba3795769cda45aec00dc3125a984f2a9f23177b190da2c"
        assert sig.v == 28

    def test_vault_testnet(self, wallet) -> None:
        sig = sign_l1_action(wallet, _dummy_action(), VAULT, 0, None, False)
        assert sig.r == "0xe281d2fb5c6e25ca01601f878e4d69c965bb598b88fac58e475dd1f5e56c362b"
        assert sig.s == "0x7ddad27e9a238d045c035bc606349d075d5c5cd00a6cd1da23ab5c39d4ef0f60"
        assert sig.v == 27

    def test_usd_transfer_testnet(self, wallet) -> None:
        message = {
            "destination": "0x5e9ee1089755c3435139848e47e6635505d5a13a",
            "amount":      "1",
            "time":        1687816341423,
        }
        sig = sign_usd_transfer_action(wallet, message, False)
        assert sig.r == "0x637b37dd731507cdd24f46532ca8ba6eec616952c56218baeff04144e4a77073"
        assert sig.s == "0x11a6a24900e6e314136d2592e2f8d502cd89b7c15b198e1bee043c9589f9fad7"
        assert sig.v == 27

    def test_withdraw_testnet(self, wallet) -> None:
        message = {
            "destination": "0x5e9ee1089755c3435139848e47e6635505d5a13a",
            "amount":      "1",
            "time":        1687816341423,
        }
        sig = sign_withdraw_from_bridge_action(wallet, message, False)
        assert sig.r == "0x8363524c799e90ce9bc41022f7c39b4e9bdba786e5f9c72b20e43e1462c37cf9"
        assert sig.s == "0x58b1411a775938b83e29182e8ef74975f9054c8e97ebf5ec2dc8d51bfc893881"
        assert sig.v == 28

    def test_withdraw_and_usd_send_differ(self, wallet) -> None:
        message = {"destination": VAULT, "amount": "1", "time": 1}
        withdraw = sign_withdraw_from_bridge_action(wallet, dict(message), True)
        usd_send = sign_usd_transfer_action(wallet, dict(message), True)
        assert withdraw != usd_send

    def test_hex_key_and_account_agree(self, wallet) -> None:
        from_hex     = sign_l1_action(PRIVATE_KEY, _dummy_action(), None, 0, None, True)
        from_account = sign_l1_action(wallet, _dummy_action(), None, 0, None, True)
        assert from_hex == from_account


# ---------------------------------------------------------------------------
# Recovery
# ---------------------------------------------------------------------------

class TestRecovery:
    def test_l1_round_trip(self, wallet) -> None:
        action = _order_action()
        sig = sign_l1_action(wallet, action, VAULT, 1234, 5678, True)
        assert recover_l1_signer(action, VAULT, 1234, 5678, sig, True) == wallet.address

    def test_l1_wrong_network_recovers_other_address(self, wallet) -> None:
        action = _dummy_action()
        sig = sign_l1_action(wallet, action, None, 1, None, True)
        assert recover_l1_signer(action, None, 1, None, sig, False) != wallet.address

    def test_user_signed_round_trip(self, wallet) -> None:
        action = {
            "type":        "usdSend",
            "destination": "0x5e9ee1089755c3435139848e47e6635505d5a13a",
            "amount":      "12.5",
            "time":        1700000000000,
        }
        sig = sign_user_signed_action(
            wallet, action, USD_SEND_SIGN_TYPES, "HyperliquidTransaction:UsdSend", True
        )
        recovered = recover_user_signed_signer(
            action, USD_SEND_SIGN_TYPES, "HyperliquidTransaction:UsdSend", sig
        )
        assert recovered == wallet.address

    def test_user_signed_stamps_action(self, wallet) -> None:
        action = {"destination": VAULT, "amount": "1", "time": 1}
        sign_withdraw_from_bridge_action(wallet, action, True)
        assert action["signatureChainId"] == "0x66eee"
        assert action["hyperliquidChain"] == "Mainnet"

    def test_agent_with_empty_name(self, wallet) -> None:
        action = {
            "type":         "approveAgent",
            "agentAddress": VAULT,
            "agentName":    "",
            "nonce":        1,
        }
        sig = sign_agent(wallet, action, False)
        assert action["hyperliquidChain"] == "Testnet"
        assert sig.v in (27, 28)

    def test_tampered_message_recovers_other_address(self, wallet) -> None:
        action = {"destination": VAULT, "amount": "1", "time": 1}
        sig = sign_usd_transfer_action(wallet, action, True)
        action["amount"] = "2"
        envelope = user_signed_payload(
            "HyperliquidTransaction:UsdSend", USD_SEND_SIGN_TYPES, action
        )
        assert recover_typed_data_signer(envelope, sig) != wallet.address


# ---------------------------------------------------------------------------
# Signature components
# ---------------------------------------------------------------------------

class TestSignatureComponents:
    def test_leading_zeros_stripped(self) -> None:
        assert format_signature_component(b"\x00\x0a" + b"\x00" * 30) == "0xa" + "0" * 60

    def test_all_zero(self) -> None:
        assert format_signature_component(b"\x00" * 32) == "0x0"

    def test_parse_accepts_padding(self) -> None:
        assert parse_signature_component("0x00ff") == parse_signature_component("0xff") == 255

    def test_parse_rejects_non_hex(self) -> None:
        with pytest.raises(MalformedInputError):
            parse_signature_component("0xzz")

    def test_format_matches_python_hex(self, wallet) -> None:
        sig = sign_l1_action(wallet, _dummy_action(), None, 3, None, True)
        assert sig.r == hex(parse_signature_component(sig.r))
        assert sig.s == hex(parse_signature_component(sig.s))

    def test_sign_hash_requires_32_bytes(self, wallet) -> None:
        with pytest.raises(MalformedInputError):
            sign_hash(wallet, b"\x01" * 31)


# ---------------------------------------------------------------------------
# Multi-sig
# ---------------------------------------------------------------------------

class TestMultiSig:
    def _multi_sig_action(self) -> dict:
        return {
            "type":             "multiSig",
            "signatureChainId": "0x66eee",
            "signatures":       [],
            "payload": {
                "multiSigUser": MULTI_USER,
                "outerSigner":  OUTER.lower(),
                "action":       _dummy_action(),
            },
        }

    def test_outer_hash_ignores_type(self) -> None:
        action = self._multi_sig_action()
        without = {k: v for k, v in action.items() if k != "type"}
        assert multi_sig_action_hash(action, None, 9) == action_hash(without, None, 9)

    def test_outer_signature_recovers(self, wallet) -> None:
        action = self._multi_sig_action()
        sig = sign_multi_sig_action(wallet, action, True, None, 9)
        envelope = user_signed_payload(
            MULTI_SIG_PRIMARY_TYPE,
            MULTI_SIG_ENVELOPE_SIGN_TYPES,
            {
                "signatureChainId":   "0x66eee",
                "hyperliquidChain":   "Mainnet",
                "multiSigActionHash": multi_sig_action_hash(action, None, 9),
                "nonce":              9,
            },
        )
        assert recover_typed_data_signer(envelope, sig) == wallet.address
        assert "hyperliquidChain" not in action

    def test_inner_l1_payload(self, wallet) -> None:
        inner = _dummy_action()
        sig = sign_multi_sig_l1_action_payload(
            wallet, inner, False, None, 7, None, MULTI_USER, OUTER
        )
        envelope = [MULTI_USER.lower(), OUTER.lower(), inner]
        assert recover_l1_signer(envelope, None, 7, None, sig, False) == wallet.address

    def test_inner_user_signed_payload_leaves_action(self, wallet) -> None:
        action = {
            "type":        "usdSend",
            "destination": VAULT,
            "amount":      "3",
            "time":        42,
        }
        before = copy.deepcopy(action)
        sig = sign_multi_sig_user_signed_action_payload(
            wallet, action, True, USD_SEND_SIGN_TYPES,
            "HyperliquidTransaction:UsdSend", MULTI_USER, OUTER,
        )
        assert action == before

        stamped = dict(before)
        stamped.update({
            "signatureChainId":    "0x66eee",
            "hyperliquidChain":    "Mainnet",
            "payloadMultiSigUser": MULTI_USER.lower(),
            "outerSigner":         OUTER.lower(),
        })
        extended = USD_SEND_SIGN_TYPES + [
            {"name": "payloadMultiSigUser", "type": "address"},
            {"name": "outerSigner",         "type": "address"},
        ]
        assert recover_user_signed_signer(
            stamped, extended, "HyperliquidTransaction:UsdSend", sig
        ) == wallet.address

    def test_inner_signature_differs_from_plain(self, wallet) -> None:
        action = {"destination": VAULT, "amount": "3", "time": 42}
        inner = sign_multi_sig_user_signed_action_payload(
            wallet, action, True, USD_SEND_SIGN_TYPES,
            "HyperliquidTransaction:UsdSend", MULTI_USER, OUTER,
        )
        plain = sign_usd_transfer_action(wallet, dict(action), True)
        assert inner != plain


# ---------------------------------------------------------------------------
# Order wire conversion
# ---------------------------------------------------------------------------

class TestOrderWire:
    def test_limit_wire_shape(self) -> None:
        action = _order_action()
        assert action == {
            "type": "order",
            "orders": [{
                "a": 1, "b": True, "p": "100", "s": "100", "r": False,
                "t": {"limit": {"tif": "Gtc"}},
            }],
            "grouping": "na",
        }

    def test_trigger_wire_key_order(self) -> None:
        wire = order_type_to_wire(
            OrderType(trigger=TriggerOrderType(trigger_px=1800.5, is_market=True, tpsl=Tpsl.SL))
        )
        assert list(wire.to_wire()["trigger"]) == ["isMarket", "triggerPx", "tpsl"]
        assert wire.to_wire()["trigger"]["triggerPx"] == "1800.5"

    def test_empty_order_type_rejected(self) -> None:
        with pytest.raises(MalformedInputError):
            order_type_to_wire(OrderType())

    def test_builder_appended_last(self) -> None:
        request = OrderRequest(
            coin="ETH", is_buy=False, sz=1, limit_px=2000,
            order_type=OrderType(limit=LimitOrderType(tif=Tif.ALO)),
        )
        builder = BuilderInfo(b="0x8C967E73E6B15087C42A10D344CFF4C96D877F1D", f=10)
        action = order_wires_to_order_action(
            [order_request_to_order_wire(request, 0)], builder, Grouping.NORMAL_TPSL
        )
        assert list(action) == ["type", "orders", "grouping", "builder"]
        assert action["grouping"] == "normalTpsl"
        assert action["builder"] == {"b": "0x8c967e73e6b15087c42a10d344cff4c96d877f1d", "f": 10}

    def test_modify_with_cloid_oid(self) -> None:
        request = OrderRequest(
            coin="ETH", is_buy=True, sz=1, limit_px=1,
            order_type=OrderType(limit=LimitOrderType(tif=Tif.GTC)),
        )
        modify = ModifyRequest(oid=Cloid.from_int(7), order=request)
        wire = modify_request_to_modify_wire(modify, 3).to_wire()
        assert wire["oid"] == "0x00000000000000000000000000000007"
        assert wire["order"]["a"] == 3

    def test_imprecise_size_rejected(self) -> None:
        request = OrderRequest(
            coin="ETH", is_buy=True, sz=0.000000001, limit_px=1,
            order_type=OrderType(limit=LimitOrderType(tif=Tif.GTC)),
        )
        with pytest.raises(SigningError):
            order_request_to_order_wire(request, 0)


# ---------------------------------------------------------------------------
# Key handling
# ---------------------------------------------------------------------------

class TestKeys:
    def test_bad_key_raises_crypto_error(self) -> None:
        with pytest.raises(CryptoError):
            sign_l1_action("0x1234", _dummy_action(), None, 0, None, True)

    def test_signing_is_deterministic(self, wallet) -> None:
        a = sign_l1_action(wallet, _order_action(), None, 55, None, True)
        b = sign_l1_action(wallet, _order_action(), None, 55, None, True)
        assert a == b
        assert isinstance(a, Signature)

    def test_phantom_envelope_recovers(self, wallet) -> None:
        digest   = action_hash(_dummy_action(), None, 0)
        envelope = l1_payload(construct_phantom_agent(digest, True))
        sig      = sign_l1_action(wallet, _dummy_action(), None, 0, None, True)
        assert recover_typed_data_signer(envelope, sig) == wallet.address
