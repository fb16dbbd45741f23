"""
actions.py – Builders for the action dicts posted to /exchange.

Each builder returns a plain ``dict`` whose insertion order is the key order
the exchange hashes, so the result can be signed and then posted unchanged.
Nothing here signs or performs I/O.

L1 actions carry their asset ids; resolve coin names with an AssetMap
first.  User-signed actions carry a ``time`` or ``nonce`` field that must
equal the nonce the payload is posted with.

Example
-------
    from hl_sdk.actions import cancel_action
    from hl_sdk.types import CancelRequest

    action = cancel_action([CancelRequest(coin="ETH", oid=123)], assets)
"""

from __future__ import annotations

import json
from typing import Any, Optional, Sequence, Union

from .signing import (
    modify_request_to_modify_wire,
    order_request_to_order_wire,
    order_wires_to_order_action,
)
from .types import (
    AssetMap,
    BuilderInfo,
    CancelByCloidRequest,
    CancelRequest,
    Grouping,
    ModifyRequest,
    OrderRequest,
    PerpDexSchema,
    Signature,
)
from .typed_data import DEFAULT_SIGNATURE_CHAIN_ID
from .wire import float_to_usd_int, float_to_wire


# ---------------------------------------------------------------------------
# Trading (L1)
# ---------------------------------------------------------------------------

def order_action(
    orders: Sequence[OrderRequest],
    assets: AssetMap,
    builder: Optional[BuilderInfo] = None,
    grouping: Union[Grouping, str] = Grouping.NA,
) -> dict[str, Any]:
    wires = [order_request_to_order_wire(o, assets.name_to_asset(o.coin)) for o in orders]
    return order_wires_to_order_action(wires, builder, grouping)


def cancel_action(cancels: Sequence[CancelRequest], assets: AssetMap) -> dict[str, Any]:
    return {
        "type":    "cancel",
        "cancels": [{"a": assets.name_to_asset(c.coin), "o": c.oid} for c in cancels],
    }


def cancel_by_cloid_action(cancels: Sequence[CancelByCloidRequest], assets: AssetMap) -> dict[str, Any]:
    return {
        "type":    "cancelByCloid",
        "cancels": [
            {"asset": assets.name_to_asset(c.coin), "cloid": c.cloid.to_raw()}
            for c in cancels
        ],
    }


def batch_modify_action(modifies: Sequence[ModifyRequest], assets: AssetMap) -> dict[str, Any]:
    return {
        "type":     "batchModify",
        "modifies": [
            modify_request_to_modify_wire(m, assets.name_to_asset(m.order.coin)).to_wire()
            for m in modifies
        ],
    }


def update_leverage_action(leverage: int, asset: int, is_cross: bool = True) -> dict[str, Any]:
    return {
        "type":     "updateLeverage",
        "asset":    asset,
        "isCross":  is_cross,
        "leverage": leverage,
    }


def update_isolated_margin_action(amount: float, asset: int) -> dict[str, Any]:
    """``amount`` is in USD; a negative value removes margin."""
    return {
        "type":  "updateIsolatedMargin",
        "asset": asset,
        "isBuy": True,
        "ntli":  float_to_usd_int(amount),
    }


def schedule_cancel_action(time: Optional[int] = None) -> dict[str, Any]:
    """Cancel all orders at ``time`` (ms); ``None`` clears a scheduled cancel."""
    action: dict[str, Any] = {"type": "scheduleCancel"}
    if time is not None:
        action["time"] = time
    return action


def noop_action() -> dict[str, Any]:
    return {"type": "noop"}


def twap_order_action(
    asset: int,
    is_buy: bool,
    sz: float,
    reduce_only: bool,
    minutes: int,
    randomize: bool,
) -> dict[str, Any]:
    return {
        "type": "twapOrder",
        "twap": {
            "a": asset,
            "b": is_buy,
            "s": float_to_wire(sz),
            "r": reduce_only,
            "m": minutes,
            "t": randomize,
        },
    }


def twap_cancel_action(asset: int, twap_id: int) -> dict[str, Any]:
    return {"type": "twapCancel", "a": asset, "t": twap_id}


# ---------------------------------------------------------------------------
# Account management (L1, never on behalf of a vault)
# ---------------------------------------------------------------------------

def create_sub_account_action(name: str) -> dict[str, Any]:
    return {"type": "createSubAccount", "name": name}


def sub_account_transfer_action(sub_account_user: str, is_deposit: bool, usd: int) -> dict[str, Any]:
    return {
        "type":           "subAccountTransfer",
        "subAccountUser": sub_account_user,
        "isDeposit":      is_deposit,
        "usd":            usd,
    }


def sub_account_spot_transfer_action(
    sub_account_user: str, is_deposit: bool, token: str, amount: float
) -> dict[str, Any]:
    return {
        "type":           "subAccountSpotTransfer",
        "subAccountUser": sub_account_user,
        "isDeposit":      is_deposit,
        "token":          token,
        "amount":         str(amount),
    }


def vault_transfer_action(vault_address: str, is_deposit: bool, usd: int) -> dict[str, Any]:
    return {
        "type":         "vaultTransfer",
        "vaultAddress": vault_address,
        "isDeposit":    is_deposit,
        "usd":          usd,
    }


def set_referrer_action(code: str) -> dict[str, Any]:
    return {"type": "setReferrer", "code": code}


def evm_user_modify_action(using_big_blocks: bool) -> dict[str, Any]:
    return {"type": "evmUserModify", "usingBigBlocks": using_big_blocks}


def agent_enable_dex_abstraction_action() -> dict[str, Any]:
    return {"type": "agentEnableDexAbstraction"}


# ---------------------------------------------------------------------------
# Spot deployment (L1, never on behalf of a vault)
# ---------------------------------------------------------------------------

def spot_deploy_register_token_action(
    token_name: str, sz_decimals: int, wei_decimals: int, max_gas: int, full_name: str
) -> dict[str, Any]:
    return {
        "type": "spotDeploy",
        "registerToken2": {
            "spec": {
                "name":        token_name,
                "szDecimals":  sz_decimals,
                "weiDecimals": wei_decimals,
            },
            "maxGas":   max_gas,
            "fullName": full_name,
        },
    }


def spot_deploy_user_genesis_action(
    token: int,
    user_and_wei: Sequence[tuple[str, str]],
    existing_token_and_wei: Sequence[tuple[int, str]],
) -> dict[str, Any]:
    return {
        "type": "spotDeploy",
        "userGenesis": {
            "token":               token,
            "userAndWei":          [[user.lower(), wei] for user, wei in user_and_wei],
            "existingTokenAndWei": [[t, wei] for t, wei in existing_token_and_wei],
        },
    }


def spot_deploy_token_action(variant: str, token: int) -> dict[str, Any]:
    """
    Single-token variants: ``enableFreezePrivilege``, ``revokeFreezePrivilege``
    and ``enableQuoteToken``.
    """
    return {"type": "spotDeploy", variant: {"token": token}}


def spot_deploy_freeze_user_action(token: int, user: str, freeze: bool) -> dict[str, Any]:
    return {
        "type": "spotDeploy",
        "freezeUser": {
            "token":  token,
            "user":   user.lower(),
            "freeze": freeze,
        },
    }


def spot_deploy_genesis_action(token: int, max_supply: str, no_hyperliquidity: bool) -> dict[str, Any]:
    genesis: dict[str, Any] = {"token": token, "maxSupply": max_supply}
    if no_hyperliquidity:
        genesis["noHyperliquidity"] = True
    return {"type": "spotDeploy", "genesis": genesis}


def spot_deploy_register_spot_action(base_token: int, quote_token: int) -> dict[str, Any]:
    return {"type": "spotDeploy", "registerSpot": {"tokens": [base_token, quote_token]}}


def spot_deploy_register_hyperliquidity_action(
    spot: int,
    start_px: float,
    order_sz: float,
    n_orders: int,
    n_seeded_levels: Optional[int] = None,
) -> dict[str, Any]:
    register: dict[str, Any] = {
        "spot":    spot,
        "startPx": str(start_px),
        "orderSz": str(order_sz),
        "nOrders": n_orders,
    }
    if n_seeded_levels is not None:
        register["nSeededLevels"] = n_seeded_levels
    return {"type": "spotDeploy", "registerHyperliquidity": register}


def spot_deploy_set_deployer_trading_fee_share_action(token: int, share: str) -> dict[str, Any]:
    return {
        "type": "spotDeploy",
        "setDeployerTradingFeeShare": {"token": token, "share": share},
    }


# ---------------------------------------------------------------------------
# Perp deployment (L1, never on behalf of a vault)
# ---------------------------------------------------------------------------

def perp_deploy_register_asset_action(
    dex: str,
    max_gas: Optional[int],
    coin: str,
    sz_decimals: int,
    oracle_px: str,
    margin_table_id: int,
    only_isolated: bool,
    schema: Optional[PerpDexSchema] = None,
) -> dict[str, Any]:
    schema_wire: Optional[dict[str, Any]] = None
    if schema is not None:
        schema_wire = {
            "fullName":        schema.full_name,
            "collateralToken": schema.collateral_token,
            "oracleUpdater":   schema.oracle_updater.lower() if schema.oracle_updater else None,
        }
    return {
        "type": "perpDeploy",
        "registerAsset": {
            "maxGas": max_gas,
            "assetRequest": {
                "coin":          coin,
                "szDecimals":    sz_decimals,
                "oraclePx":      oracle_px,
                "marginTableId": margin_table_id,
                "onlyIsolated":  only_isolated,
            },
            "dex":    dex,
            "schema": schema_wire,
        },
    }


def _sorted_pairs(prices: dict[str, str]) -> list[list[str]]:
    return [[coin, px] for coin, px in sorted(prices.items())]


def perp_deploy_set_oracle_action(
    dex: str,
    oracle_pxs: dict[str, str],
    all_mark_pxs: Sequence[dict[str, str]],
    external_perp_pxs: dict[str, str],
) -> dict[str, Any]:
    """Price maps are sent as ``[coin, px]`` pairs sorted by coin."""
    return {
        "type": "perpDeploy",
        "setOracle": {
            "dex":             dex,
            "oraclePxs":       _sorted_pairs(oracle_pxs),
            "markPxs":         [_sorted_pairs(m) for m in all_mark_pxs],
            "externalPerpPxs": _sorted_pairs(external_perp_pxs),
        },
    }


# ---------------------------------------------------------------------------
# Validator operations (L1, never on behalf of a vault)
# ---------------------------------------------------------------------------

def c_signer_action(variant: str) -> dict[str, Any]:
    """``variant`` is ``jailSelf`` or ``unjailSelf``."""
    return {"type": "CSignerAction", variant: None}


def c_validator_register_action(
    node_ip: str,
    name: str,
    description: str,
    delegations_disabled: bool,
    commission_bps: int,
    signer: str,
    unjailed: bool,
    initial_wei: int,
) -> dict[str, Any]:
    return {
        "type": "CValidatorAction",
        "register": {
            "profile": {
                "node_ip":              {"Ip": node_ip},
                "name":                 name,
                "description":          description,
                "delegations_disabled": delegations_disabled,
                "commission_bps":       commission_bps,
                "signer":               signer.lower(),
            },
            "unjailed":    unjailed,
            "initial_wei": initial_wei,
        },
    }


def c_validator_change_profile_action(
    unjailed: bool,
    node_ip: Optional[str] = None,
    name: Optional[str] = None,
    description: Optional[str] = None,
    disable_delegations: Optional[bool] = None,
    commission_bps: Optional[int] = None,
    signer: Optional[str] = None,
) -> dict[str, Any]:
    """Fields left as None are sent as null and keep their current value."""
    return {
        "type": "CValidatorAction",
        "changeProfile": {
            "node_ip":             {"Ip": node_ip} if node_ip is not None else None,
            "name":                name,
            "description":         description,
            "unjailed":            unjailed,
            "disable_delegations": disable_delegations,
            "commission_bps":      commission_bps,
            "signer":              signer.lower() if signer is not None else None,
        },
    }


def c_validator_unregister_action() -> dict[str, Any]:
    return {"type": "CValidatorAction", "unregister": None}


# ---------------------------------------------------------------------------
# Transfers (user-signed)
# ---------------------------------------------------------------------------

def usd_send_action(destination: str, amount: float, time: int) -> dict[str, Any]:
    return {
        "type":        "usdSend",
        "destination": destination,
        "amount":      str(amount),
        "time":        time,
    }


def spot_send_action(destination: str, token: str, amount: float, time: int) -> dict[str, Any]:
    return {
        "type":        "spotSend",
        "destination": destination,
        "token":       token,
        "amount":      str(amount),
        "time":        time,
    }


def withdraw_action(destination: str, amount: float, time: int) -> dict[str, Any]:
    return {
        "type":        "withdraw3",
        "destination": destination,
        "amount":      str(amount),
        "time":        time,
    }


def usd_class_transfer_action(
    amount: float,
    to_perp: bool,
    nonce: int,
    vault_address: Optional[str] = None,
) -> dict[str, Any]:
    """Move USDC between spot and perp; a vault is named inside ``amount``."""
    amount_str = str(amount)
    if vault_address:
        amount_str += f" subaccount:{vault_address}"
    return {
        "type":   "usdClassTransfer",
        "amount": amount_str,
        "toPerp": to_perp,
        "nonce":  nonce,
    }


def send_asset_action(
    destination: str,
    source_dex: str,
    destination_dex: str,
    token: str,
    amount: float,
    nonce: int,
    from_sub_account: str = "",
) -> dict[str, Any]:
    return {
        "type":           "sendAsset",
        "destination":    destination,
        "sourceDex":      source_dex,
        "destinationDex": destination_dex,
        "token":          token,
        "amount":         str(amount),
        "fromSubAccount": from_sub_account,
        "nonce":          nonce,
    }


def token_delegate_action(validator: str, wei: int, is_undelegate: bool, nonce: int) -> dict[str, Any]:
    return {
        "type":         "tokenDelegate",
        "validator":    validator.lower(),
        "wei":          wei,
        "isUndelegate": is_undelegate,
        "nonce":        nonce,
    }


# ---------------------------------------------------------------------------
# Permissions (user-signed)
# ---------------------------------------------------------------------------

def approve_agent_action(agent_address: str, nonce: int, agent_name: Optional[str] = None) -> dict[str, Any]:
    """
    ``agentName`` is always present so it is signed; an unnamed agent signs
    the empty string.  Drop the key before posting when ``agent_name`` is None.
    """
    return {
        "type":         "approveAgent",
        "agentAddress": agent_address.lower(),
        "agentName":    agent_name or "",
        "nonce":        nonce,
    }


def approve_builder_fee_action(builder: str, max_fee_rate: str, nonce: int) -> dict[str, Any]:
    return {
        "type":       "approveBuilderFee",
        "maxFeeRate": max_fee_rate,
        "builder":    builder.lower(),
        "nonce":      nonce,
    }


def user_dex_abstraction_action(user: str, enabled: bool, nonce: int) -> dict[str, Any]:
    return {
        "type":    "userDexAbstraction",
        "user":    user.lower(),
        "enabled": enabled,
        "nonce":   nonce,
    }


# ---------------------------------------------------------------------------
# Multi-sig
# ---------------------------------------------------------------------------

def convert_to_multi_sig_user_action(
    authorized_users: Sequence[str], threshold: int, nonce: int
) -> dict[str, Any]:
    users   = sorted(user.lower() for user in authorized_users)
    signers = {"authorizedUsers": users, "threshold": threshold}
    return {
        "type":    "convertToMultiSigUser",
        "signers": json.dumps(signers),
        "nonce":   nonce,
    }


def multi_sig_action(
    multi_sig_user: str,
    outer_signer: str,
    inner_action: dict[str, Any],
    signatures: Sequence[Union[Signature, dict[str, Any]]],
) -> dict[str, Any]:
    return {
        "type":             "multiSig",
        "signatureChainId": DEFAULT_SIGNATURE_CHAIN_ID,
        "signatures":       [
            s.model_dump() if isinstance(s, Signature) else s for s in signatures
        ],
        "payload": {
            "multiSigUser": multi_sig_user.lower(),
            "outerSigner":  outer_signer.lower(),
            "action":       inner_action,
        },
    }
