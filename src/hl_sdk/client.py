"""
client.py – Unified HLClient façade.

Single entry point that owns the signing wallet, the async REST client and
the WebSocket client.  Every trading method follows the same three steps:

    build action (actions.py) → sign (signing.py) → post (rest.py)

Usage
-----
    import asyncio
    from hl_sdk import HLClient, HLEnv, OrderRequest, OrderType, LimitOrderType, Tif

    async def main() -> None:
        async with HLClient(private_key="0x…", env=HLEnv.TESTNET) as client:
            await client.load_assets()

            order = OrderRequest(
                coin="ETH", is_buy=True, sz=0.01, limit_px=1800.0,
                order_type=OrderType(limit=LimitOrderType(tif=Tif.GTC)),
            )
            print(await client.bulk_orders([order]))

            # Real-time market data via WebSocket
            await client.ws.subscribe({"type": "l2Book", "coin": "ETH"}, handler)
            await client.ws.run_forever()

    asyncio.run(main())
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence, Union

from eth_account.signers.local import LocalAccount

from . import actions
from .errors import HLError, MalformedInputError
from .rest import AsyncHLRestClient, build_exchange_payload
from .signing import (
    Wallet,
    sign_l1_action,
    sign_multi_sig_action,
    sign_user_signed_action,
    to_account,
)
from .typed_data import user_signed_kind
from .types import (
    DEFAULT_SLIPPAGE,
    DEFAULT_TIMEOUT_S,
    AssetMap,
    BuilderInfo,
    CancelByCloidRequest,
    CancelRequest,
    Cloid,
    Grouping,
    HLEnv,
    LimitOrderType,
    ModifyRequest,
    OrderRequest,
    OrderType,
    PerpDexSchema,
    Signature,
    Tif,
)
from .wire import MonotonicNonce, NonceProvider, round_price
from .ws import HLWebSocketClient

logger = logging.getLogger(__name__)


class HLClient:
    """
    Unified façade for the Hyperliquid SDK.

    Parameters
    ----------
    private_key     : hex private key or LocalAccount of the signing wallet
                      (the account itself or an approved API wallet)
    env             : HLEnv.MAINNET / HLEnv.TESTNET / HLEnv.LOCAL
    vault_address   : trade on behalf of this vault / sub-account
    account_address : the account an API wallet acts for (used for queries)
    base_url        : override the REST base URL
    nonce_provider  : Callable[[], int]; defaults to a shared MonotonicNonce
    assets          : pre-built AssetMap; otherwise call load_assets()
    rest_timeout    : HTTP timeout in seconds for REST requests
    """

    def __init__(
        self,
        private_key: Wallet,
        env: Union[HLEnv, str] = HLEnv.MAINNET,
        *,
        vault_address:   Optional[str]           = None,
        account_address: Optional[str]           = None,
        base_url:        Optional[str]           = None,
        nonce_provider:  Optional[NonceProvider] = None,
        assets:          Optional[AssetMap]      = None,
        rest_timeout:    float                   = DEFAULT_TIMEOUT_S,
    ) -> None:
        self.env             = HLEnv.parse(env)
        self._wallet: LocalAccount = to_account(private_key)
        self.vault_address   = vault_address
        self.account_address = account_address
        self.expires_after:  Optional[int] = None
        self._nonce          = nonce_provider or MonotonicNonce()
        self._assets         = assets
        self.rest            = AsyncHLRestClient(env=self.env, base_url=base_url, timeout=rest_timeout)
        self.ws              = HLWebSocketClient(env=self.env)

    # ------------------------------------------------------------------
    # Async context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "HLClient":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Cleanly close the REST session and the WebSocket connection."""
        await self.rest.close()
        await self.ws.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def address(self) -> str:
        """Address of the signing wallet."""
        return self._wallet.address

    @property
    def is_mainnet(self) -> bool:
        return self.env.is_mainnet

    @property
    def assets(self) -> AssetMap:
        if self._assets is None:
            raise HLError("asset map not loaded – call load_assets() first")
        return self._assets

    async def load_assets(self) -> AssetMap:
        self._assets = await self.rest.asset_map()
        return self._assets

    def set_expires_after(self, expires_after: Optional[int]) -> None:
        """Reject every subsequent action after this ms timestamp (None disables)."""
        self.expires_after = expires_after

    # ------------------------------------------------------------------
    # Sign + post helpers
    # ------------------------------------------------------------------

    async def _post(
        self, action: dict[str, Any], signature: Signature, nonce: int, *, use_vault: bool = True
    ) -> Any:
        vault = self.vault_address if use_vault else None
        payload = build_exchange_payload(action, signature, nonce, vault, self.expires_after)
        return await self.rest.post_exchange(payload)

    async def _l1(self, action: dict[str, Any], *, use_vault: bool = True) -> Any:
        # the posted vaultAddress must match the one hashed
        nonce = self._nonce()
        vault = self.vault_address if use_vault else None
        signature = sign_l1_action(
            self._wallet, action, vault, nonce, self.expires_after, self.is_mainnet
        )
        logger.debug("signed %s nonce=%d", action["type"], nonce)
        return await self._post(action, signature, nonce, use_vault=use_vault)

    async def _user_signed(self, action: dict[str, Any], nonce: int) -> Any:
        kind = user_signed_kind(action["type"])
        signature = sign_user_signed_action(
            self._wallet, action, kind.sign_types, kind.primary_type, self.is_mainnet
        )
        logger.debug("signed %s nonce=%d", action["type"], nonce)
        return await self._post(action, signature, nonce)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def order(
        self,
        coin: str,
        is_buy: bool,
        sz: float,
        limit_px: float,
        order_type: OrderType,
        reduce_only: bool = False,
        cloid: Optional[Cloid] = None,
        builder: Optional[BuilderInfo] = None,
    ) -> Any:
        order = OrderRequest(
            coin=coin,
            is_buy=is_buy,
            sz=sz,
            limit_px=limit_px,
            order_type=order_type,
            reduce_only=reduce_only,
            cloid=cloid,
        )
        return await self.bulk_orders([order], builder)

    async def bulk_orders(
        self,
        orders: Sequence[OrderRequest],
        builder: Optional[BuilderInfo] = None,
        grouping: Union[Grouping, str] = Grouping.NA,
    ) -> Any:
        return await self._l1(actions.order_action(orders, self.assets, builder, grouping))

    async def slippage_price(
        self,
        coin: str,
        is_buy: bool,
        slippage: float = DEFAULT_SLIPPAGE,
        px: Optional[float] = None,
    ) -> float:
        """
        Aggressive limit price for a market order.

        Uses the current mid when ``px`` is not given, moves it by
        ``slippage`` and rounds to 5 significant figures and the asset's
        allowed decimals (6 for perps, 8 for spot, minus szDecimals).
        """
        if px is None:
            name_coin = self.assets.name_to_coin.get(coin, coin)
            mids = await self.rest.all_mids()
            if name_coin not in mids:
                raise MalformedInputError("no mid price for coin", coin)
            px = float(mids[name_coin])

        px *= (1 + slippage) if is_buy else (1 - slippage)
        decimals = (8 if self.assets.is_spot(coin) else 6) - self.assets.sz_decimals(coin)
        return round_price(px, 5, decimals)

    async def market_open(
        self,
        coin: str,
        is_buy: bool,
        sz: float,
        px: Optional[float] = None,
        slippage: float = DEFAULT_SLIPPAGE,
        cloid: Optional[Cloid] = None,
        builder: Optional[BuilderInfo] = None,
    ) -> Any:
        """Open a position with an IOC limit order priced through the book."""
        limit_px = await self.slippage_price(coin, is_buy, slippage, px)
        order_type = OrderType(limit=LimitOrderType(tif=Tif.IOC))
        return await self.order(coin, is_buy, sz, limit_px, order_type, False, cloid, builder)

    async def market_close(
        self,
        coin: str,
        sz: Optional[float] = None,
        px: Optional[float] = None,
        slippage: float = DEFAULT_SLIPPAGE,
        cloid: Optional[Cloid] = None,
        builder: Optional[BuilderInfo] = None,
    ) -> Any:
        """Close (all or ``sz`` of) an open perp position with a reduce-only IOC order."""
        user  = self.account_address or self.vault_address or self.address
        state = await self.rest.user_state(user)
        for asset_position in state.get("assetPositions", []):
            position = asset_position["position"]
            if position["coin"] != coin:
                continue
            szi = float(position["szi"])
            is_buy = szi < 0
            limit_px = await self.slippage_price(coin, is_buy, slippage, px)
            order_type = OrderType(limit=LimitOrderType(tif=Tif.IOC))
            size = sz if sz is not None else abs(szi)
            return await self.order(coin, is_buy, size, limit_px, order_type, True, cloid, builder)
        raise HLError(f"no open position for {coin}")

    async def modify_order(
        self,
        oid: Union[int, Cloid],
        coin: str,
        is_buy: bool,
        sz: float,
        limit_px: float,
        order_type: OrderType,
        reduce_only: bool = False,
        cloid: Optional[Cloid] = None,
    ) -> Any:
        modify = ModifyRequest(
            oid=oid,
            order=OrderRequest(
                coin=coin,
                is_buy=is_buy,
                sz=sz,
                limit_px=limit_px,
                order_type=order_type,
                reduce_only=reduce_only,
                cloid=cloid,
            ),
        )
        return await self.bulk_modify_orders([modify])

    async def bulk_modify_orders(self, modifies: Sequence[ModifyRequest]) -> Any:
        return await self._l1(actions.batch_modify_action(modifies, self.assets))

    async def cancel(self, coin: str, oid: int) -> Any:
        return await self.bulk_cancel([CancelRequest(coin=coin, oid=oid)])

    async def cancel_by_cloid(self, coin: str, cloid: Cloid) -> Any:
        return await self.bulk_cancel_by_cloid([CancelByCloidRequest(coin=coin, cloid=cloid)])

    async def bulk_cancel(self, cancels: Sequence[CancelRequest]) -> Any:
        return await self._l1(actions.cancel_action(cancels, self.assets))

    async def bulk_cancel_by_cloid(self, cancels: Sequence[CancelByCloidRequest]) -> Any:
        return await self._l1(actions.cancel_by_cloid_action(cancels, self.assets))

    async def schedule_cancel(self, time: Optional[int] = None) -> Any:
        return await self._l1(actions.schedule_cancel_action(time))

    async def update_leverage(self, leverage: int, coin: str, is_cross: bool = True) -> Any:
        asset = self.assets.name_to_asset(coin)
        return await self._l1(actions.update_leverage_action(leverage, asset, is_cross))

    async def update_isolated_margin(self, amount: float, coin: str) -> Any:
        asset = self.assets.name_to_asset(coin)
        return await self._l1(actions.update_isolated_margin_action(amount, asset))

    async def twap_order(
        self, coin: str, is_buy: bool, sz: float, reduce_only: bool, minutes: int, randomize: bool
    ) -> Any:
        asset = self.assets.name_to_asset(coin)
        return await self._l1(
            actions.twap_order_action(asset, is_buy, sz, reduce_only, minutes, randomize)
        )

    async def twap_cancel(self, coin: str, twap_id: int) -> Any:
        return await self._l1(actions.twap_cancel_action(self.assets.name_to_asset(coin), twap_id))

    async def noop(self) -> Any:
        return await self._l1(actions.noop_action())

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    async def create_sub_account(self, name: str) -> Any:
        return await self._l1(actions.create_sub_account_action(name), use_vault=False)

    async def sub_account_transfer(self, sub_account_user: str, is_deposit: bool, usd: int) -> Any:
        action = actions.sub_account_transfer_action(sub_account_user, is_deposit, usd)
        return await self._l1(action, use_vault=False)

    async def sub_account_spot_transfer(
        self, sub_account_user: str, is_deposit: bool, token: str, amount: float
    ) -> Any:
        action = actions.sub_account_spot_transfer_action(sub_account_user, is_deposit, token, amount)
        return await self._l1(action, use_vault=False)

    async def vault_usd_transfer(self, vault_address: str, is_deposit: bool, usd: int) -> Any:
        action = actions.vault_transfer_action(vault_address, is_deposit, usd)
        return await self._l1(action, use_vault=False)

    async def set_referrer(self, code: str) -> Any:
        return await self._l1(actions.set_referrer_action(code), use_vault=False)

    async def use_big_blocks(self, enable: bool) -> Any:
        return await self._l1(actions.evm_user_modify_action(enable), use_vault=False)

    async def agent_enable_dex_abstraction(self) -> Any:
        """Agent-signed counterpart of user_dex_abstraction; honours the vault."""
        return await self._l1(actions.agent_enable_dex_abstraction_action())

    # ------------------------------------------------------------------
    # Spot deployment
    # ------------------------------------------------------------------

    async def spot_deploy_register_token(
        self, token_name: str, sz_decimals: int, wei_decimals: int, max_gas: int, full_name: str
    ) -> Any:
        action = actions.spot_deploy_register_token_action(
            token_name, sz_decimals, wei_decimals, max_gas, full_name
        )
        return await self._l1(action, use_vault=False)

    async def spot_deploy_user_genesis(
        self,
        token: int,
        user_and_wei: Sequence[tuple[str, str]],
        existing_token_and_wei: Sequence[tuple[int, str]],
    ) -> Any:
        action = actions.spot_deploy_user_genesis_action(token, user_and_wei, existing_token_and_wei)
        return await self._l1(action, use_vault=False)

    async def spot_deploy_enable_freeze_privilege(self, token: int) -> Any:
        return await self._l1(actions.spot_deploy_token_action("enableFreezePrivilege", token), use_vault=False)

    async def spot_deploy_freeze_user(self, token: int, user: str, freeze: bool) -> Any:
        return await self._l1(actions.spot_deploy_freeze_user_action(token, user, freeze), use_vault=False)

    async def spot_deploy_revoke_freeze_privilege(self, token: int) -> Any:
        return await self._l1(actions.spot_deploy_token_action("revokeFreezePrivilege", token), use_vault=False)

    async def spot_deploy_enable_quote_token(self, token: int) -> Any:
        return await self._l1(actions.spot_deploy_token_action("enableQuoteToken", token), use_vault=False)

    async def spot_deploy_genesis(self, token: int, max_supply: str, no_hyperliquidity: bool) -> Any:
        action = actions.spot_deploy_genesis_action(token, max_supply, no_hyperliquidity)
        return await self._l1(action, use_vault=False)

    async def spot_deploy_register_spot(self, base_token: int, quote_token: int) -> Any:
        action = actions.spot_deploy_register_spot_action(base_token, quote_token)
        return await self._l1(action, use_vault=False)

    async def spot_deploy_register_hyperliquidity(
        self,
        spot: int,
        start_px: float,
        order_sz: float,
        n_orders: int,
        n_seeded_levels: Optional[int] = None,
    ) -> Any:
        action = actions.spot_deploy_register_hyperliquidity_action(
            spot, start_px, order_sz, n_orders, n_seeded_levels
        )
        return await self._l1(action, use_vault=False)

    async def spot_deploy_set_deployer_trading_fee_share(self, token: int, share: str) -> Any:
        action = actions.spot_deploy_set_deployer_trading_fee_share_action(token, share)
        return await self._l1(action, use_vault=False)

    # ------------------------------------------------------------------
    # Perp deployment
    # ------------------------------------------------------------------

    async def perp_deploy_register_asset(
        self,
        dex: str,
        max_gas: Optional[int],
        coin: str,
        sz_decimals: int,
        oracle_px: str,
        margin_table_id: int,
        only_isolated: bool,
        schema: Optional[PerpDexSchema] = None,
    ) -> Any:
        action = actions.perp_deploy_register_asset_action(
            dex, max_gas, coin, sz_decimals, oracle_px, margin_table_id, only_isolated, schema
        )
        return await self._l1(action, use_vault=False)

    async def perp_deploy_set_oracle(
        self,
        dex: str,
        oracle_pxs: dict[str, str],
        all_mark_pxs: Sequence[dict[str, str]],
        external_perp_pxs: dict[str, str],
    ) -> Any:
        action = actions.perp_deploy_set_oracle_action(dex, oracle_pxs, all_mark_pxs, external_perp_pxs)
        return await self._l1(action, use_vault=False)

    # ------------------------------------------------------------------
    # Validator operations
    # ------------------------------------------------------------------

    async def c_signer_jail_self(self) -> Any:
        return await self._l1(actions.c_signer_action("jailSelf"), use_vault=False)

    async def c_signer_unjail_self(self) -> Any:
        return await self._l1(actions.c_signer_action("unjailSelf"), use_vault=False)

    async def c_validator_register(
        self,
        node_ip: str,
        name: str,
        description: str,
        delegations_disabled: bool,
        commission_bps: int,
        signer: str,
        unjailed: bool,
        initial_wei: int,
    ) -> Any:
        action = actions.c_validator_register_action(
            node_ip, name, description, delegations_disabled, commission_bps, signer, unjailed, initial_wei
        )
        return await self._l1(action, use_vault=False)

    async def c_validator_change_profile(
        self,
        unjailed: bool,
        node_ip: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        disable_delegations: Optional[bool] = None,
        commission_bps: Optional[int] = None,
        signer: Optional[str] = None,
    ) -> Any:
        action = actions.c_validator_change_profile_action(
            unjailed, node_ip, name, description, disable_delegations, commission_bps, signer
        )
        return await self._l1(action, use_vault=False)

    async def c_validator_unregister(self) -> Any:
        return await self._l1(actions.c_validator_unregister_action(), use_vault=False)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    async def usd_transfer(self, amount: float, destination: str) -> Any:
        nonce = self._nonce()
        return await self._user_signed(actions.usd_send_action(destination, amount, nonce), nonce)

    async def spot_transfer(self, amount: float, destination: str, token: str) -> Any:
        nonce = self._nonce()
        return await self._user_signed(actions.spot_send_action(destination, token, amount, nonce), nonce)

    async def withdraw_from_bridge(self, amount: float, destination: str) -> Any:
        nonce = self._nonce()
        return await self._user_signed(actions.withdraw_action(destination, amount, nonce), nonce)

    async def usd_class_transfer(self, amount: float, to_perp: bool) -> Any:
        nonce = self._nonce()
        action = actions.usd_class_transfer_action(amount, to_perp, nonce, self.vault_address)
        return await self._user_signed(action, nonce)

    async def send_asset(
        self, destination: str, source_dex: str, destination_dex: str, token: str, amount: float
    ) -> Any:
        nonce = self._nonce()
        action = actions.send_asset_action(
            destination, source_dex, destination_dex, token, amount, nonce,
            from_sub_account=self.vault_address or "",
        )
        return await self._user_signed(action, nonce)

    async def token_delegate(self, validator: str, wei: int, is_undelegate: bool) -> Any:
        nonce = self._nonce()
        return await self._user_signed(
            actions.token_delegate_action(validator, wei, is_undelegate, nonce), nonce
        )

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    async def approve_agent(self, agent_address: str, agent_name: Optional[str] = None) -> Any:
        nonce  = self._nonce()
        action = actions.approve_agent_action(agent_address, nonce, agent_name)
        kind   = user_signed_kind("approveAgent")
        signature = sign_user_signed_action(
            self._wallet, action, kind.sign_types, kind.primary_type, self.is_mainnet
        )
        if agent_name is None:
            del action["agentName"]
        return await self._post(action, signature, nonce)

    async def approve_builder_fee(self, builder: str, max_fee_rate: str) -> Any:
        nonce = self._nonce()
        return await self._user_signed(
            actions.approve_builder_fee_action(builder, max_fee_rate, nonce), nonce
        )

    async def user_dex_abstraction(self, user: str, enabled: bool) -> Any:
        nonce = self._nonce()
        return await self._user_signed(actions.user_dex_abstraction_action(user, enabled, nonce), nonce)

    # ------------------------------------------------------------------
    # Multi-sig
    # ------------------------------------------------------------------

    async def convert_to_multi_sig_user(self, authorized_users: Sequence[str], threshold: int) -> Any:
        nonce = self._nonce()
        return await self._user_signed(
            actions.convert_to_multi_sig_user_action(authorized_users, threshold, nonce), nonce
        )

    async def multi_sig(
        self,
        multi_sig_user: str,
        inner_action: dict[str, Any],
        signatures: Sequence[Signature],
        nonce: int,
        vault_address: Optional[str] = None,
    ) -> Any:
        """
        Submit an action on behalf of a multi-sig user.

        ``signatures`` are the authorised users' signatures over
        ``inner_action`` (see signing.sign_multi_sig_*_payload) made with the
        same ``nonce``.  This wallet signs the outer envelope.
        """
        action = actions.multi_sig_action(multi_sig_user, self.address, inner_action, signatures)
        signature = sign_multi_sig_action(
            self._wallet, action, self.is_mainnet, vault_address, nonce, self.expires_after
        )
        payload = build_exchange_payload(action, signature, nonce, vault_address, self.expires_after)
        return await self.rest.post_exchange(payload)
