"""
examples/quickstart.py – End-to-end demo of the Hyperliquid SDK.

Walks through the full order pipeline:
  1. Fetch metadata and build the coin → asset lookup
  2. Fetch live mid prices
  3. Build a limit order far from the market
  4. Sign it (msgpack action hash → phantom agent → EIP-712)
  5. Submit it via REST and cancel it again
  6. Stream live l2Book / trades over WebSocket

HOW TO RUN
----------
    export HL_PRIVATE_KEY="0x..."
    python examples/quickstart.py

    Everything targets TESTNET by default.  Set HL_ENV=mainnet to go live.
"""

from __future__ import annotations

import asyncio
import logging
import os

from hl_sdk import (
    HLClient,
    HLEnv,
    HLRestClient,
    LimitOrderType,
    OrderRequest,
    OrderType,
    Tif,
    WsBook,
    WsTrade,
    build_exchange_payload,
    order_request_to_order_wire,
    order_wires_to_order_action,
    sign_l1_action,
)
from hl_sdk.errors import HLError
from hl_sdk.wire import get_timestamp_ms

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s – %(message)s",
)
logger = logging.getLogger("quickstart")

# ---------------------------------------------------------------------------
# Config – read from environment variables
# ---------------------------------------------------------------------------

PRIVATE_KEY = os.environ.get("HL_PRIVATE_KEY", "0x" + "aa" * 32)
ENV         = HLEnv.parse(os.environ.get("HL_ENV", "testnet"))

COIN = "ETH"


# ---------------------------------------------------------------------------
# Part 1 – sync REST: sign and submit by hand
# ---------------------------------------------------------------------------

def rest_demo() -> None:
    logger.info("=== REST demo ===")

    with HLRestClient(env=ENV) as client:
        # 1. Metadata
        assets = client.asset_map()
        asset  = assets.name_to_asset(COIN)
        logger.info("%s is asset %d (szDecimals=%d)", COIN, asset, assets.sz_decimals(COIN))

        # 2. Mid price
        mid = float(client.all_mids()[COIN])
        logger.info("%s mid: %s", COIN, mid)

        # 3. Limit buy at half the mid – will rest, not fill
        order = OrderRequest(
            coin=COIN,
            is_buy=True,
            sz=0.01,
            limit_px=round(mid / 2, 1),
            order_type=OrderType(limit=LimitOrderType(tif=Tif.ALO)),
        )
        action = order_wires_to_order_action([order_request_to_order_wire(order, asset)])

        # 4. Sign
        nonce = get_timestamp_ms()
        sig   = sign_l1_action(PRIVATE_KEY, action, None, nonce, None, ENV.is_mainnet)
        logger.info("Signed – r=%s… v=%d", sig.r[:12], sig.v)

        # 5. Submit
        try:
            response = client.post_exchange(build_exchange_payload(action, sig, nonce))
            logger.info("Order submitted – %s", response["data"]["statuses"])
        except HLError as exc:
            logger.warning("post_exchange failed (expected if the wallet is unfunded): %s", exc)


# ---------------------------------------------------------------------------
# Part 2 – async façade + WebSocket
# ---------------------------------------------------------------------------

async def ws_demo() -> None:
    logger.info("=== WebSocket demo (runs for 15 s) ===")

    async def on_book(book: WsBook) -> None:
        bid, ask = book.best_bid, book.best_ask
        if bid and ask:
            logger.info("[book ]  %s  bid=%s  ask=%s", book.coin, bid.px, ask.px)

    async def on_trades(trades: list[WsTrade]) -> None:
        for trade in trades:
            logger.info("[trade]  %s  %s  px=%s  sz=%s", trade.coin, trade.side, trade.px, trade.sz)

    async with HLClient(PRIVATE_KEY, env=ENV) as client:
        logger.info("Wallet %s", client.address)
        await client.load_assets()

        # Resting order through the façade, then cancel it
        try:
            px = await client.slippage_price(COIN, is_buy=False, slippage=0.5)
            resp = await client.order(COIN, True, 0.01, px, OrderType(limit=LimitOrderType(tif=Tif.ALO)))
            status = resp["data"]["statuses"][0]
            if "resting" in status:
                await client.cancel(COIN, status["resting"]["oid"])
                logger.info("Placed and cancelled oid=%s", status["resting"]["oid"])
        except HLError as exc:
            logger.warning("order failed (expected if the wallet is unfunded): %s", exc)

        await client.ws.subscribe({"type": "l2Book", "coin": COIN}, on_book, msg_type=WsBook)
        await client.ws.subscribe({"type": "trades", "coin": COIN}, on_trades, msg_type=list[WsTrade])

        try:
            await asyncio.wait_for(client.ws.run_forever(), timeout=15)
        except asyncio.TimeoutError:
            pass

    logger.info("WebSocket demo complete")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    rest_demo()
    asyncio.run(ws_demo())


if __name__ == "__main__":
    main()
