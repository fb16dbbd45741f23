"""
tests/test_integration.py – Integration smoke tests against Hyperliquid testnet.

These tests make real network calls and require a funded testnet wallet.
They are skipped automatically in CI (no credentials present) and
when run without the --integration flag.

HOW TO RUN
----------
    export HL_PRIVATE_KEY="0x..."
    export HL_ACCOUNT_ADDRESS="0x..."   # only when HL_PRIVATE_KEY is an API wallet

    pytest tests/test_integration.py -v --integration

WHAT THESE TESTS VERIFY
-----------------------
  1. Metadata      – meta / spotMeta build a usable AssetMap
  2. Mids          – allMids returns a price for ETH
  3. Sign + submit – a far-from-market ALO order is accepted and rests
  4. Cancel        – the resting order can be cancelled by oid
  5. WS connect    – WebSocket delivers at least one l2Book snapshot

Each test is independent: failures in earlier tests don't cascade.
"""

from __future__ import annotations

import asyncio
import os
import time

import pytest

from hl_sdk import HLClient, HLEnv, LimitOrderType, OrderType, Tif, WsBook

# ---------------------------------------------------------------------------
# Credentials – read from environment, skip entire module if absent
# ---------------------------------------------------------------------------

PRIVATE_KEY     = os.environ.get("HL_PRIVATE_KEY",     "")
ACCOUNT_ADDRESS = os.environ.get("HL_ACCOUNT_ADDRESS", "") or None
ENV             = HLEnv.parse(os.environ.get("HL_ENV", "testnet"))

_CREDS_PRESENT = bool(PRIVATE_KEY)

COIN = "ETH"


def _client() -> HLClient:
    return HLClient(PRIVATE_KEY, env=ENV, account_address=ACCOUNT_ADDRESS)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

@pytest.mark.integration
@pytest.mark.skipif(not _CREDS_PRESENT, reason="HL_PRIVATE_KEY not set in environment")
@pytest.mark.asyncio
async def test_asset_map() -> None:
    """Public REST: perp and spot metadata resolve coin names."""
    async with _client() as client:
        assets = await client.load_assets()
    assert assets.name_to_asset(COIN) >= 0
    assert not assets.is_spot(COIN)


@pytest.mark.integration
@pytest.mark.skipif(not _CREDS_PRESENT, reason="HL_PRIVATE_KEY not set in environment")
@pytest.mark.asyncio
async def test_all_mids() -> None:
    """Public REST: allMids has a positive ETH price."""
    async with _client() as client:
        mids = await client.rest.all_mids()
    assert float(mids[COIN]) > 0, "ETH mid must be positive"


@pytest.mark.integration
@pytest.mark.skipif(not _CREDS_PRESENT, reason="HL_PRIVATE_KEY not set in environment")
@pytest.mark.asyncio
async def test_submit_and_cancel() -> None:
    """Signed /exchange: rest an ALO bid at half the mid, then cancel it."""
    async with _client() as client:
        await client.load_assets()
        px = await client.slippage_price(COIN, is_buy=False, slippage=0.5)

        resp = await client.order(
            COIN, True, 0.01, px, OrderType(limit=LimitOrderType(tif=Tif.ALO))
        )
        status = resp["data"]["statuses"][0]
        assert "resting" in status, f"Order did not rest: {status}"

        cancel = await client.cancel(COIN, status["resting"]["oid"])
        assert cancel["data"]["statuses"] == ["success"]


@pytest.mark.integration
@pytest.mark.skipif(not _CREDS_PRESENT, reason="HL_PRIVATE_KEY not set in environment")
@pytest.mark.asyncio
async def test_ws_book_snapshot() -> None:
    """WebSocket: connects and delivers at least one l2Book message within 5 s."""
    received: list[WsBook] = []

    async def on_book(book: WsBook) -> None:
        received.append(book)

    async with _client() as client:
        await client.ws.subscribe({"type": "l2Book", "coin": COIN}, on_book, msg_type=WsBook)
        ws_task = asyncio.create_task(client.ws.run_forever())

        # Wait up to 5 s for first message
        deadline = time.perf_counter() + 5.0
        while not received and time.perf_counter() < deadline:
            await asyncio.sleep(0.1)

        ws_task.cancel()
        try:
            await ws_task
        except asyncio.CancelledError:
            pass

    assert received, "No l2Book snapshot received from WebSocket within 5 s"
    assert received[0].best_bid or received[0].best_ask, "Snapshot has no levels"
