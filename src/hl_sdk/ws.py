"""
ws.py – Async WebSocket client for Hyperliquid with reconnect logic.

Hyperliquid's WebSocket framing:
  {"method": "subscribe",   "subscription": {"type": "l2Book", "coin": "ETH"}}
  {"method": "unsubscribe", "subscription": {...}}
  {"method": "ping"}
  {"method": "post", "id": 7, "request": {"type": "action"|"info", "payload": {...}}}

The server sends back a stream of events:
  {"channel": "l2Book", "data": {...}}
  {"channel": "post",   "data": {"id": 7, "response": {"type": "action", "payload": {...}}}}

This client:
1. Subscribes to requested feeds on connect.
2. Sends an application-level ping so the server does not drop idle
   connections.
3. On any disconnect it backs off exponentially and reconnects,
   then re-subscribes all active feeds.
4. Dispatches messages to registered async callback handlers.
5. Correlates ``post`` requests with their responses by id, so signed
   actions can be submitted over the socket instead of HTTP.
6. Supports optional per-feed typed deserialization.

Usage
-----
    from hl_sdk import HLWebSocketClient, HLEnv, WsBook

    async def on_book(book: WsBook) -> None:
        print(book.best_bid)

    async with HLWebSocketClient(env=HLEnv.TESTNET) as ws:
        await ws.subscribe({"type": "l2Book", "coin": "ETH"}, on_book, msg_type=WsBook)
        await ws.run_forever()
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, Optional

import websockets
from pydantic import TypeAdapter, ValidationError
from websockets.exceptions import ConnectionClosed

from .errors import HLWebSocketError
from .types import DEFAULT_TIMEOUT_S, HLEnv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

# Handler: receives the full decoded JSON dict, or a typed value when msg_type is set
Handler = Callable[[Any], Coroutine[Any, Any, None]]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_HEARTBEAT_S     = 50    # server closes connections idle for 60 s
_PING_INTERVAL_S = 20
_PONG_TIMEOUT_S  = 10
_RECONNECT_BASE  = 1.0
_RECONNECT_MAX   = 60.0
_RECONNECT_EXP   = 2.0

_CONTROL_CHANNELS = {"pong", "subscriptionResponse"}


# ---------------------------------------------------------------------------
# Subscription routing
# ---------------------------------------------------------------------------

def subscription_identifier(subscription: dict[str, Any]) -> str:
    """Routing key for a subscription, matched against message_identifier()."""
    kind = subscription["type"]
    if kind in ("allMids", "userEvents", "orderUpdates"):
        return kind
    if kind in ("l2Book", "trades", "bbo", "activeAssetCtx"):
        return f"{kind}:{subscription['coin'].lower()}"
    if kind == "candle":
        return f"candle:{subscription['coin'].lower()},{subscription['interval']}"
    if kind == "activeAssetData":
        return f"activeAssetData:{subscription['coin'].lower()},{subscription['user'].lower()}"
    if "user" in subscription:
        return f"{kind}:{subscription['user'].lower()}"
    return kind


def message_identifier(msg: dict[str, Any]) -> Optional[str]:
    """Routing key for a pushed message; None when it cannot be routed."""
    channel = msg.get("channel")
    data    = msg.get("data")
    if channel in ("allMids", "orderUpdates"):
        return channel
    if channel == "user":
        return "userEvents"
    if channel in ("l2Book", "bbo"):
        return f"{channel}:{data['coin'].lower()}"
    if channel == "trades":
        if not data:
            return None
        return f"trades:{data[0]['coin'].lower()}"
    if channel == "candle":
        return f"candle:{data['s'].lower()},{data['i']}"
    if channel in ("activeAssetCtx", "activeSpotAssetCtx"):
        return f"activeAssetCtx:{data['coin'].lower()}"
    if channel == "activeAssetData":
        return f"activeAssetData:{data['coin'].lower()},{data['user'].lower()}"
    if isinstance(data, dict) and "user" in data:
        return f"{channel}:{data['user'].lower()}"
    return channel


@dataclass
class _Subscription:
    subscription: dict[str, Any]
    identifier:   str
    handler:      Handler
    msg_type:     Optional[Any]     # if set, msg["data"] is validated into this type


def _deserialize(msg: dict[str, Any], msg_type: Optional[Any]) -> Any:
    """
    Validate msg["data"] into msg_type (a model or e.g. ``list[WsTrade]``).

    Falls back to the raw data if validation fails, or returns the whole
    message if msg_type is None.
    """
    if msg_type is None:
        return msg

    data = msg.get("data", msg)
    try:
        return TypeAdapter(msg_type).validate_python(data)
    except ValidationError:
        logger.debug("Failed to deserialize %s into %s – passing raw data", data, msg_type)
        return data


# ---------------------------------------------------------------------------
# WebSocket client
# ---------------------------------------------------------------------------

class HLWebSocketClient:
    """
    Async WebSocket client for Hyperliquid.

    Parameters
    ----------
    env          : HLEnv selecting the default URL
    url          : Override the WebSocket URL
    post_timeout : Seconds to wait for a ``post`` response
    """

    def __init__(
        self,
        env:          HLEnv = HLEnv.MAINNET,
        url:          Optional[str] = None,
        post_timeout: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self.url            = url or env.ws_url
        self._post_timeout  = post_timeout
        self._subscriptions: list[_Subscription]            = []
        self._pending:       dict[int, asyncio.Future[Any]] = {}
        self._ids           = itertools.count(1)
        self._ws:            Optional[Any]                  = None
        self._connected     = False
        self._running       = False
        self._send_queue:    asyncio.Queue[str]             = asyncio.Queue()

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> "HLWebSocketClient":
        self._running = True
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    @property
    def connected(self) -> bool:
        return self._connected

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def subscribe(
        self,
        subscription: dict[str, Any],
        handler:      Handler,
        msg_type:     Optional[Any] = None,
    ) -> None:
        """
        Subscribe to a Hyperliquid feed.

        Parameters
        ----------
        subscription : e.g. {"type": "trades", "coin": "ETH"} or
                       {"type": "userFills", "user": "0x…"}
        handler      : Async callback.
                       - If msg_type is None: receives the full decoded JSON dict.
                       - If msg_type is set:  receives msg["data"] validated into
                         msg_type, falling back to the raw data on failure.
        msg_type     : Optional pydantic model or type expression,
                       e.g. msg_type=WsBook or msg_type=list[WsTrade]
        """
        sub = _Subscription(
            subscription=subscription,
            identifier=subscription_identifier(subscription),
            handler=handler,
            msg_type=msg_type,
        )
        self._subscriptions.append(sub)

        if self._connected:
            await self._send_subscribe(sub)

    async def unsubscribe(self, subscription: dict[str, Any]) -> None:
        """Remove every handler for ``subscription`` and notify the server."""
        identifier = subscription_identifier(subscription)
        self._subscriptions = [s for s in self._subscriptions if s.identifier != identifier]

        if self._connected:
            await self._ws.send(json.dumps({"method": "unsubscribe", "subscription": subscription}))

    async def send_raw(self, payload: dict[str, Any]) -> None:
        """Enqueue a raw JSON message to be sent to the server."""
        self._send_queue.put_nowait(json.dumps(payload))

    async def post(self, request_type: str, payload: dict[str, Any]) -> Any:
        """
        Send an ``info`` query or signed ``action`` over the socket.

        Returns the response payload.  Raises HLWebSocketError when the
        server answers with an error, the socket closes first, or no answer
        arrives within ``post_timeout``.
        """
        if not self._connected:
            raise HLWebSocketError("websocket is not connected")

        request_id = next(self._ids)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        message = {
            "method":  "post",
            "id":      request_id,
            "request": {"type": request_type, "payload": payload},
        }
        try:
            await self._ws.send(json.dumps(message))
            return await asyncio.wait_for(future, timeout=self._post_timeout)
        except asyncio.TimeoutError as exc:
            raise HLWebSocketError(f"post {request_id} timed out") from exc
        finally:
            self._pending.pop(request_id, None)

    async def post_action(self, payload: dict[str, Any]) -> Any:
        return await self.post("action", payload)

    async def post_info(self, payload: dict[str, Any]) -> Any:
        return await self.post("info", payload)

    async def run_forever(self) -> None:
        """
        Connect (or reconnect) and process messages until close() is called.

        Reconnection uses exponential back-off capped at _RECONNECT_MAX seconds.
        """
        self._running = True
        back_off      = _RECONNECT_BASE

        while self._running:
            try:
                await self._connect_and_run()
                back_off = _RECONNECT_BASE   # successful run resets back-off
            except asyncio.CancelledError:
                break
            except (OSError, ConnectionClosed, asyncio.TimeoutError) as exc:
                if not self._running:
                    break
                logger.warning(
                    "WebSocket error – reconnecting in %.1f s: %s",
                    back_off, exc,
                )
                await asyncio.sleep(back_off)
                back_off = min(back_off * _RECONNECT_EXP, _RECONNECT_MAX)

    async def close(self) -> None:
        """Gracefully close the WebSocket connection."""
        self._running = False
        if self._ws is not None and self._connected:
            await self._ws.close()
        self._fail_pending("websocket closed")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _connect_and_run(self) -> None:
        logger.info("Connecting to Hyperliquid WebSocket at %s", self.url)

        async with websockets.connect(
            self.url,
            ping_interval=_PING_INTERVAL_S,
            ping_timeout=_PONG_TIMEOUT_S,
        ) as ws:
            self._ws        = ws
            self._connected = True
            logger.info("WebSocket connected")
            tasks: list[asyncio.Task[None]] = []
            try:
                for sub in self._subscriptions:
                    await self._send_subscribe(sub)

                tasks = [
                    asyncio.create_task(self._recv_loop(ws), name="hl-ws-recv"),
                    asyncio.create_task(self._send_loop(ws), name="hl-ws-send"),
                    asyncio.create_task(self._heartbeat_loop(ws), name="hl-ws-heartbeat"),
                ]
                # The first loop to stop ends the connection; its error propagates
                done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    task.result()
            finally:
                self._connected = False
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                self._fail_pending("websocket closed with posts in flight")

    async def _recv_loop(self, ws: Any) -> None:
        """Receive messages, resolve posts and dispatch to handlers."""
        async for raw in ws:
            try:
                msg: dict[str, Any] = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Received non-JSON WebSocket message: %r", raw)
                continue

            channel = msg.get("channel", "")
            if channel == "post":
                self._resolve_post(msg.get("data", {}))
            elif channel == "error":
                logger.warning("WebSocket error message: %s", msg.get("data"))
            elif channel not in _CONTROL_CHANNELS:
                await self._dispatch(msg)

        # Server closed the stream cleanly; let run_forever reconnect
        if self._running:
            raise ConnectionClosed(None, None)

    async def _send_loop(self, ws: Any) -> None:
        """Drain the outbound queue and send messages."""
        while True:
            payload = await self._send_queue.get()
            try:
                await ws.send(payload)
            except ConnectionClosed:
                self._send_queue.put_nowait(payload)
                raise

    async def _heartbeat_loop(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(_HEARTBEAT_S)
            await ws.send(json.dumps({"method": "ping"}))

    async def _send_subscribe(self, sub: _Subscription) -> None:
        """Send a subscribe frame for a single subscription."""
        msg = json.dumps({"method": "subscribe", "subscription": sub.subscription})
        if self._connected:
            await self._ws.send(msg)

    def _resolve_post(self, data: dict[str, Any]) -> None:
        future = self._pending.get(data.get("id"))
        if future is None or future.done():
            logger.debug("Unmatched post response id=%s", data.get("id"))
            return
        response = data.get("response", {})
        if response.get("type") == "error":
            future.set_exception(HLWebSocketError(str(response.get("payload"))))
        else:
            future.set_result(response.get("payload"))

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(HLWebSocketError(reason))
        self._pending.clear()

    async def _dispatch(self, msg: dict[str, Any]) -> None:
        """Find and call the handler(s) for the message's feed."""
        try:
            identifier = message_identifier(msg)
        except (KeyError, TypeError, AttributeError, IndexError):
            logger.warning("Could not route WebSocket message: %s", msg)
            return

        for sub in self._subscriptions:
            if sub.identifier != identifier:
                continue
            try:
                value = _deserialize(msg, sub.msg_type)
                await sub.handler(value)
            except Exception:
                logger.exception(
                    "Unhandled exception in WebSocket handler for %s", identifier
                )
