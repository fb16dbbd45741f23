"""
rest.py – REST clients (sync and async) for the Hyperliquid API.

Hyperliquid exposes two POST endpoints:

    /info       unauthenticated queries, body ``{"type": "<query>", ...}``
    /exchange   signed actions, body built by build_exchange_payload()

Both clients raise HLAPIError on HTTP errors and HLExchangeError when
/exchange answers with a ``{"status": "err", ...}`` envelope.

Usage – sync
------------
    from hl_sdk import HLRestClient, HLEnv
    from hl_sdk.signing import sign_l1_action

    client = HLRestClient(env=HLEnv.TESTNET)
    assets = client.asset_map()

    sig     = sign_l1_action(private_key, action, None, nonce, None, is_mainnet=False)
    payload = build_exchange_payload(action, sig, nonce)
    result  = client.post_exchange(payload)

Usage – async
-------------
    async with AsyncHLRestClient(env=HLEnv.TESTNET) as client:
        mids = await client.all_mids()
        resp = await client.post_exchange(payload)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional, Union

import requests

from .errors import HLAPIError, HLExchangeError
from .types import DEFAULT_TIMEOUT_S, AssetMap, ExchangeResponse, HLEnv, Signature

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Retry configuration
# ---------------------------------------------------------------------------

_RETRY_STATUSES  = {429, 500, 502, 503, 504}
_MAX_RETRIES     = 3
_RETRY_BASE_S    = 0.5   # initial back-off seconds
_RETRY_EXP       = 2.0

INFO_PATH     = "/info"
EXCHANGE_PATH = "/exchange"

# These user-signed actions carry their sub-account inside the message
_NO_VAULT_ACTIONS = frozenset({"usdClassTransfer", "sendAsset"})


# ---------------------------------------------------------------------------
# Payload helpers (shared by sync and async clients)
# ---------------------------------------------------------------------------

def build_exchange_payload(
    action: dict[str, Any],
    signature: Union[Signature, dict[str, Any]],
    nonce: int,
    vault_address: Optional[str] = None,
    expires_after: Optional[int] = None,
) -> dict[str, Any]:
    """
    Wrap a signed action in the /exchange request body.

    ``vaultAddress`` is always present (null when unused) and forced to null
    for usdClassTransfer and sendAsset.  ``expiresAfter`` is only added when
    set.
    """
    if action.get("type") in _NO_VAULT_ACTIONS:
        vault_address = None

    payload: dict[str, Any] = {
        "action":       action,
        "nonce":        nonce,
        "signature":    signature.model_dump() if isinstance(signature, Signature) else signature,
        "vaultAddress": vault_address,
    }
    if expires_after is not None:
        payload["expiresAfter"] = expires_after
    return payload


def parse_exchange_response(raw: Any) -> Any:
    """Return ``response`` from an ok envelope; raise HLExchangeError otherwise."""
    if not isinstance(raw, dict):
        raise HLExchangeError(f"unexpected response: {raw!r}", status="invalid")
    envelope = ExchangeResponse.model_validate(raw)
    if envelope.status != "ok":
        raise HLExchangeError(str(envelope.response), status=envelope.status)
    return envelope.response


def _resolve_base_url(env: HLEnv, base_url: Optional[str]) -> str:
    return (base_url or env.api_url).rstrip("/")


# ---------------------------------------------------------------------------
# Synchronous client
# ---------------------------------------------------------------------------

class HLRestClient:
    """
    Synchronous REST client for Hyperliquid.

    Parameters
    ----------
    env      : HLEnv selecting the default base URL
    base_url : Override the API base URL (e.g. a local node)
    timeout  : Default HTTP timeout in seconds
    """

    def __init__(
        self,
        env: HLEnv = HLEnv.MAINNET,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.env      = env
        self.base_url = _resolve_base_url(env, base_url)
        self._timeout = timeout
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HLRestClient":
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal request helper
    # ------------------------------------------------------------------

    def _post(self, path: str, body: dict[str, Any], *, retry: bool = True) -> Any:
        """
        POST ``body`` with automatic retry on retryable status codes.

        Parameters
        ----------
        path   : INFO_PATH or EXCHANGE_PATH
        body   : JSON request body
        retry  : False for signed actions; a replayed nonce is rejected anyway
        """
        url      = self.base_url + path
        backoff  = _RETRY_BASE_S
        attempts = _MAX_RETRIES if retry else 0

        for attempt in range(attempts + 1):
            logger.debug("POST %s  body=%s  attempt=%d", url, body, attempt)
            resp = self._session.post(url, json=body, timeout=self._timeout)

            if resp.status_code not in _RETRY_STATUSES or attempt == attempts:
                break

            logger.warning(
                "Retryable response %d from POST %s – retrying in %.1f s",
                resp.status_code, path, backoff,
            )
            time.sleep(backoff)
            backoff *= _RETRY_EXP

        if resp.status_code >= 400:
            raise HLAPIError(resp.status_code, resp.text, method="POST", path=path)

        return resp.json()

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def post_info(self, body: dict[str, Any]) -> Any:
        return self._post(INFO_PATH, body)

    def post_exchange(self, payload: dict[str, Any]) -> Any:
        """Submit a signed payload and unwrap the status envelope."""
        return parse_exchange_response(self._post(EXCHANGE_PATH, payload, retry=False))

    def meta(self, dex: str = "") -> dict[str, Any]:
        body: dict[str, Any] = {"type": "meta"}
        if dex:
            body["dex"] = dex
        return self.post_info(body)

    def spot_meta(self) -> dict[str, Any]:
        return self.post_info({"type": "spotMeta"})

    def all_mids(self, dex: str = "") -> dict[str, str]:
        body: dict[str, Any] = {"type": "allMids"}
        if dex:
            body["dex"] = dex
        return self.post_info(body)

    def user_state(self, address: str, dex: str = "") -> dict[str, Any]:
        body: dict[str, Any] = {"type": "clearinghouseState", "user": address}
        if dex:
            body["dex"] = dex
        return self.post_info(body)

    def asset_map(self) -> AssetMap:
        """Fetch perp and spot metadata and build the coin → asset lookup."""
        return AssetMap.from_meta(self.meta(), self.spot_meta())


# ---------------------------------------------------------------------------
# Async client
# ---------------------------------------------------------------------------

class AsyncHLRestClient:
    """
    Async REST client for Hyperliquid (aiohttp-based).

    Usage
    -----
        async with AsyncHLRestClient(env=HLEnv.TESTNET) as client:
            meta = await client.meta()
            resp = await client.post_exchange(payload)
    """

    def __init__(
        self,
        env: HLEnv = HLEnv.MAINNET,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self.env      = env
        self.base_url = _resolve_base_url(env, base_url)
        self._timeout = timeout
        self._session: Any = None   # aiohttp.ClientSession, created on first use

    async def __aenter__(self) -> "AsyncHLRestClient":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    # ------------------------------------------------------------------
    # Internal async request helper
    # ------------------------------------------------------------------

    async def _post(self, path: str, body: dict[str, Any], *, retry: bool = True) -> Any:
        import aiohttp

        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()

        url      = self.base_url + path
        backoff  = _RETRY_BASE_S
        attempts = _MAX_RETRIES if retry else 0

        for attempt in range(attempts + 1):
            logger.debug("POST %s  body=%s  attempt=%d", url, body, attempt)
            async with self._session.post(
                url,
                json=body,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                status = resp.status
                if status not in _RETRY_STATUSES or attempt == attempts:
                    if status >= 400:
                        text = await resp.text()
                        raise HLAPIError(status, text, method="POST", path=path)
                    return await resp.json(content_type=None)

            logger.warning(
                "Retryable response %d from POST %s – retrying in %.1f s",
                status, path, backoff,
            )
            await asyncio.sleep(backoff)
            backoff *= _RETRY_EXP

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def post_info(self, body: dict[str, Any]) -> Any:
        return await self._post(INFO_PATH, body)

    async def post_exchange(self, payload: dict[str, Any]) -> Any:
        raw = await self._post(EXCHANGE_PATH, payload, retry=False)
        return parse_exchange_response(raw)

    async def meta(self, dex: str = "") -> dict[str, Any]:
        body: dict[str, Any] = {"type": "meta"}
        if dex:
            body["dex"] = dex
        return await self.post_info(body)

    async def spot_meta(self) -> dict[str, Any]:
        return await self.post_info({"type": "spotMeta"})

    async def all_mids(self, dex: str = "") -> dict[str, str]:
        body: dict[str, Any] = {"type": "allMids"}
        if dex:
            body["dex"] = dex
        return await self.post_info(body)

    async def user_state(self, address: str, dex: str = "") -> dict[str, Any]:
        body: dict[str, Any] = {"type": "clearinghouseState", "user": address}
        if dex:
            body["dex"] = dex
        return await self.post_info(body)

    async def asset_map(self) -> AssetMap:
        meta, spot_meta = await asyncio.gather(self.meta(), self.spot_meta())
        return AssetMap.from_meta(meta, spot_meta)
