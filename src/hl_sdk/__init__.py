"""
HL SDK – Python SDK for the Hyperliquid exchange.

Provides:
  - Unified façade                     (client.py     → HLClient)
  - Canonical msgpack action hashing   (encoding.py   → encode_action, action_hash)
  - EIP-712 envelopes                  (typed_data.py → l1_payload, user_signed_payload)
  - Action signing / recovery          (signing.py    → sign_l1_action, …)
  - Price / size wire conversion       (wire.py       → float_to_wire, …)
  - Action builders                    (actions.py)
  - Typed Pydantic v2 models           (types.py)
  - Synchronous REST client            (rest.py       → HLRestClient)
  - Async REST client                  (rest.py       → AsyncHLRestClient)
  - Async WebSocket client             (ws.py         → HLWebSocketClient)

Quickstart
----------
    import asyncio
    from hl_sdk import HLClient, HLEnv

    async def main() -> None:
        async with HLClient(private_key="0x…", env=HLEnv.TESTNET) as client:
            await client.load_assets()
            print(await client.market_open("ETH", is_buy=True, sz=0.01))

    asyncio.run(main())
"""

from .types import (
    # Environment
    HLEnv,
    # Enums
    Tif,
    Tpsl,
    Grouping,
    # Requests
    Cloid,
    LimitOrderType,
    TriggerOrderType,
    OrderType,
    OrderRequest,
    ModifyRequest,
    CancelRequest,
    CancelByCloidRequest,
    BuilderInfo,
    PerpDexSchema,
    # Wire records
    OrderTypeWire,
    TriggerOrderTypeWire,
    OrderWire,
    ModifyWire,
    # Signing / lookup
    Signature,
    AssetMap,
    ExchangeResponse,
    # WS push payloads
    WsLevel,
    WsBook,
    WsTrade,
    AllMids,
)
from .errors import (
    HLError,
    SigningError,
    EncodingError,
    PrecisionError,
    MalformedInputError,
    CryptoError,
    HLAPIError,
    HLExchangeError,
    HLWebSocketError,
)
from .wire import (
    NonceProvider,
    MonotonicNonce,
    float_to_wire,
    float_to_int,
    float_to_int_for_hashing,
    float_to_usd_int,
    get_timestamp_ms,
    round_price,
)
from .encoding import encode_action, action_hash
from .typed_data import (
    construct_phantom_agent,
    l1_payload,
    user_signed_payload,
    typed_data_hash,
    USER_SIGNED_ACTIONS,
    user_signed_kind,
)
from .signing import (
    sign_l1_action,
    sign_user_signed_action,
    sign_multi_sig_action,
    sign_multi_sig_l1_action_payload,
    sign_multi_sig_user_signed_action_payload,
    recover_l1_signer,
    recover_user_signed_signer,
    order_type_to_wire,
    order_request_to_order_wire,
    order_wires_to_order_action,
)
from .rest import HLRestClient, AsyncHLRestClient, build_exchange_payload, parse_exchange_response
from .ws import HLWebSocketClient
from .client import HLClient

__all__ = [
    # Environment
    "HLEnv",
    # Enums
    "Tif",
    "Tpsl",
    "Grouping",
    # Requests
    "Cloid",
    "LimitOrderType",
    "TriggerOrderType",
    "OrderType",
    "OrderRequest",
    "ModifyRequest",
    "CancelRequest",
    "CancelByCloidRequest",
    "BuilderInfo",
    "PerpDexSchema",
    # Wire records
    "OrderTypeWire",
    "TriggerOrderTypeWire",
    "OrderWire",
    "ModifyWire",
    # Signing / lookup
    "Signature",
    "AssetMap",
    "ExchangeResponse",
    # WS push payloads
    "WsLevel",
    "WsBook",
    "WsTrade",
    "AllMids",
    # Errors
    "HLError",
    "SigningError",
    "EncodingError",
    "PrecisionError",
    "MalformedInputError",
    "CryptoError",
    "HLAPIError",
    "HLExchangeError",
    "HLWebSocketError",
    # Wire conversion
    "NonceProvider",
    "MonotonicNonce",
    "float_to_wire",
    "float_to_int",
    "float_to_int_for_hashing",
    "float_to_usd_int",
    "get_timestamp_ms",
    "round_price",
    # Hashing
    "encode_action",
    "action_hash",
    "construct_phantom_agent",
    "l1_payload",
    "user_signed_payload",
    "typed_data_hash",
    "USER_SIGNED_ACTIONS",
    "user_signed_kind",
    # Signing
    "sign_l1_action",
    "sign_user_signed_action",
    "sign_multi_sig_action",
    "sign_multi_sig_l1_action_payload",
    "sign_multi_sig_user_signed_action_payload",
    "recover_l1_signer",
    "recover_user_signed_signer",
    "order_type_to_wire",
    "order_request_to_order_wire",
    "order_wires_to_order_action",
    # REST
    "HLRestClient",
    "AsyncHLRestClient",
    "build_exchange_payload",
    "parse_exchange_response",
    # WebSocket
    "HLWebSocketClient",
    # Unified façade
    "HLClient",
]

__version__ = "0.1.0"
