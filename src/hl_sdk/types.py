"""
types.py – Pydantic v2 models for Hyperliquid requests and wire records.

Two families of models live here:

  Request models   – what callers build (OrderRequest, OrderType, …).
                     Prices and sizes are floats; they are converted with
                     float_to_wire() before anything is hashed.

  Wire records     – the exact shape that is msgpack-encoded and hashed
                     (OrderWire, OrderTypeWire, ModifyWire, …).  Every
                     field declares its serialisation key as an alias
                     (asset → "a", is_buy → "b", …) and the field order is
                     the key order on the wire.  Dump them with
                     ``model_dump(by_alias=True, exclude_none=True)``.

Validation
----------
All models are validated on construction.  Invalid data raises
pydantic.ValidationError with field-level detail rather than silently
passing bad values through to signing.
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import MalformedInputError

SPOT_ASSET_OFFSET       = 10_000
BUILDER_PERP_DEX_OFFSET = 110_000
DEFAULT_TIMEOUT_S       = 30.0
DEFAULT_SLIPPAGE        = 0.05

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

_ENDPOINTS: dict[str, dict[str, str]] = {
    "mainnet": {
        "api": "https://api.hyperliquid.xyz",
        "ws":  "wss://api.hyperliquid.xyz/ws",
    },
    "testnet": {
        "api": "https://api.hyperliquid-testnet.xyz",
        "ws":  "wss://api.hyperliquid-testnet.xyz/ws",
    },
    "local": {
        "api": "http://localhost:3001",
        "ws":  "ws://localhost:3001/ws",
    },
}


@unique
class HLEnv(Enum):
    """Hyperliquid deployment environment."""
    MAINNET = "mainnet"
    TESTNET = "testnet"
    LOCAL   = "local"

    @property
    def label(self) -> str:
        return self.value

    @property
    def api_url(self) -> str:
        return _ENDPOINTS[self.value]["api"]

    @property
    def ws_url(self) -> str:
        return _ENDPOINTS[self.value]["ws"]

    @property
    def is_mainnet(self) -> bool:
        return self is HLEnv.MAINNET

    @classmethod
    def parse(cls, env: Union["HLEnv", str]) -> "HLEnv":
        return env if isinstance(env, HLEnv) else cls(env.lower())


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

@unique
class Tif(str, Enum):
    ALO = "Alo"   # add liquidity only
    IOC = "Ioc"   # immediate or cancel
    GTC = "Gtc"   # good till cancel


@unique
class Tpsl(str, Enum):
    TP = "tp"
    SL = "sl"


@unique
class Grouping(str, Enum):
    NA            = "na"
    NORMAL_TPSL   = "normalTpsl"
    POSITION_TPSL = "positionTpsl"


# ---------------------------------------------------------------------------
# Shared validator helpers
# ---------------------------------------------------------------------------

def _validate_address(v: str, field: str = "address") -> str:
    """Reject anything that is not a 0x-prefixed 20-byte hex string; lowercase it."""
    stripped = v.removeprefix("0x").removeprefix("0X")
    if len(stripped) != 40:
        raise ValueError(f"{field} '{v}' must be 0x followed by 40 hex characters")
    try:
        int(stripped, 16)
    except ValueError:
        raise ValueError(f"{field} '{v}' is not valid hex")
    return "0x" + stripped.lower()


def _validate_hex_scalar(v: str, field: str) -> str:
    stripped = v.removeprefix("0x")
    if not v.startswith("0x") or not stripped:
        raise ValueError(f"{field} must be a non-empty 0x-prefixed hex string")
    try:
        int(stripped, 16)
    except ValueError:
        raise ValueError(f"{field} '{v}' is not valid hex")
    return v


class _WireModel(BaseModel):
    """Base for records that are hashed: aliases are the wire keys."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Client order id
# ---------------------------------------------------------------------------

class Cloid(BaseModel):
    """A 16-byte client order id, carried as ``0x`` + 32 hex characters."""
    model_config = ConfigDict(frozen=True)

    raw: str

    @field_validator("raw")
    @classmethod
    def validate_raw(cls, v: str) -> str:
        if not v.startswith("0x"):
            raise ValueError("cloid must start with 0x")
        if len(v) != 34:
            raise ValueError(f"cloid must be 16 bytes (32 hex chars), got {len(v) - 2}")
        try:
            bytes.fromhex(v[2:])
        except ValueError:
            raise ValueError(f"cloid '{v}' is not valid hex")
        return v

    @classmethod
    def from_int(cls, value: int) -> "Cloid":
        if not 0 <= value < 1 << 128:
            raise MalformedInputError("cloid integer must fit in 16 bytes", value)
        return cls(raw=f"0x{value:032x}")

    @classmethod
    def from_str(cls, value: str) -> "Cloid":
        return cls(raw=value)

    def to_raw(self) -> str:
        return self.raw

    def __str__(self) -> str:
        return self.raw


# ---------------------------------------------------------------------------
# Order request models
# ---------------------------------------------------------------------------

class LimitOrderType(_WireModel):
    tif: Tif = Field(alias="tif")


class TriggerOrderType(BaseModel):
    """
    Trigger (stop / take-profit) order configuration.

    trigger_px : price that arms the order
    is_market  : execute as market once triggered
    tpsl       : "tp" or "sl"
    """
    trigger_px: float
    is_market:  bool
    tpsl:       Tpsl


class OrderType(BaseModel):
    """Exactly one of ``limit`` / ``trigger`` must be set to be signable."""
    limit:   Optional[LimitOrderType]   = None
    trigger: Optional[TriggerOrderType] = None


class OrderRequest(BaseModel):
    """
    An order as the caller thinks about it.

    coin        : coin name resolved through an AssetMap (e.g. "ETH", "PURR/USDC")
    sz          : size in coin units
    limit_px    : limit price
    cloid       : optional client order id echoed back in order updates
    """
    coin:        str
    is_buy:      bool
    sz:          float
    limit_px:    float
    order_type:  OrderType
    reduce_only: bool            = False
    cloid:       Optional[Cloid] = None

    @field_validator("sz")
    @classmethod
    def validate_sz(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"sz must be positive, got {v}")
        return v

    @field_validator("limit_px")
    @classmethod
    def validate_limit_px(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"limit_px must be non-negative, got {v}")
        return v


class ModifyRequest(BaseModel):
    oid:   Union[int, Cloid]
    order: OrderRequest


class CancelRequest(BaseModel):
    coin: str
    oid:  int


class CancelByCloidRequest(BaseModel):
    coin:  str
    cloid: Cloid


class BuilderInfo(_WireModel):
    """Builder fee attachment; ``f`` is in tenths of a basis point."""
    b: str = Field(alias="b")
    f: int = Field(alias="f")

    @field_validator("b")
    @classmethod
    def validate_builder(cls, v: str) -> str:
        return _validate_address(v, "builder")

    @field_validator("f")
    @classmethod
    def validate_fee(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"builder fee must be non-negative, got {v}")
        return v


class PerpDexSchema(BaseModel):
    """Schema of a builder-deployed perp dex, sent with its first asset."""
    full_name:        str
    collateral_token: int
    oracle_updater:   Optional[str] = None

    @field_validator("oracle_updater")
    @classmethod
    def validate_oracle_updater(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _validate_address(v, "oracle_updater")


# ---------------------------------------------------------------------------
# Wire records
# ---------------------------------------------------------------------------

class TriggerOrderTypeWire(_WireModel):
    is_market:  bool = Field(alias="isMarket")
    trigger_px: str  = Field(alias="triggerPx")
    tpsl:       Tpsl = Field(alias="tpsl")


class OrderTypeWire(_WireModel):
    limit:   Optional[LimitOrderType]       = Field(default=None, alias="limit")
    trigger: Optional[TriggerOrderTypeWire] = Field(default=None, alias="trigger")


class OrderWire(_WireModel):
    asset:       int            = Field(alias="a")
    is_buy:      bool           = Field(alias="b")
    limit_px:    str            = Field(alias="p")
    sz:          str            = Field(alias="s")
    reduce_only: bool           = Field(alias="r")
    order_type:  OrderTypeWire  = Field(alias="t")
    cloid:       Optional[str]  = Field(default=None, alias="c")


class ModifyWire(_WireModel):
    oid:   Union[int, str] = Field(alias="oid")
    order: OrderWire       = Field(alias="order")


# ---------------------------------------------------------------------------
# Signature
# ---------------------------------------------------------------------------

class Signature(BaseModel):
    """
    Recoverable secp256k1 signature in the exchange's JSON form.

    r, s : 0x-prefixed hex with leading zero nibbles stripped (big-int style)
    v    : 27 or 28
    """
    model_config = ConfigDict(frozen=True)

    r: str
    s: str
    v: int

    @field_validator("r", "s")
    @classmethod
    def validate_component(cls, v: str) -> str:
        return _validate_hex_scalar(v, "signature component")

    @field_validator("v")
    @classmethod
    def validate_v(cls, v: int) -> int:
        if v not in (27, 28):
            raise ValueError(f"v must be 27 or 28, got {v}")
        return v


# ---------------------------------------------------------------------------
# Asset lookup
# ---------------------------------------------------------------------------

class AssetMap(BaseModel):
    """
    Immutable coin-name → asset-id lookup.

    Build it once from the ``meta`` and ``spotMeta`` info responses and pass
    it to whatever converts orders to wire form.  Perp assets are numbered by
    their index in the universe; spot assets are offset by 10000.
    """
    model_config = ConfigDict(frozen=True)

    coin_to_asset:        dict[str, int] = {}
    name_to_coin:         dict[str, str] = {}
    asset_to_sz_decimals: dict[int, int] = {}

    @classmethod
    def from_meta(
        cls,
        meta: dict[str, Any],
        spot_meta: Optional[dict[str, Any]] = None,
        offset: int = 0,
    ) -> "AssetMap":
        coin_to_asset:        dict[str, int] = {}
        name_to_coin:         dict[str, str] = {}
        asset_to_sz_decimals: dict[int, int] = {}

        if spot_meta is not None:
            tokens = spot_meta.get("tokens", [])
            for spot_info in spot_meta.get("universe", []):
                asset = spot_info["index"] + SPOT_ASSET_OFFSET
                coin  = spot_info["name"]
                coin_to_asset[coin] = asset
                name_to_coin[coin]  = coin
                base_idx, quote_idx = spot_info["tokens"][:2]
                base, quote = tokens[base_idx], tokens[quote_idx]
                asset_to_sz_decimals[asset] = base["szDecimals"]
                name_to_coin.setdefault(f"{base['name']}/{quote['name']}", coin)

        for index, asset_info in enumerate(meta.get("universe", [])):
            asset = index + offset
            coin  = asset_info["name"]
            coin_to_asset[coin] = asset
            name_to_coin[coin]  = coin
            asset_to_sz_decimals[asset] = asset_info["szDecimals"]

        return cls(
            coin_to_asset=coin_to_asset,
            name_to_coin=name_to_coin,
            asset_to_sz_decimals=asset_to_sz_decimals,
        )

    def name_to_asset(self, name: str) -> int:
        coin = self.name_to_coin.get(name)
        if coin is None or coin not in self.coin_to_asset:
            raise MalformedInputError("unknown coin", name)
        return self.coin_to_asset[coin]

    def sz_decimals(self, name: str) -> int:
        return self.asset_to_sz_decimals.get(self.name_to_asset(name), 0)

    def is_spot(self, name: str) -> bool:
        return SPOT_ASSET_OFFSET <= self.name_to_asset(name) < BUILDER_PERP_DEX_OFFSET


# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------

class ExchangeResponse(BaseModel):
    """The ``{status, response}`` envelope returned by /exchange."""
    status:   str
    response: Any = None


# ---------------------------------------------------------------------------
# WebSocket push payloads
# ---------------------------------------------------------------------------

class WsLevel(BaseModel):
    px: float
    sz: float
    n:  int   # number of resting orders at this level


class WsBook(BaseModel):
    """l2Book snapshot.  levels[0] are bids (best first), levels[1] asks."""
    coin:   str
    levels: tuple[list[WsLevel], list[WsLevel]]
    time:   int

    @property
    def best_bid(self) -> Optional[WsLevel]:
        return self.levels[0][0] if self.levels[0] else None

    @property
    def best_ask(self) -> Optional[WsLevel]:
        return self.levels[1][0] if self.levels[1] else None


class WsTrade(BaseModel):
    coin:  str
    side:  str     # "B" (buy aggressor) or "A" (sell aggressor)
    px:    float
    sz:    float
    hash:  str
    time:  int
    tid:   int
    users: tuple[str, str] = ("", "")


class AllMids(BaseModel):
    mids: dict[str, str]
