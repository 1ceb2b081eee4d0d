"""Channel identifiers, lifecycle stages and small fixed-size wire types."""

from __future__ import annotations

import enum
import re
import secrets
from dataclasses import dataclass
from functools import total_ordering
from typing import ClassVar

_U16_MAX = 0xFFFF
_U32_MAX = 0xFFFF_FFFF
_HEX32 = re.compile(r"[0-9a-fA-F]{64}")
_DECIMAL = re.compile(r"\+?[0-9]+")


def _check_range(name: str, value: int, maximum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer")
    if not 0 <= value <= maximum:
        raise ValueError(f"{name} {value} is out of range 0..{maximum}")


def _hex32(text: str) -> bytes:
    if not _HEX32.fullmatch(text):
        raise ValueError(f"invalid 32-byte hex string: {text!r}")
    return bytes.fromhex(text)


class ExtensionId(enum.IntEnum):
    """Identifies a channel extension; the value is its wire code."""

    CHANNEL = 0
    BOLT3 = 1
    ELTOO = 2
    TAPROOT = 3
    HTLC = 4
    PTLC = 5
    SHUTDOWN_SCRIPT = 6
    ANCHOR_OUT = 7
    DLC = 8
    LIGHTSPEED = 9
    BIP96 = 10
    RGB = 11

    def __str__(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))

    def to_u16(self) -> int:
        return int(self.value)

    @classmethod
    def from_u16(cls, value: int) -> ExtensionId:
        _check_range("extension id", value, _U16_MAX)
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"unknown extension id {value}") from None


@dataclass(frozen=True, order=True)
class TxType:
    """Role of a transaction in the channel transaction graph."""

    code: int

    HTLC_SUCCESS: ClassVar[TxType]
    HTLC_TIMEOUT: ClassVar[TxType]

    def __post_init__(self) -> None:
        _check_range("transaction type", self.code, _U16_MAX)

    def to_u16(self) -> int:
        return self.code

    @classmethod
    def from_u16(cls, value: int) -> TxType:
        return cls(value)

    def __str__(self) -> str:
        if self.code == 0:
            return "HtlcSuccess"
        if self.code == 1:
            return "HtlcTimeout"
        return f"Unknown({self.code})"


TxType.HTLC_SUCCESS = TxType(0)
TxType.HTLC_TIMEOUT = TxType(1)


_STAGES = (
    "Initial",
    "Proposed",
    "Accepted",
    "Funding",
    "Signed",
    "Funded",
    "Locked",
    "Active",
    "Reestablishing",
    "Shutdown",
    "Closing",
    "Closed",
    "Aborted",
)


@total_ordering
@dataclass(frozen=True)
class Lifecycle:
    """Stage of a channel's life; the closing stage carries its round."""

    stage: str = "Initial"
    round: int | None = None

    INITIAL: ClassVar[Lifecycle]
    PROPOSED: ClassVar[Lifecycle]
    ACCEPTED: ClassVar[Lifecycle]
    FUNDING: ClassVar[Lifecycle]
    SIGNED: ClassVar[Lifecycle]
    FUNDED: ClassVar[Lifecycle]
    LOCKED: ClassVar[Lifecycle]
    ACTIVE: ClassVar[Lifecycle]
    REESTABLISHING: ClassVar[Lifecycle]
    SHUTDOWN: ClassVar[Lifecycle]
    CLOSED: ClassVar[Lifecycle]
    ABORTED: ClassVar[Lifecycle]

    def __post_init__(self) -> None:
        if self.stage not in _STAGES:
            raise ValueError(f"unknown lifecycle stage {self.stage!r}")
        if self.stage == "Closing":
            if isinstance(self.round, bool) or not isinstance(self.round, int):
                raise ValueError("closing stage requires an integer round")
            if self.round < 0:
                raise ValueError("closing round must not be negative")
        elif self.round is not None:
            raise ValueError(f"stage {self.stage} carries no round")

    def _key(self) -> tuple[int, int]:
        return _STAGES.index(self.stage), self.round or 0

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Lifecycle):
            return NotImplemented
        return self._key() < other._key()

    def __str__(self) -> str:
        if self.stage == "Closing":
            return f"Closing {{ round: {self.round} }}"
        return self.stage


Lifecycle.INITIAL = Lifecycle("Initial")
Lifecycle.PROPOSED = Lifecycle("Proposed")
Lifecycle.ACCEPTED = Lifecycle("Accepted")
Lifecycle.FUNDING = Lifecycle("Funding")
Lifecycle.SIGNED = Lifecycle("Signed")
Lifecycle.FUNDED = Lifecycle("Funded")
Lifecycle.LOCKED = Lifecycle("Locked")
Lifecycle.ACTIVE = Lifecycle("Active")
Lifecycle.REESTABLISHING = Lifecycle("Reestablishing")
Lifecycle.SHUTDOWN = Lifecycle("Shutdown")
Lifecycle.CLOSED = Lifecycle("Closed")
Lifecycle.ABORTED = Lifecycle("Aborted")


@dataclass(frozen=True, order=True)
class _Slice32:
    data: bytes

    def __post_init__(self) -> None:
        data = bytes(self.data)
        if len(data) != 32:
            raise ValueError(f"expected 32 bytes, got {len(data)}")
        object.__setattr__(self, "data", data)

    def __bytes__(self) -> bytes:
        return self.data


@dataclass(frozen=True, order=True)
class ChannelId(_Slice32):
    """Lightning network channel id."""

    data: bytes = bytes(32)

    @classmethod
    def with_outpoint(cls, txid: bytes, vout: int) -> ChannelId:
        """Derive the channel id from a funding outpoint."""
        slice_ = bytearray(txid)
        if len(slice_) != 32:
            raise ValueError("txid must be 32 bytes")
        _check_range("vout", vout, _U32_MAX)
        vout_bytes = vout.to_bytes(4, "big")
        slice_[30] ^= vout_bytes[0]
        slice_[31] ^= vout_bytes[1]
        return cls(bytes(slice_))

    def is_wildcard(self) -> bool:
        """True for the all-zero id that applies to every open channel."""
        return self.data == bytes(32)

    @classmethod
    def from_hex(cls, text: str) -> ChannelId:
        """Parse 64 hexadecimal digits."""
        return cls(_hex32(text))

    def __str__(self) -> str:
        return self.data.hex()


@dataclass(frozen=True, order=True)
class TempChannelId(_Slice32):
    """Lightning network temporary channel id."""

    @classmethod
    def random(cls) -> TempChannelId:
        return cls(secrets.token_bytes(32))

    @classmethod
    def from_hex(cls, text: str) -> TempChannelId:
        """Parse 64 hexadecimal digits."""
        return cls(_hex32(text))

    def to_channel_id(self) -> ChannelId:
        return ChannelId(self.data)

    def __str__(self) -> str:
        return self.data.hex()


@dataclass(frozen=True, order=True)
class Alias(_Slice32):
    """Node alias as a 32-byte value."""

    @classmethod
    def from_hex(cls, text: str) -> Alias:
        """Parse 64 hexadecimal digits."""
        return cls(_hex32(text))

    def __str__(self) -> str:
        return self.data.hex()


@dataclass(frozen=True)
class NodeColor:
    """RGB colour of a node."""

    rgb: bytes

    def __post_init__(self) -> None:
        rgb = bytes(self.rgb)
        if len(rgb) != 3:
            raise ValueError(f"node colour needs 3 bytes, got {len(rgb)}")
        object.__setattr__(self, "rgb", rgb)

    def encode(self) -> bytes:
        return self.rgb

    @classmethod
    def decode(cls, data: bytes) -> NodeColor:
        return cls(data)


class ShortChannelIdParseError(ValueError):
    """A short channel id string could not be parsed."""

    WRONG_BLOCK_HEIGHT = "WrongBlockHeight"
    WRONG_TX_INDEX = "WrongTxIndex"
    WRONG_OUTPUT_INDEX = "WrongOutputIndex"
    EXCESSIVE_COMPONENTS = "ExcessiveComponents"

    _MESSAGES: ClassVar[dict[str, str]] = {
        WRONG_BLOCK_HEIGHT: "wrong block height data",
        WRONG_TX_INDEX: "wrong transaction index number",
        WRONG_OUTPUT_INDEX: "wrong output index number",
        EXCESSIVE_COMPONENTS: (
            "too many short channel id components; expected three "
            "(block height, tx index and output index)"
        ),
    }

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(self._MESSAGES[kind])


def _parse_uint(text: str, maximum: int, kind: str) -> int:
    if not _DECIMAL.fullmatch(text):
        raise ShortChannelIdParseError(kind)
    value = int(text)
    if value > maximum:
        raise ShortChannelIdParseError(kind)
    return value


@dataclass(frozen=True, order=True)
class ShortChannelId:
    """Short channel id: block height, transaction index and output index."""

    block_height: int = 0
    tx_index: int = 0
    output_index: int = 0

    _LIMIT: ClassVar[int] = 2 << 23

    def __post_init__(self) -> None:
        _check_range("block height", self.block_height, _U32_MAX)
        _check_range("tx index", self.tx_index, _U32_MAX)
        _check_range("output index", self.output_index, _U16_MAX)

    @classmethod
    def create(
        cls, block_height: int, tx_index: int, output_index: int
    ) -> ShortChannelId | None:
        """Build an id, or return None when height or index is too large."""
        if block_height > cls._LIMIT or tx_index > cls._LIMIT:
            return None
        return cls(block_height, tx_index, output_index)

    @classmethod
    def parse(cls, text: str) -> ShortChannelId:
        parts = text.split("x")
        if len(parts) != 3:
            raise ShortChannelIdParseError(
                ShortChannelIdParseError.EXCESSIVE_COMPONENTS
            )
        height, index, output = parts
        return cls(
            _parse_uint(height, _U32_MAX, ShortChannelIdParseError.WRONG_BLOCK_HEIGHT),
            _parse_uint(index, _U32_MAX, ShortChannelIdParseError.WRONG_TX_INDEX),
            _parse_uint(output, _U16_MAX, ShortChannelIdParseError.WRONG_OUTPUT_INDEX),
        )

    def encode(self) -> bytes:
        """Encode as 3 + 3 + 2 big-endian bytes."""
        return (
            (self.block_height & 0xFFFFFF).to_bytes(3, "big")
            + (self.tx_index & 0xFFFFFF).to_bytes(3, "big")
            + self.output_index.to_bytes(2, "big")
        )

    @classmethod
    def decode(cls, data: bytes) -> ShortChannelId:
        if len(data) != 8:
            raise ValueError(f"short channel id needs 8 bytes, got {len(data)}")
        return cls(
            int.from_bytes(data[0:3], "big"),
            int.from_bytes(data[3:6], "big"),
            int.from_bytes(data[6:8], "big"),
        )

    def __str__(self) -> str:
        return f"{self.block_height}x{self.tx_index}x{self.output_index}"