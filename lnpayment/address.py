"""Announced node addresses, their wire encoding and their uniform form."""

from __future__ import annotations

import enum
import io
from dataclasses import dataclass
from typing import BinaryIO, ClassVar, Iterator

ADDR_LEN = 33
_U16_MAX = 0xFFFF


class AddressDecodeError(ValueError):
    """Address data could not be decoded."""


class AddrFormat(enum.Enum):
    """Kind of network address held in a uniform address."""

    IPV4 = "IpV4"
    IPV6 = "IpV6"
    ONIONV2 = "OnionV2"
    ONIONV3 = "OnionV3"


def _check_port(port: int) -> None:
    if isinstance(port, bool) or not isinstance(port, int):
        raise TypeError("port must be an integer")
    if not 0 <= port <= _U16_MAX:
        raise ValueError(f"port {port} is out of range 0..{_U16_MAX}")


def _fixed_bytes(name: str, value: bytes, size: int) -> bytes:
    data = bytes(value)
    if len(data) != size:
        raise ValueError(f"{name} needs {size} bytes, got {len(data)}")
    return data


@dataclass(frozen=True)
class UniformAddr:
    """Address in uniform form: a format, 33 address bytes and a port."""

    addr_format: AddrFormat
    addr: bytes
    port: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "addr", _fixed_bytes("uniform address", self.addr, ADDR_LEN))
        if self.port is not None:
            _check_port(self.port)


@dataclass(frozen=True)
class IpV4Addr:
    """An IPv4 address and port on which the peer is listening."""

    addr: bytes
    port: int

    TYPE: ClassVar[int] = 1
    SIZE: ClassVar[int] = 4

    def __post_init__(self) -> None:
        object.__setattr__(self, "addr", _fixed_bytes("IPv4 address", self.addr, self.SIZE))
        _check_port(self.port)


@dataclass(frozen=True)
class IpV6Addr:
    """An IPv6 address and port on which the peer is listening."""

    addr: bytes
    port: int

    TYPE: ClassVar[int] = 2
    SIZE: ClassVar[int] = 16

    def __post_init__(self) -> None:
        object.__setattr__(self, "addr", _fixed_bytes("IPv6 address", self.addr, self.SIZE))
        _check_port(self.port)


@dataclass(frozen=True)
class OnionV2Addr:
    """An old-style Tor onion address and port."""

    addr: bytes
    port: int

    TYPE: ClassVar[int] = 3
    SIZE: ClassVar[int] = 10

    def __post_init__(self) -> None:
        object.__setattr__(self, "addr", _fixed_bytes("onion v2 address", self.addr, self.SIZE))
        _check_port(self.port)


@dataclass(frozen=True)
class OnionV3Addr:
    """A new-style Tor onion address: ed25519 key, checksum, version and port.

    Checksum and version are optional because the uniform form drops them.
    """

    ed25519_pubkey: bytes
    checksum: int | None
    version: int | None
    port: int

    TYPE: ClassVar[int] = 4
    SIZE: ClassVar[int] = 32

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "ed25519_pubkey", _fixed_bytes("ed25519 public key", self.ed25519_pubkey, self.SIZE)
        )
        if self.checksum is not None and not 0 <= self.checksum <= _U16_MAX:
            raise ValueError(f"checksum {self.checksum} is out of range")
        if self.version is not None and not 0 <= self.version <= 0xFF:
            raise ValueError(f"version {self.version} is out of range")
        _check_port(self.port)


AnnouncedNodeAddr = IpV4Addr | IpV6Addr | OnionV2Addr | OnionV3Addr

_SIMPLE_TYPES = {cls.TYPE: cls for cls in (IpV4Addr, IpV6Addr, OnionV2Addr)}

_UNIFORM_LAYOUT = {
    IpV4Addr: AddrFormat.IPV4,
    IpV6Addr: AddrFormat.IPV6,
    OnionV2Addr: AddrFormat.ONIONV2,
    OnionV3Addr: AddrFormat.ONIONV3,
}
_FORMAT_TO_CLASS = {fmt: cls for cls, fmt in _UNIFORM_LAYOUT.items()}


def encode_address(addr: AnnouncedNodeAddr) -> bytes:
    """Encode an address in lightning wire format."""
    port = addr.port.to_bytes(2, "big")
    if isinstance(addr, OnionV3Addr):
        if addr.checksum is None or addr.version is None:
            raise ValueError("onion v3 address needs checksum and version to be encoded")
        return (
            bytes([addr.TYPE])
            + addr.ed25519_pubkey
            + addr.checksum.to_bytes(2, "big")
            + bytes([addr.version])
            + port
        )
    if isinstance(addr, (IpV4Addr, IpV6Addr, OnionV2Addr)):
        return bytes([addr.TYPE]) + addr.addr + port
    raise TypeError(f"not a node address: {addr!r}")


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if data is None or len(data) != size:
        raise AddressDecodeError("unexpected end of address data")
    return data


def read_address(stream: BinaryIO) -> AnnouncedNodeAddr:
    """Read one lightning-encoded address from a binary stream."""
    type_byte = _read_exact(stream, 1)[0]
    if type_byte == OnionV3Addr.TYPE:
        pubkey = _read_exact(stream, OnionV3Addr.SIZE)
        checksum = int.from_bytes(_read_exact(stream, 2), "big")
        version = _read_exact(stream, 1)[0]
        port = int.from_bytes(_read_exact(stream, 2), "big")
        return OnionV3Addr(pubkey, checksum, version, port)
    cls = _SIMPLE_TYPES.get(type_byte)
    if cls is None:
        raise AddressDecodeError("Wrong Network Address Format")
    raw = _read_exact(stream, cls.SIZE)
    port = int.from_bytes(_read_exact(stream, 2), "big")
    return cls(raw, port)


def _ensure_consumed(stream: BinaryIO) -> None:
    if stream.read(1):
        raise AddressDecodeError("data were not entirely consumed")


def decode_address(data: bytes) -> AnnouncedNodeAddr:
    """Decode exactly one lightning-encoded address."""
    stream = io.BytesIO(bytes(data))
    addr = read_address(stream)
    _ensure_consumed(stream)
    return addr


def to_uniform(addr: AnnouncedNodeAddr) -> UniformAddr:
    """Convert to the uniform form; onion v3 checksum and version are dropped."""
    fmt = _UNIFORM_LAYOUT.get(type(addr))
    if fmt is None:
        raise TypeError(f"not a node address: {addr!r}")
    raw = addr.ed25519_pubkey if isinstance(addr, OnionV3Addr) else addr.addr
    return UniformAddr(fmt, bytes(ADDR_LEN - len(raw)) + raw, addr.port)


def from_uniform(uniform: UniformAddr) -> AnnouncedNodeAddr:
    """Convert from the uniform form; a port is required."""
    cls = _FORMAT_TO_CLASS.get(uniform.addr_format)
    if cls is None:
        raise AddressDecodeError("invalid address format")
    if uniform.port is None:
        raise AddressDecodeError("insufficient data: port is missing")
    raw = uniform.addr[ADDR_LEN - cls.SIZE:]
    if cls is OnionV3Addr:
        return OnionV3Addr(raw, None, None, uniform.port)
    return cls(raw, uniform.port)


@dataclass(frozen=True)
class AddressList:
    """Ordered list of announced node addresses."""

    addresses: tuple[AnnouncedNodeAddr, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "addresses", tuple(self.addresses))

    def __iter__(self) -> Iterator[AnnouncedNodeAddr]:
        return iter(self.addresses)

    def __len__(self) -> int:
        return len(self.addresses)

    def encode(self) -> bytes:
        """Encode as a big-endian u16 count followed by each address."""
        if len(self.addresses) > _U16_MAX:
            raise ValueError("too many addresses to encode")
        return len(self.addresses).to_bytes(2, "big") + b"".join(
            encode_address(addr) for addr in self.addresses
        )

    @classmethod
    def decode(cls, data: bytes) -> AddressList:
        stream = io.BytesIO(bytes(data))
        count = int.from_bytes(_read_exact(stream, 2), "big")
        addresses = tuple(read_address(stream) for _ in range(count))
        _ensure_consumed(stream)
        return cls(addresses)