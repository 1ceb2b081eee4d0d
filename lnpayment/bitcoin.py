"""Minimal bitcoin primitives: scripts, hashes, outputs and transactions."""

from __future__ import annotations

import enum
import hashlib
from dataclasses import dataclass, field

from Crypto.Hash import RIPEMD160


class Opcode(enum.IntEnum):
    """Script opcodes used by channel scripts."""

    OP_0 = 0x00
    OP_PUSHDATA1 = 0x4C
    OP_PUSHDATA2 = 0x4D
    OP_PUSHDATA4 = 0x4E
    OP_1NEGATE = 0x4F
    OP_1 = 0x51
    OP_2 = 0x52
    OP_3 = 0x53
    OP_4 = 0x54
    OP_5 = 0x55
    OP_6 = 0x56
    OP_7 = 0x57
    OP_8 = 0x58
    OP_9 = 0x59
    OP_10 = 0x5A
    OP_11 = 0x5B
    OP_12 = 0x5C
    OP_13 = 0x5D
    OP_14 = 0x5E
    OP_15 = 0x5F
    OP_16 = 0x60
    OP_IF = 0x63
    OP_NOTIF = 0x64
    OP_ELSE = 0x67
    OP_ENDIF = 0x68
    OP_DROP = 0x75
    OP_DUP = 0x76
    OP_SWAP = 0x7C
    OP_SIZE = 0x82
    OP_EQUAL = 0x87
    OP_EQUALVERIFY = 0x88
    OP_HASH160 = 0xA9
    OP_CHECKSIG = 0xAC
    OP_CHECKSIGVERIFY = 0xAD
    OP_CHECKMULTISIG = 0xAE
    OP_CLTV = 0xB1
    OP_CSV = 0xB2


def _scriptnum(value: int) -> bytes:
    """Minimal little-endian sign-magnitude encoding of a script number."""
    if value == 0:
        return b""
    negative = value < 0
    magnitude = abs(value)
    out = bytearray()
    while magnitude:
        out.append(magnitude & 0xFF)
        magnitude >>= 8
    if out[-1] & 0x80:
        out.append(0x80 if negative else 0x00)
    elif negative:
        out[-1] |= 0x80
    return bytes(out)


class ScriptBuilder:
    """Builds a script by appending opcodes and data pushes."""

    def __init__(self) -> None:
        self._script = bytearray()

    def push_opcode(self, opcode: int) -> ScriptBuilder:
        code = int(opcode)
        if not 0 <= code <= 0xFF:
            raise ValueError(f"opcode {code} out of range")
        self._script.append(code)
        return self

    def push_int(self, value: int) -> ScriptBuilder:
        if value == -1 or 1 <= value <= 16:
            return self.push_opcode(Opcode.OP_1 + value - 1)
        if value == 0:
            return self.push_opcode(Opcode.OP_0)
        return self.push_slice(_scriptnum(value))

    def push_slice(self, data: bytes) -> ScriptBuilder:
        data = bytes(data)
        size = len(data)
        if size < Opcode.OP_PUSHDATA1:
            self._script.append(size)
        elif size < 0x100:
            self._script.append(Opcode.OP_PUSHDATA1)
            self._script.append(size)
        elif size < 0x10000:
            self._script.append(Opcode.OP_PUSHDATA2)
            self._script += size.to_bytes(2, "little")
        elif size < 0x1_0000_0000:
            self._script.append(Opcode.OP_PUSHDATA4)
            self._script += size.to_bytes(4, "little")
        else:
            raise ValueError("data too large to push")
        self._script += data
        return self

    def push_key(self, key: bytes) -> ScriptBuilder:
        """Push a serialized public key (33 or 65 bytes)."""
        key = bytes(key)
        if len(key) not in (33, 65):
            raise ValueError(f"public key must be 33 or 65 bytes, got {len(key)}")
        return self.push_slice(key)

    def build(self) -> bytes:
        return bytes(self._script)


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD-160 of SHA-256."""
    return RIPEMD160.new(sha256(data)).digest()


def p2wsh(script: bytes) -> bytes:
    """Pay-to-witness-script-hash output script for a witness script."""
    return bytes([Opcode.OP_0, 32]) + sha256(script)


def p2wpkh(pubkey: bytes) -> bytes:
    """Pay-to-witness-pubkey-hash output script for a compressed key."""
    pubkey = bytes(pubkey)
    if len(pubkey) != 33:
        raise ValueError("witness pubkey hash requires a compressed public key")
    return bytes([Opcode.OP_0, 20]) + hash160(pubkey)


@dataclass(frozen=True)
class OutPoint:
    """Reference to a transaction output; txid in internal byte order."""

    txid: bytes
    vout: int

    def __post_init__(self) -> None:
        txid = bytes(self.txid)
        if len(txid) != 32:
            raise ValueError("txid must be 32 bytes")
        if not 0 <= self.vout <= 0xFFFF_FFFF:
            raise ValueError("vout out of range")
        object.__setattr__(self, "txid", txid)


@dataclass
class TxIn:
    previous_output: OutPoint
    script_sig: bytes = b""
    sequence: int = 0xFFFF_FFFF
    witness: list[bytes] = field(default_factory=list)


@dataclass(frozen=True)
class TxOut:
    value: int
    script_pubkey: bytes


def _output_key(txout: TxOut) -> tuple[int, bytes]:
    return txout.value, txout.script_pubkey


def _input_key(txin: TxIn) -> tuple[bytes, int]:
    outpoint = txin.previous_output
    return outpoint.txid[::-1], outpoint.vout


def lex_order_outputs(outputs) -> list[TxOut]:
    """Return outputs sorted in BIP-69 order: by amount, then script."""
    return sorted(outputs, key=_output_key)


@dataclass
class Transaction:
    version: int
    lock_time: int
    inputs: list[TxIn] = field(default_factory=list)
    outputs: list[TxOut] = field(default_factory=list)

    def lex_order(self) -> None:
        """Sort inputs and outputs in place in BIP-69 order."""
        self.inputs.sort(key=_input_key)
        self.outputs.sort(key=_output_key)