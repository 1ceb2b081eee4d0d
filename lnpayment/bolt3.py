"""BOLT-3 channel construction: scripts, outputs and commitment transactions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .bitcoin import (
    OutPoint,
    Opcode,
    ScriptBuilder,
    Transaction,
    TxIn,
    TxOut,
    p2wpkh,
    p2wsh,
    sha256,
)
from .channel import DUMB_PUBKEY
from .ids import ExtensionId

_U16_MAX = 0xFFFF
_U64_MAX = 0xFFFF_FFFF_FFFF_FFFF
_SEQUENCE_FINAL = 0xFFFF_FFFF


def _check_range(name: str, value: int, maximum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer")
    if not 0 <= value <= maximum:
        raise ValueError(f"{name} {value} is out of range 0..{maximum}")


def _pubkey(name: str, key: bytes) -> bytes:
    data = bytes(key)
    if len(data) != 33:
        raise ValueError(f"{name} must be a 33-byte compressed public key")
    return data


def compute_obscuring_factor(
    is_originator: bool,
    local_payment_basepoint: bytes,
    remote_payment_basepoint: bytes,
) -> int:
    """Factor hiding the commitment number, taken from the hash of both basepoints.

    The originator's basepoint is hashed first.
    """
    local = _pubkey("local payment basepoint", local_payment_basepoint)
    remote = _pubkey("remote payment basepoint", remote_payment_basepoint)
    data = local + remote if is_originator else remote + local
    return int.from_bytes(sha256(data)[24:], "big")


def _obscured_timelocks(commitment_number: int, obscuring_factor: int) -> tuple[int, int]:
    obscured = (commitment_number & 0xFFFFFF) ^ (obscuring_factor & 0xFFFFFF)
    lock_time = (0x20 << 24) | obscured
    sequence = (0x80 << 24) | obscured
    return lock_time, sequence


def funding_script(pubkey1: bytes, pubkey2: bytes) -> bytes:
    """2-of-2 multisig witness script over lexicographically ordered keys."""
    first, second = sorted(
        (_pubkey("pubkey1", pubkey1), _pubkey("pubkey2", pubkey2))
    )
    return (
        ScriptBuilder()
        .push_int(2)
        .push_key(first)
        .push_key(second)
        .push_int(2)
        .push_opcode(Opcode.OP_CHECKMULTISIG)
        .build()
    )


def to_local_script(
    revocationpubkey: bytes, local_delayedpubkey: bytes, to_self_delay: int
) -> bytes:
    """Witness script of the ``to_local`` output."""
    _check_range("to_self_delay", to_self_delay, _U16_MAX)
    return (
        ScriptBuilder()
        .push_opcode(Opcode.OP_IF)
        .push_key(_pubkey("revocation pubkey", revocationpubkey))
        .push_opcode(Opcode.OP_ELSE)
        .push_int(to_self_delay)
        .push_opcode(Opcode.OP_CSV)
        .push_opcode(Opcode.OP_DROP)
        .push_key(_pubkey("local delayed pubkey", local_delayedpubkey))
        .push_opcode(Opcode.OP_ENDIF)
        .push_opcode(Opcode.OP_CHECKSIG)
        .build()
    )


def to_remote_v2_script(remote_pubkey: bytes) -> bytes:
    """Witness script of the anchor-style ``to_remote`` output."""
    return (
        ScriptBuilder()
        .push_key(_pubkey("remote pubkey", remote_pubkey))
        .push_opcode(Opcode.OP_CHECKSIGVERIFY)
        .push_int(1)
        .push_opcode(Opcode.OP_CSV)
        .build()
    )


def funding_output(amount: int, pubkey1: bytes, pubkey2: bytes) -> TxOut:
    _check_range("amount", amount, _U64_MAX)
    return TxOut(amount, p2wsh(funding_script(pubkey1, pubkey2)))


def to_local_output(
    amount: int,
    revocationpubkey: bytes,
    local_delayedpubkey: bytes,
    to_self_delay: int,
) -> TxOut:
    _check_range("amount", amount, _U64_MAX)
    script = to_local_script(revocationpubkey, local_delayedpubkey, to_self_delay)
    return TxOut(amount, p2wsh(script))


def to_remote_v1_output(amount: int, remote_pubkey: bytes) -> TxOut:
    """``to_remote`` output paying straight to the remote key (P2WPKH)."""
    _check_range("amount", amount, _U64_MAX)
    return TxOut(amount, p2wpkh(_pubkey("remote pubkey", remote_pubkey)))


def to_remote_v2_output(amount: int, remote_pubkey: bytes) -> TxOut:
    _check_range("amount", amount, _U64_MAX)
    return TxOut(amount, p2wsh(to_remote_v2_script(remote_pubkey)))


def commitment_transaction(
    local_amount: int,
    remote_amount: int,
    commitment_number: int,
    obscuring_factor: int,
    funding_outpoint: OutPoint,
    remote_pubkey: bytes,
    revocationpubkey: bytes,
    local_delayedpubkey: bytes,
    to_self_delay: int,
) -> Transaction:
    """Base commitment transaction spending the funding output, BIP-69 ordered."""
    _check_range("commitment number", commitment_number, _U64_MAX)
    _check_range("obscuring factor", obscuring_factor, _U64_MAX)
    lock_time, sequence = _obscured_timelocks(commitment_number, obscuring_factor)
    tx = Transaction(
        version=2,
        lock_time=lock_time,
        inputs=[TxIn(previous_output=funding_outpoint, sequence=sequence)],
        outputs=[
            to_local_output(
                local_amount, revocationpubkey, local_delayedpubkey, to_self_delay
            ),
            to_remote_v1_output(remote_amount, remote_pubkey),
        ],
    )
    tx.lex_order()
    return tx


def closing_transaction(outpoint: OutPoint, outputs: Iterable[TxOut]) -> Transaction:
    """Cooperative closing transaction spending ``outpoint``."""
    return Transaction(
        version=2,
        lock_time=0,
        inputs=[TxIn(previous_output=outpoint, sequence=_SEQUENCE_FINAL)],
        outputs=list(outputs),
    )


@dataclass
class CommitmentTemplate:
    """Commitment transaction parameters produced by the BOLT-3 constructor."""

    version: int
    lock_time: int
    sequence: int
    outputs: list[TxOut] = field(default_factory=list)


@dataclass
class _Keyset:
    revocation_basepoint: bytes = DUMB_PUBKEY
    payment_basepoint: bytes = DUMB_PUBKEY
    delayed_payment_basepoint: bytes = DUMB_PUBKEY


class Bolt3:
    """BOLT-3 commitment constructor holding one channel's balances and keys."""

    def __init__(
        self,
        is_originator: bool,
        local_amount: int,
        remote_amount: int,
        to_self_delay: int,
    ) -> None:
        _check_range("local amount", local_amount, _U64_MAX)
        _check_range("remote amount", remote_amount, _U64_MAX)
        _check_range("to_self_delay", to_self_delay, _U16_MAX)
        self.is_originator = bool(is_originator)
        self.local_amount = local_amount
        self.remote_amount = remote_amount
        self.commitment_number = 0
        self.to_self_delay = to_self_delay
        self.local_keys = _Keyset()
        self.remote_keys = _Keyset()
        self.obscuring_factor = compute_obscuring_factor(
            self.is_originator,
            self.local_keys.payment_basepoint,
            self.local_keys.payment_basepoint,
        )

    def __repr__(self) -> str:
        return (
            f"Bolt3(is_originator={self.is_originator}, "
            f"local_amount={self.local_amount}, remote_amount={self.remote_amount}, "
            f"commitment_number={self.commitment_number}, "
            f"to_self_delay={self.to_self_delay})"
        )

    def identity(self) -> ExtensionId:
        return ExtensionId.BOLT3

    def update_remote_keys(
        self,
        payment_basepoint: bytes,
        revocation_basepoint: bytes,
        delayed_payment_basepoint: bytes,
    ) -> None:
        """Take the remote basepoints from an open or accept channel message."""
        self.remote_keys = _Keyset(
            revocation_basepoint=_pubkey("revocation basepoint", revocation_basepoint),
            payment_basepoint=_pubkey("payment basepoint", payment_basepoint),
            delayed_payment_basepoint=_pubkey(
                "delayed payment basepoint", delayed_payment_basepoint
            ),
        )

    def commitment(self) -> CommitmentTemplate:
        """Parameters of the counterparty's commitment transaction."""
        lock_time, sequence = _obscured_timelocks(
            self.commitment_number, self.obscuring_factor
        )
        return CommitmentTemplate(
            version=2,
            lock_time=lock_time,
            sequence=sequence,
            outputs=[
                to_local_output(
                    self.remote_amount,
                    self.local_keys.revocation_basepoint,
                    self.remote_keys.delayed_payment_basepoint,
                    self.to_self_delay,
                ),
                to_remote_v1_output(
                    self.local_amount, self.local_keys.payment_basepoint
                ),
            ],
        )