"""HTLC channel extension: HTLC bookkeeping, scripts, outputs and transactions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from .bitcoin import (
    OutPoint,
    Opcode,
    ScriptBuilder,
    Transaction,
    TxIn,
    TxOut,
    hash160,
    p2wsh,
    sha256,
)
from .ids import ChannelId, ExtensionId, TxType

_U16_MAX = 0xFFFF
_U32_MAX = 0xFFFF_FFFF
_U64_MAX = 0xFFFF_FFFF_FFFF_FFFF
_CLTV_EXPIRY_LIMIT = 500_000_000
_AMOUNT_LIMIT = 1 << 32
MAX_ACCEPTED_HTLCS = 483


class HtlcError(ValueError):
    """An HTLC update from the peer violates the channel rules."""


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


def _hash32(name: str, value: bytes) -> bytes:
    data = bytes(value)
    if len(data) != 32:
        raise ValueError(f"{name} must be 32 bytes, got {len(data)}")
    return data


@dataclass(frozen=True, order=True)
class HtlcKnown:
    """An HTLC whose payment preimage is known."""

    amount: int
    preimage: bytes
    id: int
    cltv_expiry: int
    asset_id: bytes | None = None

    def __post_init__(self) -> None:
        _check_range("amount", self.amount, _U64_MAX)
        object.__setattr__(self, "preimage", _hash32("preimage", self.preimage))
        _check_range("htlc id", self.id, _U64_MAX)
        _check_range("cltv expiry", self.cltv_expiry, _U32_MAX)


@dataclass(frozen=True, order=True)
class HtlcSecret:
    """An HTLC known only by its payment hash."""

    amount: int
    hashlock: bytes
    id: int
    cltv_expiry: int
    asset_id: bytes | None = None

    def __post_init__(self) -> None:
        _check_range("amount", self.amount, _U64_MAX)
        object.__setattr__(self, "hashlock", _hash32("hashlock", self.hashlock))
        _check_range("htlc id", self.id, _U64_MAX)
        _check_range("cltv expiry", self.cltv_expiry, _U32_MAX)


def offered_htlc_script(
    revocationpubkey: bytes,
    local_htlcpubkey: bytes,
    remote_htlcpubkey: bytes,
    payment_hash: bytes,
) -> bytes:
    """Witness script of an offered HTLC output."""
    revocation = _pubkey("revocation pubkey", revocationpubkey)
    return (
        ScriptBuilder()
        .push_opcode(Opcode.OP_DUP)
        .push_opcode(Opcode.OP_HASH160)
        .push_slice(hash160(revocation))
        .push_opcode(Opcode.OP_EQUAL)
        .push_opcode(Opcode.OP_IF)
        .push_opcode(Opcode.OP_CHECKSIG)
        .push_opcode(Opcode.OP_ELSE)
        .push_key(_pubkey("remote htlc pubkey", remote_htlcpubkey))
        .push_opcode(Opcode.OP_SWAP)
        .push_opcode(Opcode.OP_SIZE)
        .push_int(32)
        .push_opcode(Opcode.OP_EQUAL)
        .push_opcode(Opcode.OP_NOTIF)
        .push_opcode(Opcode.OP_DROP)
        .push_int(2)
        .push_opcode(Opcode.OP_SWAP)
        .push_key(_pubkey("local htlc pubkey", local_htlcpubkey))
        .push_int(2)
        .push_opcode(Opcode.OP_CHECKMULTISIG)
        .push_opcode(Opcode.OP_ELSE)
        .push_opcode(Opcode.OP_HASH160)
        .push_slice(_hash32("payment hash", payment_hash))
        .push_opcode(Opcode.OP_EQUALVERIFY)
        .push_opcode(Opcode.OP_CHECKSIG)
        .push_opcode(Opcode.OP_ENDIF)
        .push_opcode(Opcode.OP_ENDIF)
        .build()
    )


def received_htlc_script(
    revocationpubkey: bytes,
    local_htlcpubkey: bytes,
    remote_htlcpubkey: bytes,
    cltv_expiry: int,
    payment_hash: bytes,
) -> bytes:
    """Witness script of a received HTLC output."""
    _check_range("cltv expiry", cltv_expiry, _U32_MAX)
    revocation = _pubkey("revocation pubkey", revocationpubkey)
    return (
        ScriptBuilder()
        .push_opcode(Opcode.OP_DUP)
        .push_opcode(Opcode.OP_HASH160)
        .push_slice(hash160(revocation))
        .push_opcode(Opcode.OP_EQUAL)
        .push_opcode(Opcode.OP_IF)
        .push_opcode(Opcode.OP_CHECKSIG)
        .push_opcode(Opcode.OP_ELSE)
        .push_key(_pubkey("remote htlc pubkey", remote_htlcpubkey))
        .push_opcode(Opcode.OP_SWAP)
        .push_opcode(Opcode.OP_SIZE)
        .push_int(32)
        .push_opcode(Opcode.OP_EQUAL)
        .push_opcode(Opcode.OP_IF)
        .push_opcode(Opcode.OP_HASH160)
        .push_slice(_hash32("payment hash", payment_hash))
        .push_opcode(Opcode.OP_EQUALVERIFY)
        .push_int(2)
        .push_opcode(Opcode.OP_SWAP)
        .push_key(_pubkey("local htlc pubkey", local_htlcpubkey))
        .push_int(2)
        .push_opcode(Opcode.OP_CHECKMULTISIG)
        .push_opcode(Opcode.OP_ELSE)
        .push_opcode(Opcode.OP_DROP)
        .push_int(cltv_expiry)
        .push_opcode(Opcode.OP_CLTV)
        .push_opcode(Opcode.OP_DROP)
        .push_opcode(Opcode.OP_CHECKSIG)
        .push_opcode(Opcode.OP_ENDIF)
        .push_opcode(Opcode.OP_ENDIF)
        .build()
    )


def htlc_output_script(
    revocationpubkey: bytes, local_delayedpubkey: bytes, to_self_delay: int
) -> bytes:
    """Witness script of the output of an HTLC-success or HTLC-timeout transaction."""
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


def offered_htlc_output(
    amount: int,
    revocationpubkey: bytes,
    local_htlcpubkey: bytes,
    remote_htlcpubkey: bytes,
    payment_hash: bytes,
) -> TxOut:
    _check_range("amount", amount, _U64_MAX)
    script = offered_htlc_script(
        revocationpubkey, local_htlcpubkey, remote_htlcpubkey, payment_hash
    )
    return TxOut(amount, p2wsh(script))


def received_htlc_output(
    amount: int,
    revocationpubkey: bytes,
    local_htlcpubkey: bytes,
    remote_htlcpubkey: bytes,
    cltv_expiry: int,
    payment_hash: bytes,
) -> TxOut:
    _check_range("amount", amount, _U64_MAX)
    script = received_htlc_script(
        revocationpubkey, local_htlcpubkey, remote_htlcpubkey, cltv_expiry, payment_hash
    )
    return TxOut(amount, p2wsh(script))


def htlc_output(
    amount: int,
    revocationpubkey: bytes,
    local_delayedpubkey: bytes,
    to_self_delay: int,
) -> TxOut:
    _check_range("amount", amount, _U64_MAX)
    script = htlc_output_script(revocationpubkey, local_delayedpubkey, to_self_delay)
    return TxOut(amount, p2wsh(script))


def htlc_transaction(
    amount: int,
    outpoint: OutPoint,
    cltv_expiry: int,
    revocationpubkey: bytes,
    local_delayedpubkey: bytes,
    to_self_delay: int,
) -> Transaction:
    """HTLC second-stage transaction; use a ``cltv_expiry`` of zero for HTLC-success."""
    _check_range("cltv expiry", cltv_expiry, _U32_MAX)
    return Transaction(
        version=2,
        lock_time=cltv_expiry,
        inputs=[TxIn(previous_output=outpoint, sequence=0)],
        outputs=[
            htlc_output(amount, revocationpubkey, local_delayedpubkey, to_self_delay)
        ],
    )


@dataclass
class Htlc:
    """HTLC state of one channel and the outputs and transactions it adds."""

    channel_id: ChannelId
    commitment_outpoint: OutPoint
    revocation_pubkey: bytes
    local_htlc_pubkey: bytes
    remote_htlc_pubkey: bytes
    local_delayed_pubkey: bytes
    to_self_delay: int = 0
    htlc_minimum_msat: int = 0
    max_htlc_value_in_flight_msat: int = _U64_MAX
    total_htlc_value_in_flight_msat: int = 0
    max_accepted_htlcs: int = MAX_ACCEPTED_HTLCS
    total_accepted_htlcs: int = 0
    last_received_htlc_id: int = 0
    last_offered_htlc_id: int = 0
    offered_htlcs: list[HtlcSecret] = field(default_factory=list)
    received_htlcs: list[HtlcSecret] = field(default_factory=list)
    resolved_htlcs: list[HtlcKnown] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.revocation_pubkey = _pubkey("revocation pubkey", self.revocation_pubkey)
        self.local_htlc_pubkey = _pubkey("local htlc pubkey", self.local_htlc_pubkey)
        self.remote_htlc_pubkey = _pubkey("remote htlc pubkey", self.remote_htlc_pubkey)
        self.local_delayed_pubkey = _pubkey(
            "local delayed pubkey", self.local_delayed_pubkey
        )
        _check_range("to_self_delay", self.to_self_delay, _U16_MAX)
        _check_range("max accepted htlcs", self.max_accepted_htlcs, _U16_MAX)
        _check_range("total accepted htlcs", self.total_accepted_htlcs, _U16_MAX)

    def identity(self) -> ExtensionId:
        return ExtensionId.HTLC

    def _check_channel(self, channel_id: ChannelId) -> None:
        if channel_id != self.channel_id:
            raise HtlcError("Missmatched channel_id, bad remote node")

    def _find_offered(self, htlc_id: int) -> int:
        for index, htlc in enumerate(self.offered_htlcs):
            if htlc.id == htlc_id:
                return index
        raise HtlcError("HTLC id didn't match")

    def receive_add(
        self,
        channel_id: ChannelId,
        htlc_id: int,
        amount_msat: int,
        payment_hash: bytes,
        cltv_expiry: int,
    ) -> HtlcSecret:
        """Accept an ``update_add_htlc`` from the peer, raising when it is invalid."""
        self._check_channel(channel_id)
        if amount_msat == 0 or amount_msat < self.htlc_minimum_msat:
            raise HtlcError("amount_msat has to be greaterthan 0")
        if self.total_accepted_htlcs == self.max_accepted_htlcs:
            raise HtlcError("max no. of HTLC limit exceeded")
        if amount_msat + self.total_htlc_value_in_flight_msat > self.max_htlc_value_in_flight_msat:
            raise HtlcError("max HTLC inflight amount limit exceeded")
        if cltv_expiry > _CLTV_EXPIRY_LIMIT:
            raise HtlcError("cltv_expiry limit exceeded")
        if amount_msat >= _AMOUNT_LIMIT:
            raise HtlcError("Leading zeros not satisfied for Bitcoin network")
        if htlc_id <= self.last_received_htlc_id:
            raise HtlcError("HTLC id violation occured")
        htlc = HtlcSecret(
            amount=amount_msat,
            hashlock=payment_hash,
            id=htlc_id,
            cltv_expiry=cltv_expiry,
        )
        self.received_htlcs.append(htlc)
        self.last_received_htlc_id += 1
        return htlc

    def fulfill(
        self, channel_id: ChannelId, htlc_id: int, payment_preimage: bytes
    ) -> HtlcKnown | None:
        """Resolve an offered HTLC with its preimage.

        Returns the resolved HTLC, or None when the preimage does not match.
        """
        self._check_channel(channel_id)
        index = self._find_offered(htlc_id)
        offered = self.offered_htlcs[index]
        preimage = _hash32("payment preimage", payment_preimage)
        if offered.hashlock != sha256(preimage):
            return None
        del self.offered_htlcs[index]
        resolved = HtlcKnown(
            amount=offered.amount,
            preimage=preimage,
            id=htlc_id,
            cltv_expiry=offered.cltv_expiry,
            asset_id=offered.asset_id,
        )
        self.resolved_htlcs.append(resolved)
        return resolved

    def fail(self, channel_id: ChannelId, htlc_id: int) -> HtlcSecret | None:
        """Drop a failed offered HTLC; messages for another channel are ignored."""
        if channel_id != self.channel_id:
            return None
        index = self._find_offered(htlc_id)
        return self.offered_htlcs.pop(index)

    def htlc_outputs(self) -> list[TxOut]:
        """Commitment outputs: offered HTLCs first, then received ones."""
        offered = [
            offered_htlc_output(
                htlc.amount,
                self.revocation_pubkey,
                self.local_htlc_pubkey,
                self.remote_htlc_pubkey,
                htlc.hashlock,
            )
            for htlc in self.offered_htlcs
        ]
        received = [
            received_htlc_output(
                htlc.amount,
                self.revocation_pubkey,
                self.local_htlc_pubkey,
                self.remote_htlc_pubkey,
                htlc.cltv_expiry,
                htlc.hashlock,
            )
            for htlc in self.received_htlcs
        ]
        return offered + received

    def _second_stage(self, htlc: HtlcSecret) -> Transaction:
        return htlc_transaction(
            htlc.amount,
            self.commitment_outpoint,
            htlc.cltv_expiry,
            self.revocation_pubkey,
            self.local_delayed_pubkey,
            self.to_self_delay,
        )

    def htlc_transactions(self) -> Iterator[tuple[TxType, int, Transaction]]:
        """Yield (role, index, transaction) for every pending HTLC."""
        for index, htlc in enumerate(self.offered_htlcs):
            yield TxType.HTLC_TIMEOUT, index, self._second_stage(htlc)
        for index, htlc in enumerate(self.received_htlcs):
            yield TxType.HTLC_SUCCESS, index, self._second_stage(htlc)