"""Channel parameter negotiation and channel key sets."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

# Public key of the secret key 1 (the secp256k1 generator), used as a placeholder.
DUMB_PUBKEY = bytes.fromhex(
    "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
)


class NegotiationError(ValueError):
    """Channel negotiation failed; the channel is rejected."""


class UnreasonableMinDepth(NegotiationError):
    def __init__(self, depth: int) -> None:
        self.depth = depth
        super().__init__(
            f"minimum depth requested by the remote peer is unreasonably large "
            f"({depth}); rejecting the channel according to BOLT-2"
        )


class LocalDustExceedsRemoteReserve(NegotiationError):
    def __init__(self, reserve: int, dust_limit: int) -> None:
        self.reserve = reserve
        self.dust_limit = dust_limit
        super().__init__(
            f"channel_reserve_satoshis ({reserve}) is less than dust_limit_satoshis "
            f"({dust_limit}) within the open_channel message; rejecting the channel "
            f"according to BOLT-2"
        )


class RemoteDustExceedsLocalReserve(NegotiationError):
    def __init__(self, reserve: int, dust_limit: int) -> None:
        self.reserve = reserve
        self.dust_limit = dust_limit
        super().__init__(
            f"channel_reserve_satoshis from the open_channel message ({reserve}) is "
            f"less than dust_limit_satoshis ({dust_limit}); rejecting the channel "
            f"according to BOLT-2"
        )


@dataclass(frozen=True)
class Params:
    """Negotiated channel parameters."""

    funding_satoshis: int = 0
    push_msat: int = 0
    dust_limit_satoshis: int = 0
    max_htlc_value_in_flight_msat: int = 0
    channel_reserve_satoshis: int = 0
    htlc_minimum_msat: int = 0
    feerate_per_kw: int = 0
    minimum_depth: int = 0
    to_self_delay: int = 0
    max_accepted_htlcs: int = 0
    channel_flags: int = 0

    @classmethod
    def from_open_channel(cls, open_channel: Any) -> Params:
        """Take parameters proposed in an ``open_channel`` message."""
        return cls(
            funding_satoshis=open_channel.funding_satoshis,
            push_msat=open_channel.push_msat,
            dust_limit_satoshis=open_channel.dust_limit_satoshis,
            max_htlc_value_in_flight_msat=open_channel.max_htlc_value_in_flight_msat,
            channel_reserve_satoshis=open_channel.channel_reserve_satoshis,
            htlc_minimum_msat=open_channel.htlc_minimum_msat,
            feerate_per_kw=open_channel.feerate_per_kw,
            minimum_depth=0,
            to_self_delay=0,
            max_accepted_htlcs=open_channel.max_accepted_htlcs,
            channel_flags=open_channel.channel_flags,
        )

    def updated(self, accept_channel: Any, depth_upper_bound: int | None = None) -> Params:
        """Apply an ``accept_channel`` message, raising when it must be rejected."""
        if depth_upper_bound is not None and accept_channel.minimum_depth > depth_upper_bound:
            raise UnreasonableMinDepth(accept_channel.minimum_depth)

        if accept_channel.channel_reserve_satoshis < self.dust_limit_satoshis:
            raise LocalDustExceedsRemoteReserve(
                accept_channel.channel_reserve_satoshis, self.dust_limit_satoshis
            )

        if self.dust_limit_satoshis < accept_channel.channel_reserve_satoshis:
            raise RemoteDustExceedsLocalReserve(
                self.channel_reserve_satoshis, accept_channel.dust_limit_satoshis
            )

        return dataclasses.replace(
            self,
            dust_limit_satoshis=accept_channel.dust_limit_satoshis,
            max_htlc_value_in_flight_msat=accept_channel.max_htlc_value_in_flight_msat,
            channel_reserve_satoshis=accept_channel.channel_reserve_satoshis,
            htlc_minimum_msat=accept_channel.htlc_minimum_msat,
            minimum_depth=accept_channel.minimum_depth,
            to_self_delay=accept_channel.to_self_delay,
            max_accepted_htlcs=accept_channel.max_accepted_htlcs,
        )


@dataclass(frozen=True)
class Keyset:
    """Channel public keys announced by one side."""

    funding_pubkey: bytes
    revocation_basepoint: bytes
    payment_basepoint: bytes
    delayed_payment_basepoint: bytes
    htlc_basepoint: bytes
    first_per_commitment_point: bytes

    def __post_init__(self) -> None:
        for item in dataclasses.fields(self):
            key = bytes(getattr(self, item.name))
            if len(key) != 33:
                raise ValueError(f"{item.name} must be a 33-byte public key")
            object.__setattr__(self, item.name, key)

    @classmethod
    def from_message(cls, msg: Any) -> Keyset:
        """Take keys from an ``open_channel`` or ``accept_channel`` message."""
        return cls(
            funding_pubkey=msg.funding_pubkey,
            revocation_basepoint=msg.revocation_basepoint,
            payment_basepoint=msg.payment_point,
            delayed_payment_basepoint=msg.delayed_payment_basepoint,
            htlc_basepoint=msg.htlc_basepoint,
            first_per_commitment_point=msg.first_per_commitment_point,
        )

    @classmethod
    def dumb_default(cls) -> Keyset:
        """Key set filled with the placeholder public key."""
        return cls(*([DUMB_PUBKEY] * 6))