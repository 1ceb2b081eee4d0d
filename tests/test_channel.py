import dataclasses
from types import SimpleNamespace

import pytest

from lnpayment.channel import (
    DUMB_PUBKEY,
    Keyset,
    LocalDustExceedsRemoteReserve,
    NegotiationError,
    Params,
    RemoteDustExceedsLocalReserve,
    UnreasonableMinDepth,
)


def _open_channel(**overrides):
    fields = dict(
        funding_satoshis=100_000,
        push_msat=5_000,
        dust_limit_satoshis=546,
        max_htlc_value_in_flight_msat=90_000_000,
        channel_reserve_satoshis=1_000,
        htlc_minimum_msat=1,
        feerate_per_kw=253,
        max_accepted_htlcs=30,
        channel_flags=1,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _accept_channel(**overrides):
    fields = dict(
        dust_limit_satoshis=600,
        max_htlc_value_in_flight_msat=80_000_000,
        channel_reserve_satoshis=546,
        htlc_minimum_msat=10,
        minimum_depth=3,
        to_self_delay=144,
        max_accepted_htlcs=20,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _key(tag):
    return bytes([2]) + bytes([tag]) * 32


def test_from_open_channel_copies_fields_and_zeroes_depth():
    msg = _open_channel()
    params = Params.from_open_channel(msg)
    assert params.funding_satoshis == msg.funding_satoshis
    assert params.push_msat == msg.push_msat
    assert params.dust_limit_satoshis == msg.dust_limit_satoshis
    assert params.feerate_per_kw == msg.feerate_per_kw
    assert params.channel_flags == msg.channel_flags
    assert params.minimum_depth == 0
    assert params.to_self_delay == 0


def test_updated_takes_accept_fields_and_keeps_others():
    params = Params.from_open_channel(_open_channel())
    accept = _accept_channel()
    result = params.updated(accept, None)
    assert result.dust_limit_satoshis == accept.dust_limit_satoshis
    assert result.channel_reserve_satoshis == accept.channel_reserve_satoshis
    assert result.htlc_minimum_msat == accept.htlc_minimum_msat
    assert result.minimum_depth == accept.minimum_depth
    assert result.to_self_delay == accept.to_self_delay
    assert result.max_accepted_htlcs == accept.max_accepted_htlcs
    assert result.funding_satoshis == params.funding_satoshis
    assert result.feerate_per_kw == params.feerate_per_kw
    assert params.minimum_depth == 0


def test_unreasonable_min_depth():
    params = Params.from_open_channel(_open_channel())
    with pytest.raises(UnreasonableMinDepth) as info:
        params.updated(_accept_channel(minimum_depth=10), 5)
    assert info.value.depth == 10


def test_depth_within_bound_accepted():
    params = Params.from_open_channel(_open_channel())
    assert params.updated(_accept_channel(minimum_depth=5), 5).minimum_depth == 5


def test_remote_reserve_below_local_dust():
    params = Params.from_open_channel(_open_channel())
    with pytest.raises(LocalDustExceedsRemoteReserve) as info:
        params.updated(_accept_channel(channel_reserve_satoshis=100), None)
    assert (info.value.reserve, info.value.dust_limit) == (100, 546)


def test_local_dust_below_remote_reserve():
    params = Params.from_open_channel(_open_channel())
    with pytest.raises(RemoteDustExceedsLocalReserve) as info:
        params.updated(_accept_channel(channel_reserve_satoshis=2_000), None)
    assert info.value.reserve == params.channel_reserve_satoshis
    assert info.value.dust_limit == 600


def test_negotiation_errors_share_base():
    params = Params.from_open_channel(_open_channel())
    with pytest.raises(NegotiationError):
        params.updated(_accept_channel(minimum_depth=7), 1)


def test_params_default_is_zero():
    assert all(value == 0 for value in dataclasses.astuple(Params()))


def test_keyset_from_message_maps_payment_point():
    msg = SimpleNamespace(
        funding_pubkey=_key(1),
        revocation_basepoint=_key(2),
        payment_point=_key(3),
        delayed_payment_basepoint=_key(4),
        htlc_basepoint=_key(5),
        first_per_commitment_point=_key(6),
    )
    keyset = Keyset.from_message(msg)
    assert keyset.funding_pubkey == _key(1)
    assert keyset.payment_basepoint == _key(3)
    assert keyset.first_per_commitment_point == _key(6)


def test_keyset_dumb_default():
    keyset = Keyset.dumb_default()
    assert set(dataclasses.astuple(keyset)) == {DUMB_PUBKEY}
    assert DUMB_PUBKEY.hex() == (
        "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
    )


def test_keyset_rejects_bad_key_length():
    with pytest.raises(ValueError):
        Keyset(bytes(32), *([DUMB_PUBKEY] * 5))