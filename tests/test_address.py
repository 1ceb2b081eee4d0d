import io

import pytest

from lnpayment.address import (
    ADDR_LEN,
    AddrFormat,
    AddressDecodeError,
    AddressList,
    IpV4Addr,
    IpV6Addr,
    OnionV2Addr,
    OnionV3Addr,
    UniformAddr,
    decode_address,
    encode_address,
    from_uniform,
    read_address,
    to_uniform,
)

IPV4 = IpV4Addr(bytes([255, 254, 253, 252]), 9735)
IPV6 = IpV6Addr(bytes(range(255, 239, -1)), 9735)
ONION_V2 = OnionV2Addr(bytes(range(255, 245, -1)), 9735)
ONION_V3 = OnionV3Addr(bytes(range(255, 223, -1)), 32, 16, 9735)

IPV4_TARGET = bytes.fromhex("01fffefdfc2607")
IPV6_TARGET = bytes.fromhex("02fffefdfcfbfaf9f8f7f6f5f4f3f2f1f02607")
ONIONV2_TARGET = bytes.fromhex("03fffefdfcfbfaf9f8f7f62607")
ONIONV3_TARGET = bytes.fromhex(
    "04fffefdfcfbfaf9f8f7f6f5f4f3f2f1f0efeeedecebeae9e8e7e6e5e4e3e2e1e00020102607"
)
LIST_TARGET = bytes.fromhex(
    "000401fffefdfc260702fffefdfcfbfaf9f8f7f6f5f4f3f2f1f0260703fffefdfcfbfaf9f8f7f6"
    "260704fffefdfcfbfaf9f8f7f6f5f4f3f2f1f0efeeedecebeae9e8e7e6e5e4e3e2e1e00020102607"
)

CASES = [
    (IPV4, IPV4_TARGET),
    (IPV6, IPV6_TARGET),
    (ONION_V2, ONIONV2_TARGET),
    (ONION_V3, ONIONV3_TARGET),
]


@pytest.mark.parametrize("addr, target", CASES)
def test_encode_matches_vector(addr, target):
    assert encode_address(addr) == target


@pytest.mark.parametrize("addr, target", CASES)
def test_decode_matches_vector(addr, target):
    assert decode_address(target) == addr


@pytest.mark.parametrize("addr", [IPV4, IPV6, ONION_V2])
def test_uniform_round_trip(addr):
    assert from_uniform(to_uniform(addr)) == addr


def test_uniform_onion_v3_drops_checksum_and_version():
    expected = OnionV3Addr(bytes(range(255, 223, -1)), None, None, 9735)
    assert from_uniform(to_uniform(ONION_V3)) == expected


def test_uniform_layout_pads_left():
    uniform = to_uniform(IPV4)
    assert uniform.addr_format is AddrFormat.IPV4
    assert uniform.addr == bytes(29) + bytes([255, 254, 253, 252])
    assert len(uniform.addr) == ADDR_LEN
    assert uniform.port == 9735


def test_from_uniform_requires_port():
    uniform = UniformAddr(AddrFormat.IPV6, bytes(ADDR_LEN), None)
    with pytest.raises(AddressDecodeError):
        from_uniform(uniform)


def test_address_list_encoding():
    address_list = AddressList([IPV4, IPV6, ONION_V2, ONION_V3])
    assert address_list.encode() == LIST_TARGET


def test_address_list_decoding():
    decoded = AddressList.decode(LIST_TARGET)
    assert list(decoded) == [IPV4, IPV6, ONION_V2, ONION_V3]
    assert len(decoded) == 4


def test_empty_address_list():
    assert AddressList().encode() == b"\x00\x00"
    assert AddressList.decode(b"\x00\x00") == AddressList()


def test_unknown_type_byte_rejected():
    with pytest.raises(AddressDecodeError):
        decode_address(bytes.fromhex("05fffefdfc2607"))


def test_truncated_data_rejected():
    with pytest.raises(AddressDecodeError):
        decode_address(IPV6_TARGET[:-1])


def test_trailing_data_rejected():
    with pytest.raises(AddressDecodeError):
        decode_address(IPV4_TARGET + b"\x00")


def test_read_address_leaves_rest_of_stream():
    stream = io.BytesIO(IPV4_TARGET + ONIONV2_TARGET)
    assert read_address(stream) == IPV4
    assert read_address(stream) == ONION_V2
    assert stream.read() == b""


def test_onion_v3_without_checksum_cannot_be_encoded():
    addr = OnionV3Addr(bytes(32), None, None, 9735)
    with pytest.raises(ValueError):
        encode_address(addr)


def test_wrong_address_length_rejected():
    with pytest.raises(ValueError):
        IpV4Addr(bytes(5), 80)


def test_address_list_truncated_rejected():
    with pytest.raises(AddressDecodeError):
        AddressList.decode(LIST_TARGET[:-3])