# lnpayment

Building blocks for Lightning Network payment channels.

## Modules

- `lnpayment.ids`: `ChannelId` (with `with_outpoint`, `is_wildcard`,
  `from_hex`), `TempChannelId` (with `random`, `from_hex`, `to_channel_id`),
  `Alias`, `NodeColor`, `ShortChannelId` (with `create`, `parse`, `encode`,
  `decode`; parse failures raise `ShortChannelIdParseError`), and the
  `ExtensionId`, `TxType` and `Lifecycle` types.
- `lnpayment.address`: announced node addresses `IpV4Addr`, `IpV6Addr`,
  `OnionV2Addr` and `OnionV3Addr`; Lightning wire encoding with
  `encode_address`, `decode_address` and `read_address`; `AddressList` with
  `encode` and `decode`; conversion to and from the 33-byte `UniformAddr` form
  with `to_uniform` and `from_uniform`. Bad data raises `AddressDecodeError`.
- `lnpayment.channel`: `Params` and `Keyset`. `Params.from_open_channel` and
  `Keyset.from_message` read any object carrying the usual `open_channel` /
  `accept_channel` field names. `Params.updated` raises a `NegotiationError`
  subclass (`UnreasonableMinDepth`, `LocalDustExceedsRemoteReserve`,
  `RemoteDustExceedsLocalReserve`) when an `accept_channel` must be rejected.
- `lnpayment.bolt3`: funding, `to_local` and `to_remote` scripts and outputs,
  `commitment_transaction`, `closing_transaction`,
  `compute_obscuring_factor`, and the `Bolt3` constructor whose `commitment()`
  returns a `CommitmentTemplate` (version, lock time, sequence, outputs).
- `lnpayment.htlc`: offered and received HTLC scripts and outputs,
  `htlc_transaction`, and the `Htlc` extension, which validates peer updates
  (`receive_add`, `fulfill`, `fail`; violations raise `HtlcError`), tracks
  offered, received and resolved HTLCs, and produces their commitment outputs
  (`htlc_outputs`) and second-stage transactions (`htlc_transactions`).
- `lnpayment.bitcoin`: `ScriptBuilder`, `Opcode`, `OutPoint`, `TxIn`, `TxOut`,
  `Transaction`, `sha256`, `hash160`, `p2wsh`, `p2wpkh`, and BIP-69 ordering
  (`Transaction.lex_order`, `lex_order_outputs`).

## Installation

```
pip install lnpayment
```

## Examples

Short channel ids:

```python
from lnpayment.ids import ShortChannelId

scid = ShortChannelId.parse("539268x845x1")
assert str(scid) == "539268x845x1"
assert ShortChannelId.decode(scid.encode()) == scid
```

Node addresses in Lightning wire encoding:

```python
from lnpayment.address import IpV4Addr, encode_address, decode_address

addr = IpV4Addr(addr=bytes([255, 254, 253, 252]), port=9735)
assert encode_address(addr).hex() == "01fffefdfc2607"
assert decode_address(bytes.fromhex("01fffefdfc2607")) == addr
```

Channel ids from a funding outpoint:

```python
from lnpayment.ids import ChannelId

channel_id = ChannelId.with_outpoint(bytes(32), 1)
print(channel_id)   # lower-case hex
```

## What it does not do

This is a library of data types and transaction templates. It does not
connect to peers, parse or emit Lightning protocol messages, sign or verify
anything, serialize transactions or compute transaction ids, build PSBTs, or
store channel state.

## Running the tests

```
pip install -e .[test]
pytest
```