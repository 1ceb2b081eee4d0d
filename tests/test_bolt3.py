import pytest

from lnpayment.bitcoin import Opcode, OutPoint, TxOut, p2wpkh, p2wsh
from lnpayment.bolt3 import (
    Bolt3,
    CommitmentTemplate,
    closing_transaction,
    commitment_transaction,
    compute_obscuring_factor,
    funding_output,
    funding_script,
    to_local_output,
    to_local_script,
    to_remote_v1_output,
    to_remote_v2_output,
    to_remote_v2_script,
)
from lnpayment.channel import DUMB_PUBKEY
from lnpayment.ids import ExtensionId

KEY_A = b"\x02" + bytes([0x11]) * 32
KEY_B = b"\x03" + bytes([0x22]) * 32
KEY_C = b"\x02" + bytes([0x33]) * 32
OUTPOINT = OutPoint(bytes([0x44]) * 32, 1)


def test_obscuring_factor_symmetric_between_peers():
    assert compute_obscuring_factor(True, KEY_A, KEY_B) == compute_obscuring_factor(
        False, KEY_B, KEY_A
    )


def test_obscuring_factor_depends_on_order():
    assert compute_obscuring_factor(True, KEY_A, KEY_B) != compute_obscuring_factor(
        True, KEY_B, KEY_A
    )
    assert 0 <= compute_obscuring_factor(True, KEY_A, KEY_B) < 2**64


def test_obscuring_factor_rejects_bad_key():
    with pytest.raises(ValueError):
        compute_obscuring_factor(True, b"\x02" * 10, KEY_B)


def test_funding_script_structure_and_key_order():
    script = funding_script(KEY_B, KEY_A)
    assert script == funding_script(KEY_A, KEY_B)
    assert script[0] == Opcode.OP_2
    assert script[1] == 33
    assert script[2:35] == min(KEY_A, KEY_B)
    assert script[36:69] == max(KEY_A, KEY_B)
    assert script[-2] == Opcode.OP_2
    assert script[-1] == Opcode.OP_CHECKMULTISIG


def test_to_local_script_layout():
    script = to_local_script(KEY_A, KEY_B, 6)
    expected = (
        bytes([Opcode.OP_IF, 33])
        + KEY_A
        + bytes([Opcode.OP_ELSE, Opcode.OP_6, Opcode.OP_CSV, Opcode.OP_DROP, 33])
        + KEY_B
        + bytes([Opcode.OP_ENDIF, Opcode.OP_CHECKSIG])
    )
    assert script == expected


def test_to_local_script_rejects_large_delay():
    with pytest.raises(ValueError):
        to_local_script(KEY_A, KEY_B, 70000)


def test_to_remote_v2_script_layout():
    script = to_remote_v2_script(KEY_C)
    assert script == bytes([33]) + KEY_C + bytes(
        [Opcode.OP_CHECKSIGVERIFY, Opcode.OP_1, Opcode.OP_CSV]
    )


def test_outputs_wrap_scripts():
    assert funding_output(1000, KEY_A, KEY_B) == TxOut(
        1000, p2wsh(funding_script(KEY_A, KEY_B))
    )
    assert to_local_output(500, KEY_A, KEY_B, 6) == TxOut(
        500, p2wsh(to_local_script(KEY_A, KEY_B, 6))
    )
    assert to_remote_v1_output(300, KEY_C) == TxOut(300, p2wpkh(KEY_C))
    assert to_remote_v2_output(300, KEY_C) == TxOut(300, p2wsh(to_remote_v2_script(KEY_C)))


def test_output_rejects_negative_amount():
    with pytest.raises(ValueError):
        to_remote_v1_output(-1, KEY_C)


def test_commitment_transaction_timelocks():
    factor = compute_obscuring_factor(True, KEY_A, KEY_B)
    tx = commitment_transaction(7000, 3000, 5, factor, OUTPOINT, KEY_C, KEY_A, KEY_B, 6)
    assert tx.version == 2
    assert tx.lock_time >> 24 == 0x20
    assert tx.inputs[0].sequence >> 24 == 0x80
    assert tx.lock_time & 0xFFFFFF == tx.inputs[0].sequence & 0xFFFFFF
    assert tx.inputs[0].previous_output == OUTPOINT


def test_commitment_number_equal_to_factor_is_unobscured():
    tx = commitment_transaction(1, 2, 77, 77, OUTPOINT, KEY_C, KEY_A, KEY_B, 6)
    assert tx.lock_time == 0x20 << 24
    assert tx.inputs[0].sequence == 0x80 << 24


def test_commitment_transaction_outputs_sorted():
    tx = commitment_transaction(7000, 3000, 0, 0, OUTPOINT, KEY_C, KEY_A, KEY_B, 6)
    assert [out.value for out in tx.outputs] == [3000, 7000]
    assert tx.outputs[0] == to_remote_v1_output(3000, KEY_C)
    assert tx.outputs[1] == to_local_output(7000, KEY_A, KEY_B, 6)


def test_closing_transaction():
    outs = [TxOut(10, b"\x00"), TxOut(5, b"\x01")]
    tx = closing_transaction(OUTPOINT, iter(outs))
    assert tx.version == 2
    assert tx.lock_time == 0
    assert tx.inputs[0].sequence == 0xFFFF_FFFF
    assert tx.inputs[0].previous_output == OUTPOINT
    assert tx.outputs == outs


def test_bolt3_identity_and_defaults():
    bolt3 = Bolt3(True, 7000, 3000, 144)
    assert bolt3.identity() == ExtensionId.BOLT3
    assert bolt3.commitment_number == 0
    assert bolt3.obscuring_factor == compute_obscuring_factor(
        True, DUMB_PUBKEY, DUMB_PUBKEY
    )


def test_bolt3_commitment_with_dumb_keys():
    bolt3 = Bolt3(False, 7000, 3000, 144)
    template = bolt3.commitment()
    assert isinstance(template, CommitmentTemplate)
    assert template.version == 2
    assert template.lock_time & 0xFFFFFF == bolt3.obscuring_factor & 0xFFFFFF
    assert template.sequence & 0xFFFFFF == bolt3.obscuring_factor & 0xFFFFFF
    assert template.outputs == [
        to_local_output(3000, DUMB_PUBKEY, DUMB_PUBKEY, 144),
        to_remote_v1_output(7000, DUMB_PUBKEY),
    ]


def test_bolt3_update_remote_keys_changes_to_local():
    bolt3 = Bolt3(True, 7000, 3000, 144)
    factor = bolt3.obscuring_factor
    bolt3.update_remote_keys(KEY_A, KEY_B, KEY_C)
    template = bolt3.commitment()
    assert template.outputs[0] == to_local_output(3000, DUMB_PUBKEY, KEY_C, 144)
    assert template.outputs[1] == to_remote_v1_output(7000, DUMB_PUBKEY)
    assert bolt3.remote_keys.payment_basepoint == KEY_A
    assert bolt3.obscuring_factor == factor


def test_bolt3_rejects_bad_values():
    with pytest.raises(ValueError):
        Bolt3(True, 1, 1, 100000)
    bolt3 = Bolt3(True, 1, 1, 1)
    with pytest.raises(ValueError):
        bolt3.update_remote_keys(b"\x02", KEY_B, KEY_C)