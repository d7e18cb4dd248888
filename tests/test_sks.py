import pytest

from melab.aes_engine import AesEngine
from melab.hash_engine import HashEngine, HashMode, HashReg
from melab.sha256 import sha256_init_state
from melab.sks import (
    ATR1_KEY_VALID,
    DATA_SIZE,
    SLOT_COUNT,
    SMALL_SLOT_COUNT,
    SecureKeyStore,
    SksCommand,
    SksReg,
    SksStatus,
)


def _u32(value):
    return int(value).to_bytes(4, "little")


def _val(data):
    return int.from_bytes(data, "little")


class _FakeUnit:
    def __init__(self, result=None):
        self.result = result
        self.loaded = []

    def get_result(self, count):
        return None if self.result is None else self.result[:count]

    def load_key(self, key):
        self.loaded.append(bytes(key))


def _run(sks, slot, command):
    sks.write(SksReg.SLOT, _u32(slot))
    sks.write(SksReg.COMMAND, _u32(command))


def test_name_derived_from_parent():
    assert SecureKeyStore("ocs0").name == "ocs0_sks"


def test_slot_sizes_and_preset_slot():
    sks = SecureKeyStore()
    assert len(sks.slots) == SLOT_COUNT
    assert all(len(s.data) == 16 for s in sks.slots[:SMALL_SLOT_COUNT])
    assert all(len(s.data) == 32 for s in sks.slots[SMALL_SLOT_COUNT:])
    assert [i for i, s in enumerate(sks.slots) if s.valid] == [21]


def test_slot_register_round_trip():
    sks = SecureKeyStore()
    sks.write(SksReg.SLOT, _u32(7))
    assert _val(sks.read(SksReg.SLOT, 4)) == 7


def test_misaligned_read_returns_zeros():
    sks = SecureKeyStore()
    sks.write(SksReg.SLOT, _u32(5))
    assert sks.read(SksReg.SLOT + 1, 4) == bytes(4)
    assert sks.read(SksReg.SLOT, 2) == bytes(2)


def test_misaligned_write_ignored():
    sks = SecureKeyStore()
    sks.write(SksReg.SLOT, _u32(3))
    assert sks.write(SksReg.SLOT, b"\x09\x00") is True
    assert _val(sks.read(SksReg.SLOT, 4)) == 3


def test_data_cannot_be_read_back():
    sks = SecureKeyStore()
    sks.write(SksReg.DATA, b"\xaa\xbb\xcc\xdd")
    assert sks.read(SksReg.DATA, 4) == bytes(4)
    assert sks.databuf[:4] == b"\xaa\xbb\xcc\xdd"


def test_data_write_beyond_buffer_ignored():
    sks = SecureKeyStore()
    sks.write(SksReg.DATA + 16, bytes(range(1, 18)))
    assert sks.databuf == bytearray(DATA_SIZE)


def test_atr1_round_trip():
    sks = SecureKeyStore()
    sks.write(SksReg.ATR1 + 4 * 3, _u32(0x1234))
    assert sks.slots[3].atr1 == 0x1234
    assert _val(sks.read(SksReg.ATR1 + 4 * 3, 4)) == 0x1234


def test_status_write_clears_bits():
    sks = SecureKeyStore()
    sks.status = SksStatus.ERROR | SksStatus.BUSY
    sks.write(SksReg.STATUS, _u32(SksStatus.ERROR))
    assert sks.status == SksStatus.BUSY


def test_produce_from_cpu_small_slot():
    sks = SecureKeyStore()
    key = bytes(range(16))
    sks.write(SksReg.DATA, key)
    _run(sks, 2, SksCommand.GO | SksCommand.PRODUCE | SksCommand.SOURCE_CPU)
    assert bytes(sks.slots[2].data) == key
    assert sks.slots[2].atr1 & ATR1_KEY_VALID
    assert sks.databuf == bytearray(DATA_SIZE)
    assert sks.status == 0
    assert not sks.command & SksCommand.GO


def test_produce_from_cpu_large_slot():
    sks = SecureKeyStore()
    key = bytes(range(100, 132))
    sks.write(SksReg.DATA, key)
    _run(sks, 12, SksCommand.GO | SksCommand.PRODUCE | SksCommand.SOURCE_CPU)
    assert bytes(sks.slots[12].data) == key


def test_command_without_go_does_nothing():
    sks = SecureKeyStore()
    sks.write(SksReg.DATA, bytes(range(1, 17)))
    _run(sks, 0, SksCommand.PRODUCE | SksCommand.SOURCE_CPU)
    assert bytes(sks.slots[0].data) == bytes(16)
    assert sks.databuf[:16] == bytes(range(1, 17))


def test_produce_from_hash_engine():
    hash_unit = HashEngine("ocs")
    hash_unit.write(HashReg.MODE, _u32(HashMode.ALGO_SHA256))
    sks = SecureKeyStore(hash_unit=hash_unit)
    _run(sks, 11, SksCommand.GO | SksCommand.PRODUCE | SksCommand.SOURCE_HASH)
    assert bytes(sks.slots[11].data) == sha256_init_state()
    assert sks.slots[11].valid


def test_produce_from_aes_not_ready_sets_error():
    sks = SecureKeyStore(aes_unit=AesEngine("ocs"))
    _run(sks, 1, SksCommand.GO | SksCommand.PRODUCE | SksCommand.SOURCE_AES)
    assert sks.status & SksStatus.ERROR
    assert not sks.status & SksStatus.BUSY
    assert not sks.slots[1].valid


def test_invalid_slot_sets_error():
    sks = SecureKeyStore()
    _run(sks, 40, SksCommand.GO | SksCommand.PRODUCE | SksCommand.SOURCE_CPU)
    assert sks.status == SksStatus.ERROR


def test_load_key_into_hash_target():
    fake = _FakeUnit()
    sks = SecureKeyStore(hash_unit=fake)
    key = bytes(range(50, 82))
    sks.write(SksReg.DATA, key)
    _run(sks, 15, SksCommand.GO | SksCommand.PRODUCE | SksCommand.SOURCE_CPU)
    _run(sks, 15, SksCommand.GO | SksCommand.TARGET_HASH)
    assert fake.loaded == [key]
    assert sks.status == 0


def test_load_key_into_aes_target():
    fake = _FakeUnit()
    sks = SecureKeyStore(aes_unit=fake)
    _run(sks, 4, SksCommand.GO | SksCommand.TARGET_AES)
    assert fake.loaded == [bytes(16)]


def test_missing_hash_output_is_error():
    sks = SecureKeyStore(hash_unit=_FakeUnit(None))
    _run(sks, 0, SksCommand.GO | SksCommand.PRODUCE | SksCommand.SOURCE_HASH)
    assert _val(sks.read(SksReg.STATUS, 4)) == SksStatus.ERROR
    assert not sks.slots[0].valid


def test_bad_target_is_not_an_error():
    fake = _FakeUnit()
    sks = SecureKeyStore(hash_unit=fake, aes_unit=fake)
    _run(sks, 0, SksCommand.GO)
    assert sks.status == 0
    assert fake.loaded == []