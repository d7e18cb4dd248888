"""OCS secure key store: key slots loaded from the CPU or engine outputs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Optional, Protocol

__all__ = [
    "SksReg",
    "SksCommand",
    "SksStatus",
    "ATR1_KEY_VALID",
    "DATA_SIZE",
    "SLOT_COUNT",
    "SMALL_SLOT_COUNT",
    "KeySlot",
    "SecureKeyStore",
]

_log = logging.getLogger("melab.sks")

_MASK32 = 0xFFFFFFFF

DATA_SIZE = 32
SLOT_COUNT = 22
SMALL_SLOT_COUNT = 11
_SMALL_KEY = 16
_LARGE_KEY = 32
_PRESET_SLOT = 21

ATR1_KEY_VALID = 1


class SksReg(IntEnum):
    """Register offsets inside the key store unit."""

    SLOT = 0x000
    COMMAND = 0x004
    STATUS = 0x008
    DATA = 0x100
    ATR1 = 0x200


class SksCommand(IntFlag):
    """Fields of the command register."""

    PRODUCE = 1 << 0
    SOURCE_CPU = 1 << 4
    SOURCE_AES = 2 << 4
    SOURCE_HASH = 3 << 4
    SOURCE_MASK = 3 << 4
    TARGET_AES = 1 << 8
    TARGET_HASH = 2 << 8
    TARGET_MASK = 3 << 8
    GO = 1 << 31


class SksStatus(IntFlag):
    """Fields of the status register."""

    BUSY = 1 << 0
    ERROR = 1 << 1


class KeyUnit(Protocol):
    def get_result(self, count: int) -> Optional[bytes]: ...

    def load_key(self, key: bytes) -> None: ...


_DATA_RANGE = range(SksReg.DATA, SksReg.DATA + DATA_SIZE)
_ATR1_RANGE = range(SksReg.ATR1, SksReg.ATR1 + 4 * SLOT_COUNT)


@dataclass
class KeySlot:
    """One key slot: its key bytes and its first attribute word."""

    data: bytearray
    atr1: int = 0

    @property
    def valid(self) -> bool:
        return bool(self.atr1 & ATR1_KEY_VALID)


def _small_slot() -> KeySlot:
    return KeySlot(bytearray(_SMALL_KEY))


def _large_slot() -> KeySlot:
    return KeySlot(bytearray(_LARGE_KEY))


@dataclass
class SecureKeyStore:
    """Key store unit with 11 16-byte and 11 32-byte key slots."""

    parent_name: str = "ocs"
    hash_unit: Optional[KeyUnit] = None
    aes_unit: Optional[KeyUnit] = None
    slot: int = 0
    command: int = 0
    status: int = 0
    databuf: bytearray = field(default_factory=lambda: bytearray(DATA_SIZE))
    slots: list[KeySlot] = field(init=False)

    def __post_init__(self) -> None:
        self.name = f"{self.parent_name}_sks"
        self.slots = [_small_slot() for _ in range(SMALL_SLOT_COUNT)]
        self.slots += [
            _large_slot() for _ in range(SLOT_COUNT - SMALL_SLOT_COUNT)
        ]
        self.slots[_PRESET_SLOT].atr1 |= ATR1_KEY_VALID

    # -- registers -------------------------------------------------------

    def read(self, addr: int, count: int) -> bytes:
        """Read a register; key data can never be read back."""
        if count != 4 or addr & 3:
            _log.error("%s: read misaligned 0x%03x count:%i", self.name, addr, count)
            return bytes(max(count, 0))
        if addr == SksReg.SLOT:
            value = self.slot
        elif addr == SksReg.COMMAND:
            value = self.command
        elif addr == SksReg.STATUS:
            value = self.status
        elif addr in _DATA_RANGE:
            _log.warning("%s: SKS readback attempt! off:%i count:%i",
                         self.name, addr - SksReg.DATA, count)
            value = 0
        elif addr in _ATR1_RANGE:
            index = (addr - SksReg.ATR1) // 4
            value = self.slots[index].atr1
        else:
            _log.warning("%s: read  0x%03x count:%i", self.name, addr, count)
            value = 0
        _log.debug("%s: read 0x%03x = 0x%08x", self.name, addr, value)
        return int(value).to_bytes(4, "little")

    def write(self, addr: int, data: bytes) -> bool:
        """Write a register, then run a pending command."""
        count = len(data)
        if addr in _DATA_RANGE:
            offset = addr - SksReg.DATA
            if offset + count > DATA_SIZE:
                _log.error("%s: bad data write start:%i count:%i",
                           self.name, offset, count)
                return True
            self.databuf[offset:offset + count] = data
        elif count != 4 or addr & 3:
            _log.error("%s: write misaligned 0x%03x count:%i", self.name, addr, count)
            return True

        value = int.from_bytes(bytes(data[:4]).ljust(4, b"\0"), "little")
        if addr == SksReg.SLOT:
            self.slot = value
        elif addr == SksReg.COMMAND:
            self.command = value
        elif addr == SksReg.STATUS:
            self.status &= ~value & _MASK32
        elif addr in _ATR1_RANGE:
            index = (addr - SksReg.ATR1) // 4
            self.slots[index].atr1 = value
        else:
            _log.debug("%s: write unknown 0x%03x count:%i val: 0x%08x",
                       self.name, addr, count, value)
        self.do_operation()
        return True

    # -- commands --------------------------------------------------------

    def do_operation(self) -> None:
        """Execute the command register if its GO bit is set."""
        if not self.command & SksCommand.GO:
            return
        self.command &= ~SksCommand.GO & _MASK32
        self.status = int(self.status | SksStatus.BUSY)
        succeeded = self._operate()
        self.status &= ~SksStatus.BUSY & _MASK32
        if not succeeded:
            self.status = int(self.status | SksStatus.ERROR)

    def _operate(self) -> bool:
        if not 0 <= self.slot < len(self.slots):
            return False
        slot = self.slots[self.slot]
        size = len(slot.data)
        if self.command & SksCommand.PRODUCE:
            source = self.command & SksCommand.SOURCE_MASK
            if source == SksCommand.SOURCE_CPU:
                slot.data[:] = self.databuf[:size]
                self.databuf[:] = bytes(DATA_SIZE)
            elif source == SksCommand.SOURCE_AES:
                result = self._result(self.aes_unit, "AES", size)
                if result is None:
                    return False
                slot.data[:] = result
            elif source == SksCommand.SOURCE_HASH:
                result = self._result(self.hash_unit, "Hash", size)
                if result is None:
                    return False
                slot.data[:] = result
            else:
                return False
            slot.atr1 |= ATR1_KEY_VALID
            return True

        target = self.command & SksCommand.TARGET_MASK
        if target == SksCommand.TARGET_HASH:
            unit = self.hash_unit
        elif target == SksCommand.TARGET_AES:
            unit = self.aes_unit
        else:
            _log.error("%s: Bad command: 0x%08x!", self.name, self.command)
            return True
        if unit is None:
            _log.error("%s: key target is not connected", self.name)
            return True
        unit.load_key(bytes(slot.data))
        return True

    def _result(self, unit: Optional[KeyUnit], what: str, size: int) -> Optional[bytes]:
        result = unit.get_result(size) if unit is not None else None
        if result is None:
            _log.error("%s: %s output not ready!", self.name, what)
            return None
        return bytes(result[:size]).ljust(size, b"\0")