"""OCS hash control unit: SHA-256 and HMAC-SHA-256 with a GPDMA front end."""

from __future__ import annotations

import logging
from enum import IntEnum, IntFlag
from typing import Optional

from melab.gpdma import BusRead, BusWrite, GpDma
from melab.sha256 import sha256_init_state, sha256_transform

__all__ = ["HashReg", "HashMode", "HashCommand", "STATUS1_DONE", "HashEngine"]

_log = logging.getLogger("melab.hash")

_MASK32 = 0xFFFFFFFF
_MASK64 = (1 << 64) - 1
_REGION_SIZE = 0x1000
_STATE_SIZE = 32

STATUS1_DONE = 4


class HashReg(IntEnum):
    """Register offsets inside the hash unit."""

    MODE = 0x000
    HASH = 0x004
    CMD = 0x008
    STS1 = 0x050
    STS2 = 0x058
    COUNTL = 0x060
    COUNTH = 0x064
    DATA = 0x600


class HashMode(IntFlag):
    """Fields of the mode register."""

    ALGO_SHA1 = 0
    ALGO_SHA512 = 1 << 16
    ALGO_SHA256 = 2 << 16
    ALGO_MASK = 7 << 16
    HMAC = 1 << 20


class HashCommand(IntEnum):
    START_DATA = 1
    FLUSH_DATA = 2


class HashEngine:
    """Hash unit state and its register interface."""

    def __init__(
        self,
        parent_name: str,
        bus_read: Optional[BusRead] = None,
        bus_write: Optional[BusWrite] = None,
    ) -> None:
        self.name = f"{parent_name}_hcu"
        self.mode = 0
        self.count = 0
        self.status1 = 0
        self.status2 = 0
        self.state = bytearray(64)
        self.state_ptr = 0
        self.buffer = bytearray(64)
        self.key = bytearray(64)
        self.gpdma = GpDma(
            bus_read=bus_read,
            bus_write=bus_write,
            int_read=self.dma_read,
            int_write=self.dma_write,
        )

    @property
    def _is_sha256(self) -> bool:
        return self.mode & HashMode.ALGO_MASK == HashMode.ALGO_SHA256

    # -- hashing rounds --------------------------------------------------

    def round_init(self) -> None:
        """Reset the byte count, status and state for the selected algorithm."""
        self.count = 0
        self.status1 = 0
        self.status2 = 0
        if self._is_sha256:
            self.state[:_STATE_SIZE] = sha256_init_state()
        else:
            _log.error("%s: hash algorithm unimpl 0x%08x", self.name, self.mode)

    def round_process(self) -> None:
        """Compress the 64-byte buffer into the state."""
        self.state_ptr = 0
        if self._is_sha256:
            self.state[:_STATE_SIZE] = sha256_transform(
                self.state[:_STATE_SIZE], self.buffer
            )
        else:
            _log.error("%s: hash algorithm unimpl 0x%08x", self.name, self.mode)

    def round_finish(self, inner: bool) -> None:
        """Pad and finish the hash; for HMAC, also run the outer round.

        *inner* is true when finishing the outer HMAC round itself.
        """
        if self._is_sha256:
            length_bits = (self.count << 3) & _MASK64
            pos = self.count & 0x3F
            self.buffer[pos] = 0x80
            pos += 1
            while pos != 56:
                pos &= 0x3F
                if pos == 0:
                    self.round_process()
                self.buffer[pos] = 0
                pos += 1
            self.buffer[56:64] = length_bits.to_bytes(8, "big")
            self.round_process()
        else:
            _log.critical("%s: hash algorithm unimpl 0x%08x", self.name, self.mode)

        if self.mode & HashMode.HMAC and not inner:
            inner_digest = bytes(self.state[:_STATE_SIZE])
            self.round_init()
            self.buffer[:] = bytes(k ^ 0x5C for k in self.key)
            self.count += 64
            self.round_process()
            self.buffer[:_STATE_SIZE] = inner_digest
            self.count += _STATE_SIZE
            self.round_finish(True)
        self.status1 |= STATUS1_DONE

    def hmac_round1_init(self) -> None:
        """Absorb the inner HMAC key block."""
        self.buffer[:] = bytes(k ^ 0x36 for k in self.key)
        self.count = 64
        self.round_process()

    def do_command(self, cmd: int) -> None:
        """Execute a value written to the command register."""
        if cmd == HashCommand.START_DATA:
            _log.debug("%s: Start data index:%i pos:%i",
                       self.name, self.count, self.count & 63)
            self.count &= ~63 & _MASK64
            if self.mode & HashMode.HMAC:
                self.hmac_round1_init()
        elif cmd == HashCommand.FLUSH_DATA:
            _log.debug("%s: Flush data index:%i pos:%i",
                       self.name, self.count, self.count & 63)
            self.round_finish(False)
        else:
            _log.error("%s: unknown command 0x%08x", self.name, cmd)

    # -- data paths ------------------------------------------------------

    def dma_write(self, data: bytes) -> None:
        """Feed message bytes into the hash."""
        if not data:
            _log.error("%s: bad data write count:%i", self.name, len(data))
            return
        view = memoryview(bytes(data))
        while view:
            offset = self.count & 63
            size = min(len(view), 64 - offset)
            self.buffer[offset:offset + size] = view[:size]
            self.count = (self.count + size) & _MASK64
            view = view[size:]
            if self.count & 63 == 0:
                self.round_process()

    def dma_read(self, size: int) -> bytes:
        """The hash unit cannot be a DMA source; logs and returns zeros."""
        _log.error("%s: bad dma read from hash!!!", self.name)
        return bytes(size)

    def load_key(self, key: bytes) -> None:
        """Load an HMAC key into the start of the key buffer."""
        self.key[:len(key)] = key

    def get_result(self, count: int) -> Optional[bytes]:
        """Return the first *count* bytes of the hash state."""
        return bytes(self.state[:count])

    # -- registers -------------------------------------------------------

    def read(self, addr: int, count: int) -> Optional[bytes]:
        """Read a register; None if *addr* is outside the unit."""
        if not 0 <= addr < _REGION_SIZE:
            return None
        if count != 4 or addr & 3:
            _log.error("%s: read misaligned 0x%03x count:%i", self.name, addr, count)
            return bytes(max(count, 0))
        if addr == HashReg.STS1:
            return self.status1.to_bytes(4, "little")
        if addr == HashReg.STS2:
            return self.status2.to_bytes(4, "little")
        if addr == HashReg.COUNTL:
            return (self.count & _MASK32).to_bytes(4, "little")
        if addr == HashReg.COUNTH:
            return (self.count >> 32).to_bytes(4, "little")
        if addr == HashReg.HASH:
            if self.state_ptr + count > _STATE_SIZE:
                _log.error("%s: bad state read off:%i count:%i", self.name, addr, count)
                return bytes(count)
            value = bytes(self.state[self.state_ptr:self.state_ptr + count])
            self.state_ptr += count
            return value
        value = self.gpdma.read(addr, count)
        if value is None:
            _log.error("%s: read  unknown 0x%03x count:%i", self.name, addr, count)
            return bytes(count)
        return value

    def write(self, addr: int, data: bytes) -> bool:
        """Write a register; False if *addr* is outside the unit."""
        if not 0 <= addr < _REGION_SIZE:
            return False
        count = len(data)
        if addr == HashReg.DATA:
            self.dma_write(data)
            return True
        if count != 4 or addr & 3:
            _log.error("%s: write misaligned 0x%03x count:%i", self.name, addr, count)
            return True
        value = int.from_bytes(data, "little")
        if addr == HashReg.MODE:
            _log.debug("%s: write MODE 0x%08x", self.name, value)
            self.mode = value
            self.state_ptr = 0
            self.round_init()
        elif addr == HashReg.CMD:
            _log.debug("%s: write CMD 0x%08x", self.name, value)
            self.do_command(value)
        elif addr == HashReg.HASH:
            if self.state_ptr + count > _STATE_SIZE:
                _log.error("%s: bad state write off:%i count:%i", self.name, addr, count)
                return True
            self.state[self.state_ptr:self.state_ptr + count] = data
            self.state_ptr += count
        elif addr == HashReg.COUNTL:
            self.count = (self.count & ~_MASK32 & _MASK64) | value
        elif addr == HashReg.COUNTH:
            self.count = (self.count & _MASK32) | (value << 32)
        elif addr == HashReg.STS1:
            self.status1 &= ~value & _MASK32
        elif addr == HashReg.STS2:
            self.status2 &= ~value & _MASK32
        elif not self.gpdma.write(addr, data):
            _log.error("%s: write unknown 0x%03x count:%i val: 0x%08x",
                       self.name, addr, count, value)
        return True