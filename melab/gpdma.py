"""General purpose DMA engine register block shared by the OCS units."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional

__all__ = ["GpDmaReg", "CONTROL_GO", "CHUNK_SIZE", "GpDma"]

_log = logging.getLogger("melab.gpdma")

_MASK = 0xFFFFFFFF
_WINDOW = range(0x400, 0x500)

CONTROL_GO = 1 << 31
CHUNK_SIZE = 64


class GpDmaReg(IntEnum):
    """Offsets of the DMA registers inside a unit's register window."""

    SRC_ADDR = 0x400
    DST_ADDR = 0x404
    SRC_SIZE = 0x408
    DST_SIZE = 0x40C
    CONTROL = 0x410
    STATUS = 0x414


_FIELDS = {
    GpDmaReg.SRC_ADDR: "src_addr",
    GpDmaReg.DST_ADDR: "dst_addr",
    GpDmaReg.SRC_SIZE: "src_size",
    GpDmaReg.DST_SIZE: "dst_size",
    GpDmaReg.CONTROL: "control",
    GpDmaReg.STATUS: "status",
}

BusRead = Callable[[int, int], bytes]
BusWrite = Callable[[int, bytes], object]
IntRead = Callable[[int], bytes]
IntWrite = Callable[[bytes], object]


@dataclass
class GpDma:
    """DMA engine that moves data between the bus and its owning unit.

    An address of zero on either side selects the unit's internal buffer
    (*int_read* / *int_write*) instead of the bus.
    """

    bus_read: Optional[BusRead] = None
    bus_write: Optional[BusWrite] = None
    int_read: Optional[IntRead] = None
    int_write: Optional[IntWrite] = None
    src_addr: int = 0
    dst_addr: int = 0
    src_size: int = 0
    dst_size: int = 0
    control: int = 0
    status: int = 0

    def read(self, addr: int, count: int) -> Optional[bytes]:
        """Read a register; None if *addr* is outside the DMA window."""
        if addr not in _WINDOW:
            return None
        if count != 4 or addr & 3:
            _log.error("read misaligned 0x%03x count:%i", addr, count)
            return bytes(max(count, 0))
        try:
            name = _FIELDS[GpDmaReg(addr)]
        except ValueError:
            _log.error("read  0x%03x count:%i", addr, count)
            return bytes(4)
        value = getattr(self, name)
        if name in ("control", "status"):
            _log.debug("read %s: 0x%08x", name, value)
        return value.to_bytes(4, "little")

    def write(self, addr: int, data: bytes) -> bool:
        """Write a register and start a pending transfer; False if not ours."""
        if addr not in _WINDOW:
            return False
        count = len(data)
        if count != 4 or addr & 3:
            _log.error("write misaligned 0x%03x count:%i", addr, count)
            return True
        value = int.from_bytes(data, "little") & _MASK
        try:
            setattr(self, _FIELDS[GpDmaReg(addr)], value)
        except ValueError:
            _log.error("write 0x%03x count:%i", addr, count)
        self.run_transaction()
        return True

    def run_transaction(self) -> None:
        """Perform the programmed transfer if the GO bit is set."""
        if not self.control & CONTROL_GO:
            return
        self.control &= ~CONTROL_GO & _MASK
        count = max(self.src_size, self.dst_size)
        _log.debug(
            "Run transaction src:0x%08x dst:0x%08x sz:0x%08x",
            self.src_addr, self.dst_addr, count,
        )
        pos = 0
        while count:
            size = min(count, CHUNK_SIZE)
            if self.src_addr:
                chunk = self._require(self.bus_read, "bus read")(
                    (self.src_addr + pos) & _MASK, size
                )
            else:
                chunk = self._require(self.int_read, "internal read")(size)
            if self.dst_addr:
                self._require(self.bus_write, "bus write")(
                    (self.dst_addr + pos) & _MASK, bytes(chunk)
                )
            else:
                self._require(self.int_write, "internal write")(bytes(chunk))
            pos += size
            count -= size

    @staticmethod
    def _require(callback, what: str):
        if callback is None:
            raise RuntimeError(f"GPDMA {what} is not connected")
        return callback