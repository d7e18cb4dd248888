"""OCS AES unit: a register stub that answers status reads."""

from __future__ import annotations

import logging
from typing import Optional

from melab.gpdma import BusRead, BusWrite, GpDma

__all__ = ["AesEngine"]

_log = logging.getLogger("melab.aes")

_REGION_SIZE = 0x1000
_STATUS_REG = 0x05C
_STATUS_VALUE = 2


class AesEngine:
    """AES unit; registers are logged, the status register reads as ready."""

    def __init__(
        self,
        parent_name: str,
        suffix: str = "a",
        bus_read: Optional[BusRead] = None,
        bus_write: Optional[BusWrite] = None,
    ) -> None:
        self.name = f"{parent_name}_aes{suffix}"
        self.key = b""
        self.output: Optional[bytes] = None
        self.rejected_dma = 0
        self.gpdma = GpDma(
            bus_read=bus_read,
            bus_write=bus_write,
            int_read=self.dma_read,
            int_write=self.dma_write,
        )

    def read(self, addr: int, count: int) -> Optional[bytes]:
        """Read a register; None if *addr* is outside the unit."""
        if not 0 <= addr < _REGION_SIZE:
            return None
        value = _STATUS_VALUE if addr == _STATUS_REG else 0
        _log.debug("%s: read  unknown 0x%03x count:%i val: 0x%08x",
                   self.name, addr, count, value)
        return value.to_bytes(4, "little")[:max(count, 0)].ljust(max(count, 0), b"\0")

    def write(self, addr: int, data: bytes) -> bool:
        """Accept and log a register write; False if outside the unit."""
        if not 0 <= addr < _REGION_SIZE:
            return False
        _log.debug("%s: write unknown 0x%03x count:%i val: 0x%08x",
                   self.name, addr, len(data),
                   int.from_bytes(bytes(data[:4]), "little"))
        return True

    def dma_write(self, data: bytes) -> None:
        """Reject data pushed by the DMA engine, counting the rejected bytes."""
        self.rejected_dma += len(data)
        _log.error("%s: bad dma write to aes!!!", self.name)

    def dma_read(self, size: int) -> bytes:
        """Reject a DMA pull; the engine receives zeros."""
        self.rejected_dma += size
        _log.error("%s: bad dma read from aes!!!", self.name)
        return bytes(size)

    def load_key(self, key: bytes) -> None:
        """Accept a key from the key store."""
        self.key = bytes(key)

    def get_result(self, count: int) -> Optional[bytes]:
        """Return *count* bytes of output, or None while none is ready."""
        if self.output is None or len(self.output) < count:
            return None
        return bytes(self.output[:count])