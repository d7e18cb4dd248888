"""Address translation table of the gasket: primary and sideband windows."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import NamedTuple, Optional

__all__ = [
    "WINDOW_COUNT",
    "AttWindow",
    "AttSidebandWindow",
    "SidebandTarget",
    "AttRegisters",
]

_log = logging.getLogger("melab.att")

_MASK32 = 0xFFFFFFFF
_MASK64 = (1 << 64) - 1
_STRIDE = 32
_ENABLE = 1

WINDOW_COUNT = 128

_PRIM_FIELDS = {
    0x00: "int_ba",
    0x04: "int_size",
    0x08: "ext_ba_lo",
    0x0C: "ext_ba_hi",
    0x10: "control",
}

_SB_FIELDS = {
    0x00: "window_base",
    0x04: "window_size",
    0x08: "window_flags",
    0x0C: "reg_c",
    0x10: "reg_10",
    0x14: "reg_14",
    0x18: "sb_address",
    0x1C: "reg_1c",
}


def _word(data: bytes) -> int:
    return int.from_bytes(bytes(data[:4]).ljust(4, b"\0"), "little")


@dataclass
class AttWindow:
    """A window from the internal address space onto the primary bus."""

    int_ba: int = 0
    int_size: int = 0
    ext_ba_lo: int = 0
    ext_ba_hi: int = 0
    control: int = 0

    @property
    def enabled(self) -> bool:
        return bool(self.control & _ENABLE)

    @property
    def ext_base(self) -> int:
        return ((self.ext_ba_hi & _MASK32) << 32) | (self.ext_ba_lo & _MASK32)


@dataclass
class AttSidebandWindow:
    """A window from the internal address space onto a sideband endpoint."""

    window_base: int = 0
    window_size: int = 0
    window_flags: int = 0
    reg_c: int = 0
    reg_10: int = 0
    reg_14: int = 0
    sb_address: int = 0
    reg_1c: int = 0

    @property
    def enabled(self) -> bool:
        return bool(self.window_flags & _ENABLE)

    @property
    def endpoint(self) -> int:
        return self.sb_address & 0xFF

    @property
    def bar(self) -> int:
        return (self.sb_address >> 24) & 0x7

    def describe(self) -> str:
        """Return (and log) the decoded fields of the sideband address."""
        text = "ep:0x%02X unk0:0x%02X unk1:0x%02X bar:%i uf0:0x%02x" % (
            self.endpoint,
            (self.sb_address >> 8) & 0xFF,
            (self.sb_address >> 16) & 0xFF,
            self.bar,
            (self.sb_address >> 27) & 0x1F,
        )
        _log.info("att_sbb: %s", text)
        return text


class SidebandTarget(NamedTuple):
    """Where a sideband window sends an access."""

    endpoint: int
    bar: int
    offset: int


@dataclass
class AttRegisters:
    """The two register banks of the ATT and the decode they drive."""

    name: str = "att"
    windows: list[AttWindow] = field(
        default_factory=lambda: [AttWindow() for _ in range(WINDOW_COUNT)]
    )
    sb_windows: list[AttSidebandWindow] = field(
        default_factory=lambda: [AttSidebandWindow() for _ in range(WINDOW_COUNT)]
    )

    # -- BAR0: primary windows -------------------------------------------

    def prim_regs_read(self, addr: int, count: int) -> Optional[bytes]:
        """Read a primary window register; None for an unknown register."""
        if addr & 3:
            _log.error("%s: BAR0 Misaligned read 0x%08x %i", self.name, addr, count)
            return bytes(4)
        index, offset = divmod(addr, _STRIDE)
        name = _PRIM_FIELDS.get(offset)
        if name is None or not 0 <= index < WINDOW_COUNT:
            return None
        return getattr(self.windows[index], name).to_bytes(4, "little")

    def prim_regs_write(self, addr: int, data: bytes) -> bool:
        """Write a primary window register; False for an unknown register."""
        if addr & 3:
            _log.error("%s: BAR0 Misaligned write 0x%08x %i",
                       self.name, addr, len(data))
            return True
        index, offset = divmod(addr, _STRIDE)
        name = _PRIM_FIELDS.get(offset)
        if name is None or not 0 <= index < WINDOW_COUNT:
            return False
        setattr(self.windows[index], name, _word(data))
        return True

    # -- BAR1: sideband windows ------------------------------------------

    def sb_regs_read(self, addr: int, count: int) -> bytes:
        """Read a sideband window register."""
        if addr & 3:
            _log.error("%s: BAR1 Misaligned read 0x%08x %i", self.name, addr, count)
            return bytes(4)
        index, offset = divmod(addr, _STRIDE)
        if not 0 <= index < WINDOW_COUNT:
            _log.error("%s: BAR1 read beyond windows 0x%08x", self.name, addr)
            return bytes(4)
        value = getattr(self.sb_windows[index], _SB_FIELDS[offset])
        return value.to_bytes(4, "little")

    def sb_regs_write(self, addr: int, data: bytes) -> bool:
        """Write a sideband window register."""
        if addr & 3:
            _log.error("%s: BAR1 Misaligned write 0x%08x %i",
                       self.name, addr, len(data))
            return True
        index, offset = divmod(addr, _STRIDE)
        if not 0 <= index < WINDOW_COUNT:
            _log.error("%s: BAR1 write beyond windows 0x%08x", self.name, addr)
            return True
        setattr(self.sb_windows[index], _SB_FIELDS[offset], _word(data))
        return True

    # -- decode ----------------------------------------------------------

    def find_window(self, address: int) -> Optional[AttWindow]:
        """Return the first enabled primary window covering *address*."""
        return next(
            (
                w for w in self.windows
                if w.enabled and w.int_ba <= address <= w.int_ba + w.int_size
            ),
            None,
        )

    def find_sb_window(self, address: int) -> Optional[AttSidebandWindow]:
        """Return the first enabled sideband window covering *address*."""
        return next(
            (
                w for w in self.sb_windows
                if w.enabled
                and w.window_base <= address <= w.window_base + w.window_size
            ),
            None,
        )

    def translate(self, address: int) -> Optional[int]:
        """Map an internal address to its primary bus address, or None."""
        window = self.find_window(address)
        if window is None:
            return None
        return (window.ext_base + ((address - window.int_ba) & _MASK32)) & _MASK64

    def sideband_target(self, address: int) -> Optional[SidebandTarget]:
        """Map an internal address to a sideband endpoint access, or None."""
        window = self.find_sb_window(address)
        if window is None:
            return None
        return SidebandTarget(window.endpoint, window.bar, address - window.window_base)