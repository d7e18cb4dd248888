"""Emulated peripherals: config parsing, device registry, hash, AES, DMA, key store and address translation."""

__version__ = "0.1.0"