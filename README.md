# melab

Building blocks for emulating a small set of on-chip peripherals in Python:
a configuration parser, a device registry, and register-level models of a
hash unit, an AES unit stub, a DMA engine, a secure key store and an address
translation table. It has no dependencies outside the standard library.

## Modules

- `melab.cfgparser`: parser for the nested configuration format

  ```
  name { type name { key = value; ... }, type name { ... } }
  ```

  Values are strings (`"..."` with `\n \r \t \b \" \' \\` escapes), bare
  names, character literals (`'a'`) or integers (decimal, octal with a
  leading `0`, hexadecimal with `0x`, optionally negative), stored as
  unsigned 64-bit values. `parse_config(text, path)` parses text;
  `load_config(path)` reads a file and, for each section of type `include`,
  loads every string entry as another file and inserts its sections right
  after the include section. Look-ups: `ConfigFile.find_section`,
  `ConfigSection.find_entry`, `ConfigSection.find_string` and
  `ConfigSection.find_int(name, bits)`, which truncates to `bits` bits.
  Problems raise `ConfigError` with the file, line and column.
- `melab.devreg`: `DeviceRegistry` holds `DeviceType` objects (a name and a
  spawn callable) and `DeviceInstance` objects. `initialize_devices(config)`
  calls the spawn function of the named type for every section of type
  `device`, in order, and returns what they returned. Duplicate names,
  missing `type` fields and unknown types raise `DeviceRegistryError`.
- `melab.sha256`: the SHA-256 compression function over big-endian byte
  states: `sha256_init_state()` and `sha256_transform(state, block)`.
- `melab.gpdma`: `GpDma`, the DMA register block at offsets `0x400`–`0x4FF`
  (`GpDmaReg`). Setting bit 31 of the control register runs a transfer in
  64-byte chunks; an address of zero selects the owning unit's internal
  buffer instead of the bus callbacks.
- `melab.hash_engine`: `HashEngine`, a SHA-256 and HMAC-SHA-256 unit
  driven through its registers (`HashReg`, `HashMode`, `HashCommand`).
  Other algorithms are logged as unimplemented.
- `melab.aes_engine`: `AesEngine`, a register stub. Reads of offset `0x5C`
  return 2, everything else reads as zero; writes are logged. It accepts keys
  through `load_key` and produces no output unless `output` is set.
- `melab.sks`: `SecureKeyStore` with 11 16-byte and 11 32-byte `KeySlot`s.
  Commands load a slot from the CPU data buffer or from the hash or AES
  unit's result, or push a slot's key into one of them. Key data cannot be
  read back through the registers.
- `melab.att`: `AttRegisters` with 128 primary windows (`AttWindow`) and 128
  sideband windows (`AttSidebandWindow`), their register banks
  (`prim_regs_read/write`, `sb_regs_read/write`), and the decode:
  `find_window`, `find_sb_window`, `translate(address)` for the primary bus
  address and `sideband_target(address)` for a `SidebandTarget`
  (endpoint, BAR, offset).

All modules report through the standard `logging` module under `melab.*`
logger names.

## Examples

```python
from melab.cfgparser import parse_config

cfg = parse_config(
    'system { device ocs0 { type = "ocs"; sai = 0x12; } }',
    "inline",
)
section = cfg.find_section("ocs0")
print(section.find_string("type"), section.find_int("sai", 32))  # ocs 18
```

```python
from melab.hash_engine import HashEngine, HashCommand, HashMode, HashReg

engine = HashEngine("ocs0")           # named "ocs0_hcu"
engine.write(HashReg.MODE, int(HashMode.ALGO_SHA256).to_bytes(4, "little"))
engine.write(HashReg.CMD, int(HashCommand.START_DATA).to_bytes(4, "little"))
engine.write(HashReg.DATA, b"abc")
engine.write(HashReg.CMD, int(HashCommand.FLUSH_DATA).to_bytes(4, "little"))
print(engine.get_result(32).hex())    # SHA-256 of b"abc"
```

## What it does not do

This is a library of parts, not a running emulator. It has no command-line
program, no CPU model and no PCI bus or sideband fabric: `AttRegisters`
computes where an access would go but does not perform it, and `GpDma`
moves data only through the callbacks it is given. The AES unit performs no
encryption.

## Testing

```
pip install -e .[test]
pytest
```