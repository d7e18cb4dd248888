"""Parser for the emulator's hierarchical configuration files.

The grammar is::

    file    := <name> '{' section (',' section)* '}'
    section := <type-name> (<name> | <string>) '{' (entry ';')+ '}'
    entry   := <name> '=' (<string> | <number> | <name>)

Numbers are character literals (``'a'``), decimal, octal (leading ``0``)
or hexadecimal (``0x``) integers, optionally negated, stored as unsigned
64-bit values.
"""

from __future__ import annotations

import logging
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

__all__ = [
    "ConfigError",
    "ConfigEntry",
    "ConfigSection",
    "ConfigFile",
    "parse_config",
    "load_config",
]

_log = logging.getLogger("melab.config")

_UINT64_MASK = (1 << 64) - 1
_WHITESPACE = " \t\n\v\f\r"
_LETTERS = frozenset(string.ascii_letters)
_DIGITS = frozenset(string.digits)
_NAME_CHARS = _LETTERS | _DIGITS | {"_"}
_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "'": "'",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
}


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


@dataclass(frozen=True)
class ConfigEntry:
    """A single ``name = value`` entry; the value is a string or an integer."""

    name: str
    value: Union[str, int]

    @property
    def is_string(self) -> bool:
        return isinstance(self.value, str)

    @property
    def is_int(self) -> bool:
        return isinstance(self.value, int)


@dataclass
class ConfigSection:
    """A typed, named block of entries."""

    type: str
    name: str
    entries: list[ConfigEntry] = field(default_factory=list)

    def find_entry(self, name: str) -> Optional[ConfigEntry]:
        """Return the first entry called *name*, or None."""
        return next((e for e in self.entries if e.name == name), None)

    def find_string(self, name: str) -> Optional[str]:
        """Return the string value of *name*, or None if absent or not a string."""
        entry = self.find_entry(name)
        if entry is None or not entry.is_string:
            return None
        return entry.value  # type: ignore[return-value]

    def find_int(self, name: str, bits: int = 64) -> Optional[int]:
        """Return the integer value of *name* truncated to *bits* bits.

        Returns None if the entry is absent or not an integer.
        """
        entry = self.find_entry(name)
        if entry is None or not entry.is_int:
            return None
        return entry.value & ((1 << bits) - 1)  # type: ignore[operator]


@dataclass
class ConfigFile:
    """A parsed configuration file: a name and an ordered list of sections."""

    name: str
    sections: list[ConfigSection] = field(default_factory=list)

    def find_section(self, name: str) -> Optional[ConfigSection]:
        """Return the first section whose name is *name*, or None."""
        return next((s for s in self.sections if s.name == name), None)


class _Parser:
    def __init__(self, text: str, path: str) -> None:
        self.text = text
        self.path = path
        self.pos = 0

    # -- low level -------------------------------------------------------

    def _error(self, message: str) -> ConfigError:
        line = self.text.count("\n", 0, self.pos) + 1
        col = self.pos - (self.text.rfind("\n", 0, self.pos) + 1)
        return ConfigError(f"{self.path}:{line} col {col}: {message}")

    def _peek(self) -> Optional[str]:
        return self.text[self.pos] if self.pos < len(self.text) else None

    def _next(self) -> str:
        ch = self._peek()
        if ch is None:
            raise self._error("Unexpected EOF")
        self.pos += 1
        return ch

    def _unget(self) -> None:
        self.pos -= 1

    def _expect(self, expected: str) -> None:
        ch = self._next()
        if ch != expected:
            raise self._error(f"Expected {expected}, got {ch}")

    def _accept(self, expected: str) -> bool:
        if self._next() != expected:
            self._unget()
            return False
        return True

    def _skip_whitespace(self) -> None:
        while (ch := self._peek()) is not None and ch in _WHITESPACE:
            self.pos += 1

    def _escape(self, ch: str) -> str:
        try:
            return _ESCAPES[ch]
        except KeyError:
            raise self._error(f"Unknown escape \\{ch}") from None

    # -- tokens ----------------------------------------------------------

    def _string(self) -> Optional[str]:
        if self._peek() != '"':
            return None
        self.pos += 1
        chars = []
        while (ch := self._next()) != '"':
            chars.append(self._escape(self._next()) if ch == "\\" else ch)
        return "".join(chars)

    def _name(self) -> Optional[str]:
        if self._peek() not in _LETTERS:
            return None
        start = self.pos
        while (ch := self._peek()) is not None and ch in _NAME_CHARS:
            self.pos += 1
        return self.text[start:self.pos]

    def _char_literal(self) -> Optional[int]:
        if self._peek() != "'":
            return None
        self.pos += 1
        ch = self._next()
        if ch == "\\":
            ch = self._escape(self._next())
        self._expect("'")
        return ord(ch)

    @staticmethod
    def _digit(ch: str) -> int:
        try:
            return int(ch, 16)
        except ValueError:
            return -1

    def _int(self) -> Optional[int]:
        ch = self._peek()
        if ch is None or (ch != "-" and ch not in _DIGITS):
            return None
        self.pos += 1
        negative = False
        value = 0
        if ch == "-":
            ch = self._next()
            if ch not in _DIGITS:
                raise self._error(f"Unexpected character {ch} in integer literal")
            negative = True

        radix = 10
        if ch == "0":
            ch = self._next()
            if ch in "xX":
                radix = 16
                ch = self._next()
                if self._digit(ch) < 0:
                    raise self._error(
                        f"Unexpected character {ch} in integer literal"
                    )
            elif ch not in _DIGITS:
                radix = 0
            else:
                radix = 8

        if radix:
            while 0 <= (digit := self._digit(ch)) < radix:
                value = value * radix + digit
                ch = self._next()

        self._unget()
        if negative:
            value = -value
        return value & _UINT64_MASK

    def _number(self) -> Optional[int]:
        ch = self._char_literal()
        if ch is not None:
            if 0 < ch < 256:
                return ch
            raise self._error("Character literal out of range")
        return self._int()

    # -- structure -------------------------------------------------------

    def _entry(self) -> Optional[ConfigEntry]:
        self._skip_whitespace()
        name = self._name()
        if name is None:
            return None
        self._skip_whitespace()
        self._expect("=")
        self._skip_whitespace()
        value: Union[str, int, None] = self._string()
        if value is None:
            value = self._number()
        if value is None:
            value = self._name()
        if value is None:
            raise self._error("Expected a valid rvalue")
        return ConfigEntry(name, value)

    def _section(self) -> Optional[ConfigSection]:
        self._skip_whitespace()
        section_type = self._name()
        if section_type is None:
            return None
        self._skip_whitespace()
        name = self._name()
        if name is None:
            name = self._string()
        if name is None:
            raise self._error("Expected a valid name")
        self._skip_whitespace()
        self._expect("{")
        section = ConfigSection(section_type, name)
        while True:
            entry = self._entry()
            if entry is None:
                raise self._error("Expected a valid entry")
            section.entries.append(entry)
            self._skip_whitespace()
            if not self._accept(";"):
                raise self._error("Expected a ;")
            self._skip_whitespace()
            if self._accept("}"):
                return section

    def parse_file(self) -> Optional[ConfigFile]:
        self._skip_whitespace()
        name = self._name()
        if name is None:
            return None
        self._skip_whitespace()
        self._expect("{")
        config = ConfigFile(name)
        while True:
            section = self._section()
            if section is None:
                raise self._error("Expected a valid section")
            config.sections.append(section)
            self._skip_whitespace()
            if self._accept("}"):
                return config
            if not self._accept(","):
                raise self._error("Expected a ,")


def parse_config(text: str, path: str = "<string>") -> ConfigFile:
    """Parse configuration *text*; *path* is used in error messages.

    Include sections are kept as they are; see :func:`load_config`.
    """
    config = _Parser(text, path).parse_file()
    if config is None:
        raise ConfigError(f"Could not parse config file {path}")
    return config


def load_config(path: Union[str, Path]) -> ConfigFile:
    """Load a configuration file, expanding ``include`` sections.

    Every string entry of a section of type ``include`` names another file,
    whose sections are inserted after the include section, in entry order.
    """
    path_str = str(path)
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(
            f"Could not open config file {path_str}: {exc.strerror}"
        ) from exc

    config = parse_config(text, path_str)
    sections: list[ConfigSection] = []
    for section in config.sections:
        sections.append(section)
        if section.type != "include":
            continue
        for entry in section.entries:
            if not entry.is_string:
                _log.warning(
                    "Ignored non-string field %s in include section of file %s",
                    entry.name,
                    config.name,
                )
                continue
            sections.extend(load_config(entry.value).sections)  # type: ignore[arg-type]
    config.sections = sections
    return config