"""
Line-oriented, sectioned key/value codec for the fleet configuration file.

The parser flattens ``[section]`` headers and ``key=value`` lines into a
case-insensitive map of dotted keys (``device.0.serial``). It is deliberately
lenient: lines that are neither a header nor an assignment are skipped, never
rejected. Only numeric conversion of a stored value is treated as an error.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

COMMENT_MARKERS = (";", "#")
TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


class ConfigError(RuntimeError):
    """Raised when the fleet configuration cannot be loaded or validated."""


class ConfigParseError(ConfigError):
    """A stored value could not be converted to the type of its field."""

    def __init__(self, key: str, value: str, expected: str) -> None:
        super().__init__(f"Invalid {expected} value for '{key}': {value!r}")
        self.key = key
        self.value = value
        self.expected = expected


def _strip_comment(line: str) -> str:
    for marker in COMMENT_MARKERS:
        pos = line.find(marker)
        if pos != -1:
            line = line[:pos]
    return line


class KeyMap(Mapping[str, str]):
    """Flat dotted-key view over a parsed configuration file."""

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries: dict[str, str] = {}
        for key, value in (entries or {}).items():
            self._entries[key.lower()] = value

    def __getitem__(self, key: str) -> str:
        return self._entries[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._entries

    def has(self, key: str) -> bool:
        return key in self

    def set(self, key: str, value: str) -> None:
        self._entries[key.lower()] = value

    def get_str(self, key: str, default: str = "") -> str:
        return self._entries.get(key.lower(), default)

    def get_int(self, key: str, default: int = 0) -> int:
        raw = self._entries.get(key.lower())
        if raw is None:
            return default
        text = raw.strip()
        try:
            return int(text)
        except ValueError:
            pass
        # Integral decimals such as "2.0" are accepted; fractions are not.
        try:
            number = float(text)
        except ValueError as exc:
            raise ConfigParseError(key, raw, "integer") from exc
        if not number.is_integer():
            raise ConfigParseError(key, raw, "integer")
        return int(number)

    def get_uint64(self, key: str, default: int = 0) -> int:
        """Unsigned read; negative stored values are clamped to zero."""
        return max(0, self.get_int(key, default))

    def get_float(self, key: str, default: float = 0.0) -> float:
        raw = self._entries.get(key.lower())
        if raw is None:
            return default
        try:
            return float(raw.strip())
        except ValueError as exc:
            raise ConfigParseError(key, raw, "number") from exc

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = self._entries.get(key.lower())
        if raw is None:
            return default
        return parse_bool(raw)

    def __repr__(self) -> str:
        return f"KeyMap({len(self._entries)} keys)"


def parse_bool(value: str) -> bool:
    return value.strip().lower() in TRUE_VALUES


def parse_text(text: str) -> KeyMap:
    """Parse configuration text into a :class:`KeyMap`."""

    keys = KeyMap()
    section = ""
    for line_num, raw_line in enumerate(text.splitlines(), 1):
        line = _strip_comment(raw_line).strip()
        if not line:
            continue

        if len(line) >= 3 and line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip().lower()
            continue

        if "=" not in line:
            logger.debug("Skipping malformed config line %d: %s", line_num, line)
            continue

        key, value = line.split("=", 1)
        key = key.strip().lower()
        full_key = f"{section}.{key}" if section else key
        keys.set(full_key, value.strip())
    return keys


def read_key_map(path: str | Path) -> KeyMap:
    """
    Read and parse the file at ``path``.

    Raises ``OSError`` when the file cannot be opened; callers decide on the
    fallback.
    """

    text = Path(path).read_text(encoding="utf-8", errors="replace")
    return parse_text(text)


def format_value(value: object) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        text = repr(value)
        if text.endswith(".0"):
            text = text[:-2]
        return text
    return str(value)


class IniWriter:
    """Accumulates sections in insertion order and renders them as text."""

    def __init__(self) -> None:
        self._lines: list[str] = []

    def section(self, name: str, items: list[tuple[str, object]]) -> None:
        self._lines.append(f"[{name}]")
        for key, value in items:
            self._lines.append(f"{key}={format_value(value)}")
        self._lines.append("")

    def render(self) -> str:
        return "\n".join(self._lines) + ("\n" if self._lines else "")


__all__ = [
    "COMMENT_MARKERS",
    "ConfigError",
    "ConfigParseError",
    "IniWriter",
    "KeyMap",
    "format_value",
    "parse_bool",
    "parse_text",
    "read_key_map",
]
