"""Build-time options for the test harness, read from C-style ``#define`` lines."""

from __future__ import annotations

import re
import struct
import sys
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

_VALID_WIDTHS = (16, 32, 64)
_FALLBACK_WIDTH = 32

_CONTINUATION = re.compile(r"\\\r?\n")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"//[^\n]*")
_DEFINE = re.compile(r"^\s*#\s*define\s+([A-Za-z_]\w*)(\([^)]*\))?(.*)$")
_UNDEF = re.compile(r"^\s*#\s*undef\s+([A-Za-z_]\w*)")


class ConfigError(ValueError):
    """Raised when a configuration value is malformed or out of range."""


def _native_width(code: str) -> int:
    return struct.calcsize(code) * 8


def _strip_parens(value: str) -> str:
    value = value.strip()
    while value.startswith("(") and value.endswith(")"):
        value = value[1:-1].strip()
    return value


def _parse_int(name: str, value: str) -> int:
    text = _strip_parens(value).rstrip("uUlL")
    try:
        return int(text, 0)
    except ValueError:
        raise ConfigError(f"{name}: expected an integer, got {value!r}") from None


def _parse_float(name: str, value: str) -> float:
    text = _strip_parens(value).rstrip("fFlL")
    try:
        return float(text)
    except ValueError:
        raise ConfigError(f"{name}: expected a number, got {value!r}") from None


def parse_defines(text: str) -> dict[str, str]:
    """Collect the active ``#define`` names and values from header text.

    Commented-out definitions are ignored, ``#undef`` removes an earlier
    definition, and function-like macros are recorded by name with their body
    as the value.
    """
    text = _CONTINUATION.sub(" ", text)
    text = _BLOCK_COMMENT.sub(" ", text)
    text = _LINE_COMMENT.sub("", text)
    defines: dict[str, str] = {}
    for line in text.splitlines():
        match = _DEFINE.match(line)
        if match:
            defines[match.group(1)] = match.group(3).strip()
            continue
        match = _UNDEF.match(line)
        if match:
            defines.pop(match.group(1), None)
    return defines


@dataclass
class UnityConfig:
    """Target description and output hooks used by the harness."""

    int_width: int = field(default_factory=lambda: _native_width("i"))
    long_width: int = field(default_factory=lambda: _native_width("l"))
    pointer_width: int = field(default_factory=lambda: _native_width("P"))
    include_64: bool = False
    exclude_float: bool = False
    include_double: bool = False
    exclude_double: bool = False
    exclude_float_print: bool = False
    float_precision: float = 0.00001
    double_precision: float = 1e-12
    float_type: str = "float"
    double_type: str = "double"
    include_print_formatted: bool = False
    include_exec_time: bool = False
    exclude_stdlib_malloc: bool = False
    internal_heap_size_bytes: int = 256
    ptr_attribute: str = ""
    output_char: Optional[Callable[[str], None]] = field(default=None, compare=False, repr=False)
    output_flush: Optional[Callable[[], None]] = field(default=None, compare=False, repr=False)
    output_start: Optional[Callable[[], None]] = field(default=None, compare=False, repr=False)
    output_complete: Optional[Callable[[], None]] = field(default=None, compare=False, repr=False)
    defines: dict = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        for name in ("int_width", "long_width", "pointer_width"):
            width = getattr(self, name)
            if width not in _VALID_WIDTHS:
                raise ConfigError(f"{name} must be one of {_VALID_WIDTHS}, got {width}")
        for name in ("float_precision", "double_precision"):
            if not getattr(self, name) > 0:
                raise ConfigError(f"{name} must be positive")
        if self.internal_heap_size_bytes <= 0:
            raise ConfigError("internal_heap_size_bytes must be positive")

    @classmethod
    def from_defines(cls, defines: Mapping[str, str]) -> "UnityConfig":
        """Build a configuration from a mapping of define names to values."""
        d = dict(defines)
        no_limits = "UNITY_EXCLUDE_LIMITS_H" in d
        no_stdint = "UNITY_EXCLUDE_STDINT_H" in d

        def width(name: str, code: str, probe_excluded: bool) -> int:
            if name in d:
                return _parse_int(name, d[name])
            return _FALLBACK_WIDTH if probe_excluded else _native_width(code)

        kwargs: dict = {
            "int_width": width("UNITY_INT_WIDTH", "i", no_limits),
            "long_width": width("UNITY_LONG_WIDTH", "l", no_limits),
            "pointer_width": width("UNITY_POINTER_WIDTH", "P", no_stdint),
            "include_64": "UNITY_INCLUDE_64" in d,
            "exclude_float": "UNITY_EXCLUDE_FLOAT" in d,
            "include_double": "UNITY_INCLUDE_DOUBLE" in d,
            "exclude_double": "UNITY_EXCLUDE_DOUBLE" in d,
            "exclude_float_print": "UNITY_EXCLUDE_FLOAT_PRINT" in d,
            "include_print_formatted": "UNITY_INCLUDE_PRINT_FORMATTED" in d,
            "include_exec_time": "UNITY_INCLUDE_EXEC_TIME" in d,
            "exclude_stdlib_malloc": "UNITY_EXCLUDE_STDLIB_MALLOC" in d,
            "defines": d,
        }
        if "UNITY_FLOAT_PRECISION" in d:
            kwargs["float_precision"] = _parse_float("UNITY_FLOAT_PRECISION", d["UNITY_FLOAT_PRECISION"])
        if "UNITY_DOUBLE_PRECISION" in d:
            kwargs["double_precision"] = _parse_float("UNITY_DOUBLE_PRECISION", d["UNITY_DOUBLE_PRECISION"])
        if "UNITY_INTERNAL_HEAP_SIZE_BYTES" in d:
            kwargs["internal_heap_size_bytes"] = _parse_int(
                "UNITY_INTERNAL_HEAP_SIZE_BYTES", d["UNITY_INTERNAL_HEAP_SIZE_BYTES"]
            )
        for key, name in (
            ("float_type", "UNITY_FLOAT_TYPE"),
            ("double_type", "UNITY_DOUBLE_TYPE"),
            ("ptr_attribute", "UNITY_PTR_ATTRIBUTE"),
        ):
            if d.get(name):
                kwargs[key] = d[name]
        return cls(**kwargs)

    def support_64(self) -> bool:
        """Whether 64-bit integer support is enabled."""
        return self.include_64 or max(self.int_width, self.long_width, self.pointer_width) > 32

    def float_enabled(self) -> bool:
        return not self.exclude_float

    def double_enabled(self) -> bool:
        return self.include_double and not self.exclude_double

    def malloc_alignment(self) -> int:
        """Byte alignment of guarded allocations: one pointer's width."""
        return self.pointer_width // 8

    def emit(self, text: str) -> None:
        """Send text to the output, one character at a time."""
        put = self.output_char or sys.stdout.write
        for ch in text:
            put(ch)

    def flush(self) -> None:
        if self.output_flush is not None:
            self.output_flush()
        else:
            sys.stdout.flush()

    def start(self) -> None:
        if self.output_start is not None:
            self.output_start()

    def complete(self) -> None:
        if self.output_complete is not None:
            self.output_complete()


def load_config(text: str) -> UnityConfig:
    """Read header text and build the configuration it describes."""
    return UnityConfig.from_defines(parse_defines(text))