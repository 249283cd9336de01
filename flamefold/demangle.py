"""Repair Rust symbols that a profiler demangled only partially."""

from __future__ import annotations

import string

_RUST_HASH_LENGTH = 17
_HEX_DIGITS = frozenset(string.hexdigits)

# Escape sequences used by the legacy Rust mangling scheme, in match order.
_ESCAPES: tuple[tuple[str, str], ...] = (
    ("$SP$", "@"),
    ("$BP$", "*"),
    ("$RF$", "&"),
    ("$LT$", "<"),
    ("$GT$", ">"),
    ("$LP$", "("),
    ("$RP$", ")"),
    ("$C$", ","),
    ("$u7e$", "~"),
    ("$u20$", " "),
    ("$u27$", "'"),
    ("$u3d$", "="),
    ("$u5b$", "["),
    ("$u5d$", "]"),
    ("$u7b$", "{"),
    ("$u7d$", "}"),
    ("$u3b$", ";"),
    ("$u2b$", "+"),
    ("$u21$", "!"),
    ("$u22$", '"'),
)


def _is_rust_hash(s: str) -> bool:
    return s.startswith("h") and all(c in _HEX_DIGITS for c in s[1:])


def _next_special(rest: str) -> int:
    """Index of the first ``$`` or ``.`` in ``rest``, or its length."""
    positions = [i for i in (rest.find("$"), rest.find(".")) if i >= 0]
    return min(positions) if positions else len(rest)


def fix_partially_demangled_rust_symbol(symbol: str) -> str:
    """Demangle a Rust symbol left half-mangled by tools like ``sample`` or DTrace.

    For example ``_$LT$std..thread..JoinHandle$LT$T$GT$$GT$::join::hca6aa63e512626da``
    becomes ``<std::thread::JoinHandle<T>>::join``.  Symbols without a trailing
    Rust hash (non-Rust symbols, or ones already demangled) are returned unchanged.
    """
    if len(symbol) < _RUST_HASH_LENGTH or not _is_rust_hash(
        symbol[-_RUST_HASH_LENGTH:]
    ):
        return symbol

    rest = symbol[:-_RUST_HASH_LENGTH]
    if rest.endswith("::"):
        rest = rest[:-2]
    if rest.startswith("_$"):
        rest = rest[1:]

    parts: list[str] = []
    while rest:
        if rest.startswith("."):
            if rest[1:2] == ".":
                parts.append("::")
                rest = rest[2:]
            else:
                parts.append(".")
                rest = rest[1:]
        elif rest.startswith("$"):
            for pattern, replacement in _ESCAPES:
                if rest.startswith(pattern):
                    parts.append(replacement)
                    rest = rest[len(pattern):]
                    break
            else:
                parts.append(rest)
                break
        else:
            idx = _next_special(rest)
            parts.append(rest[:idx])
            rest = rest[idx:]

    return "".join(parts)