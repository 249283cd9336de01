"""Collapse DTrace ``ustack()`` aggregation output into folded stacks."""

from __future__ import annotations

import io
import logging
import string
from collections import deque
from dataclasses import dataclass, field, replace
from typing import BinaryIO, NamedTuple

from .collapse import DEFAULT_NSTACKS_PER_JOB, Collapser, Occurrences, default_nthreads
from .demangle import fix_partially_demangled_rust_symbol

_log = logging.getLogger(__name__)

_USIZE_MAX = 2**64 - 1

# Characters with the Unicode White_Space property, trimmed from every line.
_WHITESPACE = (
    "\t\n\x0b\x0c\r \x85\xa0\u1680"
    "\u2000\u2001\u2002\u2003\u2004\u2005\u2006\u2007\u2008\u2009\u200a"
    "\u2028\u2029\u202f\u205f\u3000"
)
# The same property restricted to single bytes read as Latin-1 characters.
_WHITESPACE_BYTES = frozenset(b"\t\n\x0b\x0c\r \x85\xa0")
_DIGIT_BYTES = frozenset(b"0123456789")
_DIGITS = {10: frozenset(string.digits), 16: frozenset(string.hexdigits)}


def _parse_unsigned(text: str, base: int) -> int | None:
    """Parse an unsigned 64-bit integer, or return None if ``text`` is not one."""
    digits = text[1:] if text.startswith("+") else text
    if not digits or not all(c in _DIGITS[base] for c in digits):
        return None
    value = int(digits, base)
    return value if value <= _USIZE_MAX else None


class _StrippedFrame(NamedTuple):
    has_inlines: bool
    could_be_cpp: bool
    has_semicolon: bool
    frame: str


def uncpp(probe: str) -> str:
    """Drop C++ argument lists and trailing template noise after the first ``::`` scope."""
    scope = probe.find("::")
    if scope < 0:
        return probe
    tail = probe[scope + 2:]
    cut = max(tail.rfind("("), tail.rfind("<"))
    if cut < 0:
        return probe
    return probe[: scope + 2 + cut]


def remove_offset(line: str) -> _StrippedFrame:
    """Strip the ``+offset`` suffix and report which special markers the line holds."""
    has_inlines = could_be_cpp = has_semicolon = False
    last_offset = len(line)
    previous = ""
    for offset, c in enumerate(line):
        if c == ">" and previous == "-":
            has_inlines = True
        elif c == ":" and previous == ":":
            could_be_cpp = True
        elif c == ";":
            has_semicolon = True
        elif c == "+":
            last_offset = offset
        previous = c
    return _StrippedFrame(has_inlines, could_be_cpp, has_semicolon, line[:last_offset])


@dataclass
class Options:
    """Configuration of the DTrace collapser."""

    includeoffset: bool = False
    """Keep function offsets on every frame except the leaf."""
    nthreads: int = field(default_factory=default_nthreads)
    """Number of worker threads; zero is treated as one."""


class Folder(Collapser):
    """Stack collapser for the output of DTrace ``ustack()`` aggregations."""

    def __init__(self, options: Options | None = None) -> None:
        opt = replace(options) if options is not None else Options()
        if opt.nthreads == 0:
            opt.nthreads = 1
        self.opt = opt
        self.nstacks_per_job = DEFAULT_NSTACKS_PER_JOB
        self._cache_inlines: list[str] = []
        self._stack: deque[str] = deque()
        self._stack_str_size = 0

    @property
    def nthreads(self) -> int:  # type: ignore[override]
        """Number of worker threads used for folding."""
        return self.opt.nthreads

    @nthreads.setter
    def nthreads(self, value: int) -> None:
        self.opt.nthreads = value

    def pre_process(self, reader: BinaryIO, occurrences: Occurrences) -> None:
        """Skip the header, up to and including the first blank line."""
        for raw in iter(reader.readline, b""):
            if not raw.decode("utf-8", "replace").strip(_WHITESPACE):
                return
        _log.warning("File ended while skipping headers")

    def collapse_single_threaded(self, reader: BinaryIO, occurrences: Occurrences) -> None:
        """Fold every stack in ``reader``; raise ValueError if input ends inside a stack."""
        for raw in iter(reader.readline, b""):
            line = raw.decode("utf-8", "replace").strip(_WHITESPACE)
            if not line:
                continue
            count = _parse_unsigned(line, 10)
            if count is not None:
                self._on_stack_end(count, occurrences)
            else:
                self._on_stack_line(line)
        if self._stack or self._stack_str_size:
            self._reset_stack()
            raise ValueError("Input data ends in the middle of a stack.")

    def is_applicable(self, input: str) -> bool | None:
        """Whether ``input`` looks like DTrace stack output; None if undecided."""
        found_empty_line = False
        found_stack_line = False
        for raw in io.StringIO(input):
            line = raw.strip(_WHITESPACE)
            if not line:
                found_empty_line = True
            elif found_empty_line:
                if _parse_unsigned(line, 10) is not None:
                    return found_stack_line
                if "`" in line or (
                    line.startswith("0x") and _parse_unsigned(line[2:], 16) is not None
                ):
                    found_stack_line = True
                else:
                    return False
        return None

    def would_end_stack(self, line: bytes) -> bool:
        """Whether ``line`` is a count line (digits framed by whitespace) or blank."""
        state = "start"
        for b in line:
            if state == "start":
                if b in _WHITESPACE_BYTES:
                    continue
                if b in _DIGIT_BYTES:
                    state = "middle"
                else:
                    return False
            elif state == "middle":
                if b in _DIGIT_BYTES:
                    continue
                if b in _WHITESPACE_BYTES:
                    state = "end"
                else:
                    return False
            elif b not in _WHITESPACE_BYTES:
                return False
        return True

    def clone_and_reset_stack_context(self) -> Folder:
        """A copy with the same options and cache but an empty stack."""
        clone = Folder(self.opt)
        clone.nstacks_per_job = self.nstacks_per_job
        clone._cache_inlines = list(self._cache_inlines)
        return clone

    def _reset_stack(self) -> None:
        self._stack.clear()
        self._stack_str_size = 0

    def _fix_rust_symbol(self, frame: str) -> str:
        pname, sep, func = frame.partition("`")
        if not sep:
            return frame
        if self.opt.includeoffset:
            name, plus, offset = func.rpartition("+")
            if plus:
                trimmed = name.rstrip(_WHITESPACE)
                fixed = fix_partially_demangled_rust_symbol(trimmed)
                if fixed != trimmed:
                    return f"{pname}`{fixed}+{offset}"
                return frame
        trimmed = func.rstrip(_WHITESPACE)
        fixed = fix_partially_demangled_rust_symbol(trimmed)
        if fixed != trimmed:
            return f"{pname}`{fixed}"
        return frame

    def _on_stack_line(self, line: str) -> None:
        if self.opt.includeoffset:
            has_inlines, could_be_cpp, has_semicolon, frame = True, True, True, line
        else:
            has_inlines, could_be_cpp, has_semicolon, frame = remove_offset(line)

        if could_be_cpp:
            frame = uncpp(frame)

        frame = self._fix_rust_symbol(frame) if frame else "-"

        if has_inlines:
            inline = False
            for part in frame.split("->"):
                func = part.lstrip("L")
                if has_semicolon:
                    func = func.replace(";", ":")
                if inline:
                    func += "_[i]"
                inline = True
                self._stack_str_size += len(func) + 1
                self._cache_inlines.append(func)
            self._stack.extendleft(reversed(self._cache_inlines))
            self._cache_inlines.clear()
        elif has_semicolon:
            self._stack.appendleft(frame.replace(";", ":"))
        else:
            self._stack.appendleft(frame)

    def _on_stack_end(self, count: int, occurrences: Occurrences) -> None:
        entries = list(self._stack)
        if self.opt.includeoffset and entries:
            entries[-1] = remove_offset(entries[-1]).frame
        occurrences.insert_or_add(";".join(entries), count)
        self._reset_stack()