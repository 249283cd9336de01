"""Shared machinery for stack collapsers: occurrence counting and parallel folding."""

from __future__ import annotations

import abc
import io
import os
import queue
import sys
import threading
from pathlib import Path
from typing import BinaryIO, TextIO

DEFAULT_NSTACKS_PER_JOB = 100
"""How many complete stacks make up one chunk of work handed to a worker thread."""

_POLL_SECONDS = 0.05


def default_nthreads() -> int:
    """Number of threads used when none is requested: the usable logical CPUs."""
    try:
        return max(1, len(os.sched_getaffinity(0)))
    except (AttributeError, OSError):
        return os.cpu_count() or 1


class Occurrences:
    """Counts of folded stack strings, safe to share between threads when concurrent."""

    def __init__(self, nthreads: int) -> None:
        if nthreads == 0:
            raise ValueError("nthreads must not be zero")
        self._counts: dict[str, int] = {}
        self._lock: threading.Lock | None = threading.Lock() if nthreads > 1 else None

    def insert(self, key: str, count: int) -> int | None:
        """Set ``key`` to ``count``; return the previous count, or None if absent."""
        if self._lock is None:
            previous = self._counts.get(key)
            self._counts[key] = count
            return previous
        with self._lock:
            previous = self._counts.get(key)
            self._counts[key] = count
            return previous

    def insert_or_add(self, key: str, count: int) -> None:
        """Add ``count`` to the count of ``key``, starting from zero if absent."""
        if self._lock is None:
            self._counts[key] = self._counts.get(key, 0) + count
            return
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + count

    def is_concurrent(self) -> bool:
        """Whether this map is meant to be shared by several worker threads."""
        return self._lock is not None

    def write_and_clear(self, writer: TextIO) -> None:
        """Write ``"<stack> <count>"`` lines in sorted order, then empty the map."""
        contents = sorted(self._counts.items())
        self._counts = {}
        for key, value in contents:
            writer.write(f"{key} {value}\n")
        flush = getattr(writer, "flush", None)
        if flush is not None:
            flush()


class Collapser(abc.ABC):
    """Base class for collapsers that turn profiler output into folded stack lines.

    Subclasses parse one input format.  Readers are binary streams read line by
    line; writers are text streams.  ``nthreads`` greater than one folds the input
    in parallel, in chunks of ``nstacks_per_job`` complete stacks.
    """

    nthreads: int = 1
    nstacks_per_job: int = DEFAULT_NSTACKS_PER_JOB

    @abc.abstractmethod
    def pre_process(self, reader: BinaryIO, occurrences: Occurrences) -> None:
        """Consume any header and do up-front work before the body is folded."""

    @abc.abstractmethod
    def collapse_single_threaded(self, reader: BinaryIO, occurrences: Occurrences) -> None:
        """Fold every sample in ``reader`` into ``occurrences``.

        May be called repeatedly on chunks; on return the collapser must be back
        at the top-level context, outside any stack.
        """

    @abc.abstractmethod
    def would_end_stack(self, line: bytes) -> bool:
        """Whether ``line`` is the last line of a stack."""

    @abc.abstractmethod
    def clone_and_reset_stack_context(self) -> "Collapser":
        """A copy keeping options and caches but with empty per-stack state."""

    @abc.abstractmethod
    def is_applicable(self, input: str) -> bool | None:
        """True if this format fits ``input``, False if it cannot, None if unsure."""

    def collapse(self, reader: BinaryIO, writer: TextIO) -> None:
        """Fold the contents of ``reader`` and write folded stack lines to ``writer``."""
        occurrences = Occurrences(self.nthreads)
        self.pre_process(reader, occurrences)
        if occurrences.is_concurrent():
            self._collapse_multi_threaded(reader, occurrences)
        else:
            self.collapse_single_threaded(reader, occurrences)
        occurrences.write_and_clear(writer)

    def collapse_file(self, infile: str | os.PathLike[str] | None, writer: TextIO) -> None:
        """Fold the file at ``infile`` (standard input if None) into ``writer``."""
        if infile is None:
            self.collapse(sys.stdin.buffer, writer)
            return
        with Path(infile).open("rb") as reader:
            self.collapse(reader, writer)

    def collapse_file_to_stdout(self, infile: str | os.PathLike[str] | None) -> None:
        """Fold the file at ``infile`` (standard input if None) to standard output."""
        self.collapse_file(infile, sys.stdout)

    def _collapse_multi_threaded(self, reader: BinaryIO, occurrences: Occurrences) -> None:
        nstacks_per_job = self.nstacks_per_job
        nthreads = self.nthreads
        if nstacks_per_job == 0:
            raise ValueError("nstacks_per_job must not be zero")
        if nthreads <= 1 or not occurrences.is_concurrent():
            raise ValueError("parallel folding needs more than one thread")

        jobs: queue.Queue[bytes | None] = queue.Queue(maxsize=2 * nthreads)
        stop = threading.Event()
        errors: list[BaseException] = []
        errors_lock = threading.Lock()

        def work(folder: Collapser) -> None:
            while not stop.is_set():
                try:
                    chunk = jobs.get(timeout=_POLL_SECONDS)
                except queue.Empty:
                    continue
                if chunk is None:
                    return
                try:
                    folder.collapse_single_threaded(io.BytesIO(chunk), occurrences)
                except BaseException as exc:  # handed back to the main thread
                    with errors_lock:
                        errors.append(exc)
                    stop.set()
                    return

        def submit(item: bytes | None) -> bool:
            while not stop.is_set():
                try:
                    jobs.put(item, timeout=_POLL_SECONDS)
                    return True
                except queue.Full:
                    continue
            return False

        workers = [
            threading.Thread(target=work, args=(self.clone_and_reset_stack_context(),), daemon=True)
            for _ in range(nthreads)
        ]
        for worker in workers:
            worker.start()

        try:
            chunk: list[bytes] = []
            nstacks = 0
            for line in iter(reader.readline, b""):
                chunk.append(line)
                if self.would_end_stack(line):
                    nstacks += 1
                    if nstacks == nstacks_per_job:
                        if not submit(b"".join(chunk)):
                            break
                        chunk = []
                        nstacks = 0
            else:
                submit(b"".join(chunk))
            for _ in workers:
                if not submit(None):
                    break
        except BaseException:
            stop.set()
            raise
        finally:
            for worker in workers:
                worker.join()

        if errors:
            raise errors[0]