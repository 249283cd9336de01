# flamefold

Turn DTrace stack traces into *folded* stack lines, the one-line-per-stack
format that flame graph renderers read:

```
unix`sys_syscall;genunix`syscall_mstate 12
```

Each line is a semicolon-separated stack, from the root frame to the leaf,
followed by a space and the number of samples counted for that stack. The
lines are written in sorted order.

## Installation

```
pip install .
```

## Command line

`flamefold-collapse-dtrace` reads the output of a DTrace `ustack()`
aggregation, for example one produced by:

```
dtrace -x ustackframes=100 -n 'profile-97 /pid == 12345 && arg1/ { @[ustack()] = count(); } tick-60s { exit(0); }'
```

Collapse a saved file, or standard input when no path is given:

```
flamefold-collapse-dtrace out.stacks > out.folded
cat out.stacks | flamefold-collapse-dtrace > out.folded
```

Options:

- `--includeoffset` — keep function offsets (`+0x1a`) on every frame except the leaf
- `-n`, `--nthreads UINT` — number of worker threads (defaults to the number of
  usable CPUs; `0` is treated as `1`)
- `-q`, `--quiet` — silence log output
- `-v`, `--verbose` — more log output (`-v` info, `-vv` debug)

If the file cannot be read, or the input ends in the middle of a stack, the
command prints `Error: ...` to standard error and exits with status 1.

## Library use

```python
import io
from flamefold.dtrace import Folder, Options

text = b"""CPU     ID                    FUNCTION:NAME

              genunix`cv_broadcast+0x1
              unix`sys_syscall+0x10e
                3
"""

out = io.StringIO()
Folder(Options(nthreads=1)).collapse(io.BytesIO(text), out)
print(out.getvalue())   # unix`sys_syscall;genunix`cv_broadcast 3
```

Readers are binary streams; writers are text streams. Everything up to and
including the first blank line is treated as a header and skipped. A
`ValueError` is raised if the input ends inside a stack.

`Folder` also offers `collapse_file(path, writer)` (standard input when `path`
is `None`) and `collapse_file_to_stdout(path)`. With `nthreads` greater than
one, input is split into chunks of complete stacks (`nstacks_per_job`, 100 by
default) and folded by worker threads; the output is the same as with one
thread.

`Folder.is_applicable(text)` reports whether a piece of input looks like DTrace
output: `True`, `False`, or `None` when more input is needed to decide.

Other pieces:

- `flamefold.collapse.Collapser` is the abstract base for collapsers, and
  `flamefold.collapse.Occurrences` the map of folded stacks to counts.
- `flamefold.demangle.fix_partially_demangled_rust_symbol` repairs Rust symbols
  that a profiler demangled only halfway, dropping the trailing hash.
- `flamefold.matcher.is_kernel` and `flamefold.matcher.is_vmlinux` recognise
  kernel modules and kernel images by name.
- `flamefold.dtrace.uncpp` and `flamefold.dtrace.remove_offset` are the frame
  clean-up helpers the DTrace collapser uses.

## What it does not do

flamefold only produces folded stack lines. It does not draw flame graphs
(no SVG output), does not compare two profiles, and reads only DTrace
`ustack()` output — there are no collapsers for `perf`, `sample`, VTune or
other profilers, and no automatic detection of the input format.