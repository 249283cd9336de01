"""Collapse DTrace stack traces into folded stack lines for flame graphs."""

__version__ = "0.1.0"
__all__ = ["collapse", "demangle", "dtrace", "matcher", "cli_dtrace"]