"""String matchers that recognise kernel frames in profiler output."""

from __future__ import annotations

_EXTRA_VMLINUX_CHARS = frozenset("-._")


def _is_vmlinux_char(c: str) -> bool:
    return (c.isascii() and c.isalnum()) or c in _EXTRA_VMLINUX_CHARS


def is_vmlinux(s: str) -> bool:
    """Whether ``s`` names a vmlinux image, with or without a version suffix.

    Examples that match::

        /usr/lib/debug/boot/vmlinux-5.4.14-cloudflare-2020.1.11
        /lib/modules/4.3.0-rc1-virtual/build/vmlinux
    """
    vm = s.rfind("vmlinux")
    if vm < 0:
        return False
    return all(_is_vmlinux_char(c) for c in s[vm:])


def is_kernel(s: str) -> bool:
    """Whether ``s`` is a kernel module name, module file or vmlinux image."""
    return (s.startswith("[") or s.endswith(".ko") or is_vmlinux(s)) and s != "[unknown]"