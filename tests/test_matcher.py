import pytest

from flamefold.matcher import is_kernel, is_vmlinux


@pytest.mark.parametrize(
    "s",
    [
        "vmlinux",
        "vmlinux-5",
        "vmlinux-54",
        "vmlinux_54",
        "vmlinux-vmlinux",
        "vmlinux-5.4.14",
        "vmlinux-54-2020",
        "vmlinux-cloudflare",
        "vmlinux_cloudflare",
        "vmlinux-cloudflare-2020.1.11",
        "vmlinux-5.4.14-cloudflare-2020.1.11",
        "/usr/lib/debug/boot/vmlinux",
        "/usr/lib/debug/boot/vmlinux-5.4.14-cloudflare-2020.1.11",
    ],
)
def test_is_vmlinux_true(s):
    assert is_vmlinux(s) is True


@pytest.mark.parametrize(
    "s",
    [
        "vmlinux/",
        "vmlinux ",
        "vmlinux+5",
        "vmlinux,54",
        "vmlinux\\5.4.14",
        "vmlinux-Тест",
        "vmlinux-cloudflare ",
        "vmlinux-5.4.14-cloudflare-2020.1.11)",
        "/usr/lib/debug/boot/vmlinu",
        "/usr/lib/debug/boot/vmlinu-5.4.14-cloudflare-2020.1.11",
    ],
)
def test_is_vmlinux_false(s):
    assert is_vmlinux(s) is False


@pytest.mark.parametrize(
    "s",
    [
        "[",
        "[vmlinux",
        "[test",
        "[test]",
        ".ko",
        "module.ko",
        "vmlinux.ko",
        "vmlinux",
        " [vmlinux",
        "vmlinux-5.4.14-cloudflare-2020.1.11",
        "/usr/lib/debug/boot/vmlinux-5.4.14-cloudflare-2020.1.11",
    ],
)
def test_is_kernel_true(s):
    assert is_kernel(s) is True


@pytest.mark.parametrize(
    "s",
    [
        "[unknown]",
        " [",
        ".ko ",
        " [.ko ",
        "vmlinux-cloudflare ",
        "vmlinux-5.4.14-cloudflare-2020.1.11)",
        "/usr/lib/debug/boot/vmlinu",
        "/usr/lib/debug/boot/vmlinu-5.4.14-cloudflare-2020.1.11",
    ],
)
def test_is_kernel_false(s):
    assert is_kernel(s) is False


def test_is_vmlinux_uses_last_occurrence():
    assert is_vmlinux("vmlinux /x/vmlinux-1") is True
    assert is_vmlinux("vmlinux-1 /x/vmlinux ") is False