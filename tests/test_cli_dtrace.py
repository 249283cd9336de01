import io
import sys

import pytest

from flamefold.cli_dtrace import main
from flamefold.dtrace import Folder, Options

SAMPLE = (
    b"CPU     ID                    FUNCTION:NAME\n"
    b"  0  64091                        :tick-60s\n"
    b"\n"
    b"\n"
    b"              libc.so.1`_lwp_park+0x8\n"
    b"              libc.so.1`cond_wait_queue+0x4c\n"
    b"              mysqld`_Z10end_threadP3THDb+0x1d\n"
    b"                1\n"
    b"\n"
    b"              unix`tsc_gethrtimeunscaled+0x21\n"
    b"              genunix`gethrtime_unscaled+0xa\n"
    b"                5\n"
)


def library_fold(data: bytes, **opts) -> str:
    out = io.StringIO()
    Folder(Options(nthreads=1, **opts)).collapse(io.BytesIO(data), out)
    return out.getvalue()


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "stacks.txt"
    path.write_bytes(SAMPLE)
    return path


def test_folds_file_to_stdout(sample_file, capsys):
    assert main([str(sample_file), "-n", "1"]) == 0
    out = capsys.readouterr().out
    assert out == library_fold(SAMPLE)
    assert out.splitlines()[0] == "genunix`gethrtime_unscaled;unix`tsc_gethrtimeunscaled 5"


def test_includeoffset_flag(sample_file, capsys):
    assert main(["--includeoffset", "-n", "1", str(sample_file)]) == 0
    assert capsys.readouterr().out == library_fold(SAMPLE, includeoffset=True)


def test_thread_count_does_not_change_output(sample_file, capsys):
    assert main(["-n", "1", str(sample_file)]) == 0
    single = capsys.readouterr().out
    assert main(["-n", "4", str(sample_file)]) == 0
    assert capsys.readouterr().out == single


def test_reads_stdin_when_no_path(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(SAMPLE)))
    assert main(["-n", "1"]) == 0
    assert capsys.readouterr().out == library_fold(SAMPLE)


def test_missing_file_reports_error(tmp_path, capsys):
    assert main([str(tmp_path / "absent.txt")]) == 1
    assert capsys.readouterr().err.startswith("Error:")


def test_truncated_stack_reports_error(tmp_path, capsys):
    path = tmp_path / "bad.txt"
    path.write_bytes(b"header\n\nfoo`bar+0x1\n")
    assert main(["-n", "1", str(path)]) == 1
    assert "Input data ends in the middle of a stack." in capsys.readouterr().err


def test_invalid_thread_count_is_rejected(sample_file):
    with pytest.raises(SystemExit) as excinfo:
        main(["-n", "many", str(sample_file)])
    assert excinfo.value.code == 2


def test_header_only_warns(tmp_path, capsys, caplog):
    path = tmp_path / "header.txt"
    path.write_bytes(b"CPU     ID                    FUNCTION:NAME\n")
    assert main(["-n", "1", str(path)]) == 0
    assert capsys.readouterr().out == ""
    assert "File ended while skipping headers" in caplog.text


def test_quiet_silences_warning(tmp_path, capsys, caplog):
    path = tmp_path / "header.txt"
    path.write_bytes(b"CPU     ID                    FUNCTION:NAME\n")
    assert main(["-q", "-n", "1", str(path)]) == 0
    assert capsys.readouterr().out == ""
    assert "File ended while skipping headers" not in caplog.text
    assert main(["-n", "1", str(path)]) == 0
    assert "File ended while skipping headers" in caplog.text