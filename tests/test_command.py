"""Tests for command library."""

import asyncio
import os
from pathlib import Path

import pytest

from flux_fleet.command import Command, run
from flux_fleet.exceptions import CommandException


async def test_command() -> None:
    """Test stdout parsing of a command."""
    result = await run(Command(["echo", "Hello"]))
    assert result == "Hello\n"


async def test_command_stdin() -> None:
    """Test passing input to a command."""
    result = await run(Command(["cat"]), stdin=b"Goodbye")
    assert result == "Goodbye"


async def test_failed_command() -> None:
    """Test a failing command."""
    with pytest.raises(CommandException, match="return code 1") as exc_info:
        await run(Command(["/bin/false"]))
    assert exc_info.value.returncode == 1


async def test_failed_command_stderr() -> None:
    """Test that stderr of a failing command is kept."""
    with pytest.raises(CommandException) as exc_info:
        await run(Command(["sh", "-c", "echo boom >&2; exit 3"]))
    assert exc_info.value.returncode == 3
    assert exc_info.value.stderr == "boom\n"


async def test_command_timeout() -> None:
    """Test a command that does not finish in time."""
    with pytest.raises(CommandException, match="timed out"):
        await run(Command(["sleep", "10"], timeout=0.1))


async def test_command_exception_type() -> None:
    """Test raising a specific exception type on failure."""

    class SleepError(CommandException):
        pass

    with pytest.raises(SleepError):
        await run(Command(["/bin/false"], exc=SleepError))


async def test_missing_binary(tmp_path: Path) -> None:
    """Test a command that cannot be started."""
    with pytest.raises(CommandException, match="could not be started"):
        await run(Command([str(tmp_path / "missing")]))


async def test_invalid_utf8_output() -> None:
    """Test a command printing bytes that are not utf-8."""
    with pytest.raises(CommandException, match="invalid utf-8"):
        await run(Command(["printf", "\\377\\376"]))


async def test_cancel_reaps_child(tmp_path: Path) -> None:
    """Test that cancelling a command kills and waits for the child."""
    pid_file = tmp_path / "pid"
    task = asyncio.create_task(
        run(Command(["sh", "-c", f"echo $$ > {pid_file}; exec sleep 10"]))
    )
    for _ in range(100):
        if pid_file.exists() and pid_file.read_text().strip():
            break
        await asyncio.sleep(0.01)
    pid = int(pid_file.read_text())

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    with pytest.raises(ChildProcessError):
        os.waitpid(pid, os.WNOHANG)
