from __future__ import annotations

import time

import pytest

from nginxdesk.utils.process import run_exec, run_with_deadline


@pytest.mark.asyncio
async def test_run_exec_captures_streams() -> None:
    code, out, err = await run_exec("sh", "-c", "echo out; echo err >&2; exit 3")
    assert code == 3
    assert out == "out\n"
    assert err == "err\n"


@pytest.mark.asyncio
async def test_run_exec_combined_output() -> None:
    code, out, err = await run_exec("sh", "-c", "echo a; echo b >&2", combine=True)
    assert code == 0
    assert "a" in out and "b" in out
    assert err == ""


@pytest.mark.asyncio
async def test_run_exec_timeout() -> None:
    code, _, err = await run_exec("sleep", "10", timeout=0.2)
    assert code == -1
    assert "timed out" in err


@pytest.mark.asyncio
async def test_run_exec_missing_binary() -> None:
    code, _, err = await run_exec("/nonexistent/binary-xyz")
    assert code == -1
    assert "not found" in err


@pytest.mark.asyncio
async def test_run_with_deadline_success() -> None:
    result = await run_with_deadline(["sh", "-c", "echo hello; echo oops >&2"], timeout=5)
    assert result.ok
    assert "hello" in result.output and "oops" in result.output


@pytest.mark.asyncio
async def test_run_with_deadline_preserves_partial_output() -> None:
    started = time.monotonic()
    result = await run_with_deadline(["sh", "-c", "echo before; sleep 20 & wait"], timeout=0.5)
    assert time.monotonic() - started < 10
    assert result.timed_out
    assert not result.ok
    assert "before" in result.output


@pytest.mark.asyncio
async def test_run_with_deadline_passes_environment() -> None:
    result = await run_with_deadline(["sh", "-c", 'echo "$MARKER"'], timeout=5, env={"MARKER": "m-1", "PATH": "/usr/bin:/bin"})
    assert result.output.strip() == "m-1"


@pytest.mark.asyncio
async def test_run_with_deadline_missing_binary() -> None:
    with pytest.raises(FileNotFoundError):
        await run_with_deadline(["/nonexistent/binary-xyz"], timeout=1)
