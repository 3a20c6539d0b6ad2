"""Tests for ProcessRunner using real subprocesses."""

import asyncio
import os
import sys

import pytest

from plugin_installer import CommandFailure, ExecutionError
from plugin_installer.installer._process import ProcessRunner
from plugin_installer.protocols import Command


def py(code: str) -> Command:
    return Command(sys.executable, ("-c", code))


def run(runner, command, **kwargs):
    out: list[str] = []
    err: list[str] = []
    ok = asyncio.run(runner.run(command, on_stdout=out.append, on_stderr=err.append, **kwargs))
    return ok, out, err


def test_streams_stdout_and_stderr_lines():
    ok, out, err = run(
        ProcessRunner(),
        py("import sys; print('one'); print('two'); print('oops', file=sys.stderr)"),
    )
    assert ok
    assert out == ["one", "two"]
    assert err == ["oops"]


def test_non_zero_exit_is_false():
    ok, _, err = run(ProcessRunner(), py("import sys; print('bad', file=sys.stderr); sys.exit(3)"))
    assert not ok
    assert err == ["bad"]


def test_missing_executable_raises():
    with pytest.raises(ExecutionError) as exc:
        run(ProcessRunner(), Command("definitely-not-a-real-binary-xyz"))
    assert exc.value.command == Command("definitely-not-a-real-binary-xyz")


def test_runs_in_cwd_with_env(tmp_path):
    ok, out, _ = run(
        ProcessRunner(),
        py("import os; print(os.getcwd()); print(os.environ['NO_COLOR'])"),
        cwd=tmp_path,
        env={"NO_COLOR": "1"},
    )
    assert ok
    assert out == [str(tmp_path.resolve()), "1"]


def test_timeout_kills_command():
    ok, _, err = run(ProcessRunner(timeout=0.5), py("import time; time.sleep(30)"))
    assert not ok
    assert "timed out" in err[-1]


def test_capture_collects_stdout():
    runner = ProcessRunner()
    ok, lines = asyncio.run(runner.capture(py("print('a\\nb')"), on_stderr=lambda _: None))
    assert ok
    assert lines == ["a", "b"]


def test_check_output_raises_command_failure():
    runner = ProcessRunner()
    with pytest.raises(CommandFailure) as exc:
        asyncio.run(runner.check_output(py("import sys; print('nope', file=sys.stderr); sys.exit(2)")))
    assert exc.value.returncode == 2
    assert exc.value.stderr == "nope"


def test_check_output_returns_lines(tmp_path):
    lines = asyncio.run(ProcessRunner().check_output(py("print('x')"), cwd=tmp_path))
    assert lines == ["x"]


def test_line_longer_than_stream_limit_kept_whole():
    ok, out, _ = run(ProcessRunner(), py("import sys; sys.stdout.write('x' * 2_000_000 + '\\n')"))
    assert ok
    assert len(out) == 1
    assert len(out[0]) == 2_000_000


def test_final_line_without_newline():
    ok, out, _ = run(ProcessRunner(), py("import sys; sys.stdout.write('a\\nb')"))
    assert ok
    assert out == ["a", "b"]


def test_failing_sink_kills_the_command():
    pids: list[int] = []

    def reject(line):
        pids.append(int(line))
        raise RuntimeError("sink rejected output")

    code = "import os, time; print(os.getpid(), flush=True); time.sleep(30)"

    async def main():
        return await asyncio.wait_for(
            ProcessRunner().run(py(code), on_stdout=reject, on_stderr=lambda _: None), timeout=10
        )

    with pytest.raises(RuntimeError, match="sink rejected output"):
        asyncio.run(main())
    # the child was killed and reaped before the error propagated
    with pytest.raises(ProcessLookupError):
        os.kill(pids[0], 0)
