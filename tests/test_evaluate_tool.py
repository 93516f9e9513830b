"""Tests for the execute_python tool."""

import asyncio
import sys

import pytest

from multitool.tools.evaluate import (
    NO_OUTPUT_SENTINEL,
    EvaluateTool,
    format_output,
)


async def _run(code: str):
    return await EvaluateTool().execute({"code": code})


async def test_captures_printed_output() -> None:
    result = await _run("print('hello')\nx = 1")

    assert result.ok
    assert result.payload == "Console Output:\nhello\n"


async def test_returns_last_expression_value() -> None:
    result = await _run("x = 6\nx * 7")

    assert result.payload == "Return Value:\n42"


async def test_output_and_value_are_joined() -> None:
    result = await _run("print('a')\n[1, 2]")

    assert result.payload == "Console Output:\na\n\n\nReturn Value:\n[\n  1,\n  2\n]"


async def test_no_output_sentinel() -> None:
    result = await _run("x = 1")

    assert result.payload == NO_OUTPUT_SENTINEL


def test_none_value_counts_as_no_value() -> None:
    assert format_output("", None) == NO_OUTPUT_SENTINEL


async def test_fault_is_reported_as_failure() -> None:
    result = await _run("print('before')\n1 / 0")

    assert result.is_error
    assert result.error_kind == "EvaluationFault"
    assert result.error == "Python execution error: ZeroDivisionError: division by zero"


async def test_syntax_error_is_reported_as_failure() -> None:
    result = await _run("def broken(:")

    assert result.is_error
    assert "SyntaxError" in result.error


async def test_system_exit_is_contained() -> None:
    result = await _run("import sys\nsys.exit(3)")

    assert result.is_error
    assert "SystemExit" in result.error


async def test_base_exception_subclass_is_contained() -> None:
    result = await _run("class Stop(BaseException):\n    pass\nraise Stop('halt')")

    assert result.is_error
    assert result.error == "Python execution error: Stop: halt"


async def test_keyboard_interrupt_is_contained() -> None:
    result = await _run("raise KeyboardInterrupt('stop')")

    assert result.is_error
    assert "KeyboardInterrupt" in result.error


async def test_cancelled_error_propagates() -> None:
    with pytest.raises(asyncio.CancelledError):
        await _run("import asyncio\nraise asyncio.CancelledError()")


async def test_streams_restored_after_fault() -> None:
    stdout, stderr = sys.stdout, sys.stderr

    await _run("import sys\nprint('x', file=sys.stderr)\nraise ValueError('nope')")

    assert sys.stdout is stdout
    assert sys.stderr is stderr


async def test_streams_restored_when_code_replaces_them() -> None:
    stdout = sys.stdout

    result = await _run("import io, sys\nsys.stdout = io.StringIO()\nprint('hidden')")

    assert result.ok
    assert sys.stdout is stdout


async def test_each_call_gets_a_fresh_namespace() -> None:
    await _run("leaked = 1")
    result = await _run("leaked")

    assert result.is_error
    assert "NameError" in result.error
