"""
``execute_python`` tool: runs a code string and reports what it printed and what it evaluated to.

The code runs in a fresh namespace inside the host interpreter.  Output written to ``sys.stdout``
and ``sys.stderr`` is captured, and both streams are restored on every exit path, so the payload
cannot leave the process writing into the capture buffer.  This is *not* a security boundary: any
deployment that accepts untrusted input must run the server itself inside a sandbox (container or VM
with CPU, memory and time limits).
"""

import ast
import asyncio
import contextlib
import io
import json
import logging
from typing import (
    Any,
    Dict,
    Tuple,
)

from multitool.core.errors import EvaluationFault
from multitool.core.schema import (
    ParameterSpec,
    ToolResult,
    ToolSpec,
)
from multitool.tools.base import BaseTool

logger = logging.getLogger(__name__)

NO_OUTPUT_SENTINEL = "Code executed successfully (no output)"


def run_code(code: str) -> Tuple[str, Any]:
    """
    Execute *code* and return ``(captured_output, value)``.

    If the last statement is an expression its value is returned, mirroring an interactive prompt;
    otherwise the value is ``None``.

    Raises
    ------
    EvaluationFault
        If the code does not compile or raises while running, including ``SystemExit`` and other
        ``BaseException`` subclasses.  ``asyncio.CancelledError`` propagates unchanged.
    """
    try:
        tree = ast.parse(code, mode="exec")
    except SyntaxError as exc:
        raise EvaluationFault(f"SyntaxError: {exc.msg} (line {exc.lineno})") from exc

    last_expr = None
    if tree.body and isinstance(tree.body[-1], ast.Expr):
        last_expr = ast.Expression(tree.body.pop().value)

    namespace: Dict[str, Any] = {"__name__": "__multitool__"}
    buffer = io.StringIO()
    try:
        with contextlib.redirect_stdout(buffer), contextlib.redirect_stderr(buffer):
            exec(compile(tree, "<execute_python>", "exec"), namespace)  # pylint: disable=exec-used
            value = None
            if last_expr is not None:
                value = eval(  # pylint: disable=eval-used
                    compile(last_expr, "<execute_python>", "eval"), namespace
                )
    except asyncio.CancelledError:
        raise
    except BaseException as exc:  # pylint: disable=broad-except
        raise EvaluationFault(f"{type(exc).__name__}: {exc}") from exc
    return buffer.getvalue(), value


def format_value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2, default=str)
    return str(value)


def format_output(captured: str, value: Any) -> str:
    """Join console output and return value into the single text payload the model sees."""
    output = ""
    if captured:
        output += f"Console Output:\n{captured}"
    if value is not None:
        if output:
            output += "\n\n"
        output += f"Return Value:\n{format_value(value)}"
    return output or NO_OUTPUT_SENTINEL


class EvaluateTool(BaseTool):
    """Evaluate Python code synchronously; never suspends the agent loop."""

    spec = ToolSpec(
        name="execute_python",
        description="Execute Python code and return its printed output and final expression value",
        parameters=(
            ParameterSpec(
                name="code",
                type="string",
                description="Python code to execute (use print() for output)",
            ),
        ),
    )

    async def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            captured, value = run_code(args["code"])
        except EvaluationFault as exc:
            logger.info("execute_python fault: %s", exc)
            return ToolResult.failure(f"Python execution error: {exc}", kind=exc.kind)
        return ToolResult.success(format_output(captured, value))
