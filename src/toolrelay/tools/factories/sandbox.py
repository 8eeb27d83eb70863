"""JavaScript sandbox tool factory.

Every call gets a fresh V8 context from ``mini-racer``. The context has the
ECMAScript builtins (Math, Date, JSON, the primitive and collection
constructors) and nothing from a host environment: no window, document,
filesystem or network. A ``console`` shim returns formatted strings instead
of printing.

The model's code is compiled as the body of an async function, so it may
``await`` and must ``return`` its value. Both outcomes are reported as data:

    {"success": true, "result": ..., "type": "number", "executedAt": "..."}
    {"success": false, "error": "...", "stack": "...", "executedAt": "..."}
"""

from __future__ import annotations

import asyncio
import inspect
import json
from typing import Any

from loguru import logger
from py_mini_racer import MiniRacer

from toolrelay.tools.registry import ToolDefinition

from .shared import JavaScriptInput, ToolContext, utc_timestamp

JAVASCRIPT_TOOL_NAME = "execute_javascript"

_SANDBOX_TEMPLATE = r"""
(async () => {
  const console = {
    log: (...args) => args.join(" "),
    error: (...args) => args.join(" "),
    warn: (...args) => args.join(" "),
  };
  const replacer = (key, value) => {
    if (typeof value === "bigint") return value.toString();
    if (typeof value === "function") return `[Function ${value.name || "anonymous"}]`;
    if (typeof value === "symbol") return value.toString();
    if (value === undefined) return null;
    return value;
  };
  const toJson = (value) => {
    try {
      const text = JSON.stringify(value, replacer);
      return text === undefined ? null : JSON.parse(text);
    } catch (error) {
      return String(value);
    }
  };
  try {
    const AsyncFunction = (async () => {}).constructor;
    const run = new AsyncFunction("console", '"use strict";\n' + __SOURCE__);
    const result = await run(console);
    return JSON.stringify({ success: true, result: toJson(result), type: typeof result });
  } catch (error) {
    const isError = error instanceof Error;
    return JSON.stringify({
      success: false,
      error: isError ? error.message : String(error),
      stack: isError && error.stack ? String(error.stack) : null,
    });
  }
})()
"""


def build_sandbox_script(code: str) -> str:
    """Embed user code as a string literal so syntax errors surface inside the sandbox."""
    return _SANDBOX_TEMPLATE.replace("__SOURCE__", json.dumps(code))


async def _evaluate(ctx: MiniRacer, script: str) -> Any:
    value = await ctx.eval_cancelable(script)
    if inspect.isawaitable(value):
        value = await value
    return value


async def run_javascript(code: str, *, timeout_seconds: float) -> dict[str, Any]:
    """Evaluate ``code`` in a fresh context and return the report payload.

    Evaluation runs on the V8 thread, so the event loop stays free while the
    script works. On timeout the pending evaluation is cancelled, which
    terminates the script before the context is closed.
    """
    try:
        with MiniRacer() as ctx:
            value = await asyncio.wait_for(_evaluate(ctx, build_sandbox_script(code)), timeout=timeout_seconds)
        report = json.loads(str(value))
    except TimeoutError:
        report = {"success": False, "error": f"Execution timed out after {timeout_seconds}s", "stack": None}
    except Exception as exc:
        logger.opt(exception=True).warning("sandbox.eval_failed")
        report = {"success": False, "error": str(exc) or type(exc).__name__, "stack": None}

    report["executedAt"] = utc_timestamp()
    return report


def create_javascript_tool(context: ToolContext) -> ToolDefinition:
    """Create the sandboxed JavaScript execution tool."""

    async def _handler(params: JavaScriptInput) -> str:
        report = await run_javascript(params.code, timeout_seconds=context.settings.sandbox_timeout_seconds)
        return json.dumps(report, indent=2, ensure_ascii=False)

    return ToolDefinition.from_model(
        JavaScriptInput,
        _handler,
        name=JAVASCRIPT_TOOL_NAME,
        description="Executes sandboxed JavaScript code. Cannot access DOM or window.",
    )
