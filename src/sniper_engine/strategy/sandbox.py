"""
sandbox.py - Compile and run user strategy code

User code is plain Python that assigns a callable to `exports.strategy`:

    async def strategy(wallet, log, context):
        await context.buy(0.01)
    exports.strategy = strategy

Before anything runs, the source is parsed and screened:
- no import statements
- no names or attributes starting with "_"
- no introspection attributes (format, format_map, frame/code objects)
- no bare `except:` and no `finally:` blocks

The module body then runs with a restricted builtins table and only
`exports`, `context`, `math`, `random` and `json` in scope. The last three
are namespaces holding selected functions, never the stdlib modules.

Every run of the module body and every strategy call is bounded by a
wall-clock deadline. Strategy frames are traced while they execute, so a
CPU loop that never awaits is interrupted too.
"""

from __future__ import annotations

import ast
import asyncio
import builtins
import inspect
import json
import math
import random
import sys
import time
from contextlib import contextmanager
from types import SimpleNamespace
from typing import Any, Callable, Dict, Iterator, Optional

from loguru import logger

from sniper_engine.errors import CompileError, InitError, StrategyTimeoutError

STRATEGY_FILENAME = "<strategy>"
DEFAULT_TIMEOUT_SECONDS = 30.0

MATH_EXPORTS = (
    "ceil", "floor", "trunc", "fabs", "sqrt", "exp", "log", "log2", "log10",
    "pow", "fsum", "isclose", "isfinite", "isinf", "isnan", "copysign",
    "sin", "cos", "tan", "atan", "atan2", "tanh", "hypot",
    "pi", "e", "inf", "nan",
)
JSON_EXPORTS = ("dumps", "loads")
RANDOM_EXPORTS = (
    "random", "uniform", "randint", "randrange", "choice", "choices",
    "shuffle", "sample", "gauss",
)

ALLOWED_BUILTINS = {
    # Basic
    "len", "range", "enumerate", "zip", "map", "filter",
    "sorted", "reversed", "list", "dict", "set", "tuple", "frozenset",
    # Types
    "str", "int", "float", "bool", "isinstance",
    # Math
    "abs", "min", "max", "sum", "pow", "round", "divmod",
    # Iteration
    "iter", "next", "all", "any",
    # String
    "chr", "ord", "repr",
    # Object
    "callable", "hash", "slice", "property", "staticmethod", "classmethod",
    # Exceptions
    "Exception", "ValueError", "TypeError", "KeyError", "IndexError",
    "RuntimeError", "StopIteration", "AttributeError", "ZeroDivisionError",
    "ArithmeticError",
}

BLOCKED_NAMES = {
    "eval", "exec", "compile", "open", "input", "breakpoint", "help",
    "globals", "locals", "vars", "dir", "getattr", "setattr", "delattr",
    "type", "object", "super", "memoryview", "id",
}

BLOCKED_ATTRIBUTES = {
    "format", "format_map", "mro",
    "gi_frame", "gi_code", "gi_yieldfrom",
    "cr_frame", "cr_code", "cr_await",
    "ag_frame", "ag_code", "ag_await",
    "f_globals", "f_locals", "f_builtins", "f_back", "f_code",
    "tb_frame", "tb_next",
    "func_globals", "func_code",
}


def _safe_builtins() -> Dict[str, Any]:
    table = {name: getattr(builtins, name) for name in ALLOWED_BUILTINS if hasattr(builtins, name)}
    # class statements need the class builder; user code cannot name it
    table["__build_class__"] = builtins.__build_class__
    return table


def _pick(source: Any, names) -> SimpleNamespace:
    return SimpleNamespace(**{name: getattr(source, name) for name in names})


def _library_namespace() -> Dict[str, Any]:
    """math/json/random as plain namespaces; random is private to one run."""
    return {
        "math": _pick(math, MATH_EXPORTS),
        "json": _pick(json, JSON_EXPORTS),
        "random": _pick(random.Random(), RANDOM_EXPORTS),
    }


# =============================================================================
# DEADLINE
# =============================================================================

class _DeadlineExceeded(BaseException):
    """
    Raised inside strategy frames once the deadline passes.

    Not an Exception subclass and not reachable by name, so strategy code
    cannot catch it.
    """


class Deadline:
    """Wall-clock budget for one strategy run. None means unbounded."""

    def __init__(self, seconds: Optional[float]):
        self.seconds = seconds
        self.expires_at = None if seconds is None else time.monotonic() + seconds

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return max(self.expires_at - time.monotonic(), 0.0)

    def _check(self, frame, event, arg):
        if event in ("call", "line") and self.expired:
            raise _DeadlineExceeded()
        return self._check

    @contextmanager
    def watching(self) -> Iterator[None]:
        """Trace strategy frames only; any tracer already installed keeps the rest."""
        if self.expires_at is None:
            yield
            return

        previous = sys.gettrace()

        def trace(frame, event, arg):
            if frame.f_code.co_filename == STRATEGY_FILENAME:
                return self._check(frame, event, arg)
            return previous(frame, event, arg) if previous is not None else None

        sys.settrace(trace)
        try:
            yield
        finally:
            sys.settrace(previous)


class _GuardedCoroutine:
    """Steps a strategy coroutine with the deadline tracer on only while it runs."""

    def __init__(self, coro, deadline: Deadline):
        self.coro = coro
        self.deadline = deadline

    def __await__(self):
        value, error = None, None
        while True:
            with self.deadline.watching():
                try:
                    if error is None:
                        step = self.coro.send(value)
                    else:
                        step = self.coro.throw(error)
                except StopIteration as stop:
                    return stop.value
            try:
                value, error = (yield step), None
            except BaseException as e:
                value, error = None, e


class _PolicyScreen(ast.NodeVisitor):
    def __init__(self):
        self.violations = []

    def _flag(self, node: ast.AST, message: str) -> None:
        self.violations.append(f"line {getattr(node, 'lineno', '?')}: {message}")

    def visit_Import(self, node: ast.Import) -> None:
        self._flag(node, "import statements are not allowed")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._flag(node, "import statements are not allowed")

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("_"):
            self._flag(node, f"name '{node.id}' is not allowed")
        elif node.id in BLOCKED_NAMES:
            self._flag(node, f"'{node.id}' is not available in strategies")
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_") or node.attr in BLOCKED_ATTRIBUTES:
            self._flag(node, f"attribute '{node.attr}' is not allowed")
        self.generic_visit(node)

    def _visit_def(self, node) -> None:
        if node.name.startswith("_"):
            self._flag(node, f"name '{node.name}' is not allowed")
        for arg in ast.walk(node.args):
            if isinstance(arg, ast.arg) and arg.arg.startswith("_"):
                self._flag(arg, f"name '{arg.arg}' is not allowed")
        self.generic_visit(node)

    visit_FunctionDef = _visit_def
    visit_AsyncFunctionDef = _visit_def
    visit_ClassDef = _visit_def

    def visit_Lambda(self, node: ast.Lambda) -> None:
        for arg in ast.walk(node.args):
            if isinstance(arg, ast.arg) and arg.arg.startswith("_"):
                self._flag(arg, f"name '{arg.arg}' is not allowed")
        self.generic_visit(node)

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.type is None:
            self._flag(node, "bare 'except:' is not allowed; name the exception type")
        if node.name and node.name.startswith("_"):
            self._flag(node, f"name '{node.name}' is not allowed")
        self.generic_visit(node)

    def visit_Try(self, node: ast.Try) -> None:
        if node.finalbody:
            self._flag(node, "'finally' blocks are not allowed")
        self.generic_visit(node)

    visit_TryStar = visit_Try


class StrategyExports(SimpleNamespace):
    """Export slot the module body writes to."""

    @property
    def strategy_fn(self) -> Optional[Callable[..., Any]]:
        fn = getattr(self, "strategy", None)
        return fn if callable(fn) else None


class CompiledStrategy:
    """Screened, compiled strategy module. Each run() gets a fresh namespace."""

    def __init__(self, code, source: str, timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS):
        self.code = code
        self.source = source
        self.timeout = timeout

    def run(self, context: Any) -> StrategyExports:
        """Execute the module body; raises InitError if it throws or overruns."""
        exports = StrategyExports()
        namespace = {
            "__builtins__": _safe_builtins(),
            "__name__": "strategy",
            "exports": exports,
            "context": context,
            **_library_namespace(),
        }
        try:
            with Deadline(self.timeout).watching():
                exec(self.code, namespace)
        except _DeadlineExceeded:
            logger.warning(f"STRATEGY_INIT | timeout | limit={self.timeout}s")
            raise InitError(f"module body exceeded the {self.timeout}s time limit") from None
        except Exception as e:
            logger.warning(f"STRATEGY_INIT | error | {type(e).__name__}: {e}")
            raise InitError(str(e)) from e
        return exports


class StrategySandbox:
    def __init__(self, timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS):
        self.timeout = timeout

    def compile(self, source: str) -> CompiledStrategy:
        try:
            tree = ast.parse(source or "", filename=STRATEGY_FILENAME, mode="exec")
        except SyntaxError as e:
            logger.warning(f"STRATEGY_COMPILE | syntax_error | line={e.lineno} | {e.msg}")
            raise CompileError(f"{e.msg} (line {e.lineno})") from e

        screen = _PolicyScreen()
        screen.visit(tree)
        if screen.violations:
            logger.warning(f"STRATEGY_COMPILE | rejected | violations={len(screen.violations)}")
            raise CompileError("; ".join(screen.violations))

        try:
            code = compile(tree, STRATEGY_FILENAME, "exec")
        except (SyntaxError, ValueError) as e:
            raise CompileError(str(e)) from e

        logger.debug(f"STRATEGY_COMPILE | ok | lines={len(source.splitlines())}")
        return CompiledStrategy(code, source, timeout=self.timeout)

    async def invoke(self, fn: Callable[..., Any], *args: Any) -> Any:
        """
        Call a strategy function, awaiting it if it is async.

        Raises:
            StrategyTimeoutError: the call ran past the time limit
        """
        deadline = Deadline(self.timeout)
        try:
            with deadline.watching():
                result = fn(*args)
            if inspect.iscoroutine(result):
                result = _GuardedCoroutine(result, deadline)
            if inspect.isawaitable(result):
                if deadline.expires_at is not None:
                    return await asyncio.wait_for(result, deadline.remaining())
                return await result
            return result
        except _DeadlineExceeded:
            raise self._timed_out() from None
        except asyncio.TimeoutError:
            if not deadline.expired:
                raise
            raise self._timed_out() from None

    def _timed_out(self) -> StrategyTimeoutError:
        logger.warning(f"STRATEGY_CALL | timeout | limit={self.timeout}s")
        return StrategyTimeoutError(f"strategy exceeded the {self.timeout}s time limit")
