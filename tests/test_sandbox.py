import asyncio

import pytest

from sniper_engine.errors import CompileError, InitError, StrategyTimeoutError
from sniper_engine.strategy.sandbox import StrategySandbox

ASYNC_STRATEGY = """
async def strategy(wallet, log, context):
    log("price " + str(context["price"]))
    return math.floor(context["price"])

exports.strategy = strategy
"""


def test_compiles_and_exports_async_strategy() -> None:
    exports = StrategySandbox().compile(ASYNC_STRATEGY).run({"price": 1.5})
    assert exports.strategy_fn is not None


@pytest.mark.anyio
async def test_invoke_awaits_async_and_calls_sync() -> None:
    sandbox = StrategySandbox()
    exports = sandbox.compile(ASYNC_STRATEGY).run({})
    logs = []
    assert await sandbox.invoke(exports.strategy_fn, "w", logs.append, {"price": 2.7}) == 2
    assert logs == ["price 2.7"]

    sync = sandbox.compile("exports.strategy = lambda log, ctx: ctx * 2").run(None)
    assert await sandbox.invoke(sync.strategy_fn, print, 21) == 42


@pytest.mark.parametrize(
    "source",
    [
        "import os",
        "from os import path",
        "x = ().__class__",
        "__import__('os')",
        "_secret = 1",
        "open('/etc/passwd')",
        "eval('1')",
        "getattr(exports, 'strategy')",
        "'{0.__class__}'.format(1)",
        "f = (lambda: 1).gi_frame",
        "def f(_x): return _x",
        "try:\n    x = 1\nexcept:\n    pass",
        "try:\n    x = 1\nfinally:\n    pass",
    ],
)
def test_policy_violations_are_compile_errors(source) -> None:
    with pytest.raises(CompileError):
        StrategySandbox().compile(source)


def test_syntax_error_is_compile_error() -> None:
    with pytest.raises(CompileError, match="line 1"):
        StrategySandbox().compile("def broken(:")


def test_module_body_exception_is_init_error() -> None:
    compiled = StrategySandbox().compile("x = 1 / 0")
    with pytest.raises(InitError):
        compiled.run({})


def test_restricted_builtins_surface_as_init_error() -> None:
    # names outside the builtins table simply do not exist
    compiled = StrategySandbox().compile("print('hi')")
    with pytest.raises(InitError):
        compiled.run({})


def test_missing_or_non_callable_strategy() -> None:
    sandbox = StrategySandbox()
    assert sandbox.compile("x = 1").run({}).strategy_fn is None
    assert sandbox.compile("exports.strategy = 5").run({}).strategy_fn is None


def test_injected_modules_and_classes_are_usable() -> None:
    source = """
class Signal:
    def score(self, values):
        return json.dumps(sorted(values)) + str(round(math.sqrt(16)))

exports.result = Signal().score([3, 1, 2])
exports.strategy = lambda log, ctx: random.random()
"""
    exports = StrategySandbox().compile(source).run({})
    assert exports.result == "[1, 2, 3]4"


def test_each_run_gets_a_fresh_namespace() -> None:
    compiled = StrategySandbox().compile("exports.n = context['n']")
    assert compiled.run({"n": 1}).n == 1
    assert compiled.run({"n": 2}).n == 2


@pytest.mark.anyio
async def test_timeout_applies_to_async_strategies() -> None:
    sandbox = StrategySandbox(timeout=0.01)
    exports = sandbox.compile(
        "async def strategy(log, ctx):\n    await ctx()\nexports.strategy = strategy"
    ).run({})

    async def hang():
        await asyncio.sleep(10)

    with pytest.raises(StrategyTimeoutError):
        await sandbox.invoke(exports.strategy_fn, None, hang)


@pytest.mark.parametrize(
    "source",
    [
        "exports.x = json.codecs",
        "exports.x = json.decoder",
        "random.seed(1)",
        "exports.x = math.sys",
        "osmod = json.codecs.sys.modules['os']\nexports.cwd = osmod.getcwd()",
        "exports.text = json.codecs.open('/etc/hostname').read()",
    ],
)
def test_library_namespaces_expose_no_module_internals(source) -> None:
    compiled = StrategySandbox().compile(source)
    with pytest.raises(InitError):
        compiled.run({})


def test_random_is_private_to_each_run() -> None:
    exports = StrategySandbox().compile(
        "exports.roll = random.randint(1, 6)\nexports.pick = random.choice([1, 2])"
    ).run({})
    assert 1 <= exports.roll <= 6
    assert exports.pick in (1, 2)


def test_module_body_loop_hits_time_limit() -> None:
    compiled = StrategySandbox(timeout=0.05).compile("while True:\n    pass")
    with pytest.raises(InitError, match="time limit"):
        compiled.run({})


SYNC_SPIN = """
def strategy(log, ctx):
    while True:
        pass
exports.strategy = strategy
"""

ASYNC_SPIN = """
async def strategy(log, ctx):
    while True:
        pass
exports.strategy = strategy
"""

CATCHING_SPIN = """
def strategy(log, ctx):
    while True:
        try:
            while True:
                pass
        except Exception:
            log("caught")
exports.strategy = strategy
"""


@pytest.mark.anyio
@pytest.mark.parametrize("source", [SYNC_SPIN, ASYNC_SPIN, CATCHING_SPIN])
async def test_cpu_bound_strategy_hits_time_limit(source) -> None:
    sandbox = StrategySandbox(timeout=0.05)
    exports = sandbox.compile(source).run({})
    logs = []
    with pytest.raises(StrategyTimeoutError):
        await sandbox.invoke(exports.strategy_fn, logs.append, None)
    assert logs == []


@pytest.mark.anyio
async def test_fast_strategy_is_unaffected_by_time_limit() -> None:
    sandbox = StrategySandbox(timeout=5.0)
    exports = sandbox.compile(ASYNC_STRATEGY).run({})
    assert await sandbox.invoke(exports.strategy_fn, "w", print, {"price": 3.2}) == 3
