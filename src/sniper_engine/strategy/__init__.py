from .sandbox import CompiledStrategy, StrategyExports, StrategySandbox

__all__ = ["CompiledStrategy", "StrategyExports", "StrategySandbox"]
