from .contexts import BotContext, BotSlot, GroupContext, StrategyContext
from .orchestrator import Orchestrator
from .worker import StrategyWorker, build_router

__all__ = [
    "BotContext",
    "BotSlot",
    "GroupContext",
    "StrategyContext",
    "Orchestrator",
    "StrategyWorker",
    "build_router",
]
