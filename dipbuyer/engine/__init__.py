"""Trading engine core module."""

from .signals import SignalZone, ClassifiedTicker, classify, classify_snapshot
from .pricing import round_to_tick
from .retry import retry_async
from .state import Position, TradingState, InsufficientBudgetError
from .position_manager import PositionManager
from .coordinator import TradingCoordinator, CycleReport, CycleError, EngineState, EngineStatus

__all__ = [
    "SignalZone",
    "ClassifiedTicker",
    "classify",
    "classify_snapshot",
    "round_to_tick",
    "retry_async",
    "Position",
    "TradingState",
    "InsufficientBudgetError",
    "PositionManager",
    "TradingCoordinator",
    "CycleReport",
    "CycleError",
    "EngineState",
    "EngineStatus",
]
