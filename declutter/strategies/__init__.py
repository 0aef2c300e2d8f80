"""Automatic pruning strategies run on every intercepted request."""

from .base import PruningStrategy, StrategyResult, run_strategies
from .deduplication import DeduplicationStrategy, tool_signature
from .error_pruning import ErrorPruningStrategy, recent_window

# Order only affects log output; results are unioned
DEFAULT_STRATEGIES: tuple[PruningStrategy, ...] = (
    DeduplicationStrategy(),
    ErrorPruningStrategy(),
)

__all__ = [
    "DEFAULT_STRATEGIES",
    "DeduplicationStrategy",
    "ErrorPruningStrategy",
    "PruningStrategy",
    "StrategyResult",
    "recent_window",
    "run_strategies",
    "tool_signature",
]
