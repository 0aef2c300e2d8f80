"""
declutter - context pruning for long-running LLM agent sessions.

Removes tool outputs that are no longer relevant from the conversation sent
to the model, while keeping every request structurally valid for its wire
protocol (Chat Completions, Anthropic Messages, OpenAI Responses, Bedrock
Converse, Gemini generateContent).

Two kinds of pruning share one per-session pruned set:
- Automatic strategies on every request: duplicate tool calls and the
  inputs of old failed calls
- An idle-triggered janitor that asks a second model which outputs are
  obsolete

Quick Start:

    from declutter import RequestInterceptor

    interceptor = RequestInterceptor()
    result = interceptor.rewrite(body, session_id="ses_1")
    send(result.body)

Host Integration:

    from declutter import ContextPruningPlugin

    plugin = ContextPruningPlugin(history=my_history, notifier=my_toasts)
    body = plugin.on_outbound_request(session_id, body)
    plugin.on_session_idle(session_id)

Error Handling:

    from declutter import DeclutterError, ConfigurationError

    try:
        config = DeclutterConfig.from_env()
    except ConfigurationError as e:
        print(e.details)
"""

from .config import (
    DeclutterConfig,
    JanitorConfig,
    PlaceholderConfig,
    StrategyConfig,
    configure_logging,
)
from .exceptions import (
    ConfigurationError,
    DeclutterError,
    FormatError,
    HistoryError,
    NotificationError,
    OracleError,
    StateError,
)
from .formats import FormatDescriptor, ToolResultRef, detect_format, get_format, list_formats
from .hooks import ContextPruningPlugin, PruneTool
from .host import HistorySource, Notification, Notifier
from .interceptor import InterceptResult, RequestInterceptor
from .janitor import Janitor, JanitorResult
from .mutator import StructuralMutator
from .oracle import PRUNING_RUBRIC, LiteLLMOracle, OracleDecision, PruningOracle
from .state import (
    SessionSnapshot,
    SessionStateStore,
    SessionStats,
    ToolCallMetadata,
    ToolStatus,
    get_session_store,
    reset_session_store,
)
from .strategies import DEFAULT_STRATEGIES, DeduplicationStrategy, ErrorPruningStrategy

__version__ = "0.1.0"

__all__ = [
    # Config
    "DeclutterConfig",
    "JanitorConfig",
    "PlaceholderConfig",
    "StrategyConfig",
    "configure_logging",
    # Exceptions
    "ConfigurationError",
    "DeclutterError",
    "FormatError",
    "HistoryError",
    "NotificationError",
    "OracleError",
    "StateError",
    # Formats
    "FormatDescriptor",
    "ToolResultRef",
    "detect_format",
    "get_format",
    "list_formats",
    # State
    "SessionSnapshot",
    "SessionStateStore",
    "SessionStats",
    "ToolCallMetadata",
    "ToolStatus",
    "get_session_store",
    "reset_session_store",
    # Strategies
    "DEFAULT_STRATEGIES",
    "DeduplicationStrategy",
    "ErrorPruningStrategy",
    # Pruning surfaces
    "InterceptResult",
    "RequestInterceptor",
    "StructuralMutator",
    "Janitor",
    "JanitorResult",
    # Oracle
    "PRUNING_RUBRIC",
    "LiteLLMOracle",
    "OracleDecision",
    "PruningOracle",
    # Host
    "ContextPruningPlugin",
    "HistorySource",
    "Notification",
    "Notifier",
    "PruneTool",
]
