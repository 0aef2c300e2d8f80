"""Configuration models for declutter."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .exceptions import ConfigurationError

# Tools whose outputs the automatic strategies must never touch
DEFAULT_PROTECTED_TOOLS: frozenset[str] = frozenset(
    {"task", "todowrite", "todoread", "context_pruning"}
)

DEFAULT_NOTE_TEXT = (
    "[Note: some earlier tool outputs in this conversation were replaced with "
    "placeholders to save context. Re-run a tool if you need its output again.]"
)

DEFAULT_NUDGE_TEXT = (
    "[System reminder: if earlier tool outputs are no longer needed, call the "
    "context_pruning tool to remove them.]"
)


@dataclass
class PlaceholderConfig:
    """Replacement texts written over pruned content."""

    output: str = "[Output removed to save context - information superseded or no longer needed]"
    # Written over write/edit content fields; must not read like real file content
    edit_input: str = (
        "[content removed to save context, this is not what was written to the file, "
        "but a placeholder]"
    )
    error_input: str = "[input removed due to failed tool call]"

    def texts(self) -> frozenset[str]:
        """Every placeholder text, for recognizing content written by a pruning pass."""
        return frozenset({self.output, self.edit_input, self.error_input})


@dataclass
class StrategyConfig:
    """Enable/disable the automatic per-request strategies."""

    deduplication: bool = True
    error_pruning: bool = True

    def is_enabled(self, name: str) -> bool:
        """Check whether the strategy registered under ``name`` is enabled."""
        return bool(getattr(self, name, False))


@dataclass
class JanitorConfig:
    """Configuration for the idle-triggered semantic janitor.

    GOTCHAS:
    - The janitor sends recent session history to a second model. Set
      enabled=False when that is not acceptable.
    - Batch detection relies on child call ids sharing a prefix
      (batch_child_prefix). Hosts that do not follow that convention get no
      batch expansion, only the explicitly named ids.
    """

    enabled: bool = True
    model: str = "openai/gpt-4o-mini"
    history_limit: int = 100  # Max host messages fetched per run
    min_messages: int = 3  # Fewer messages than this: nothing worth analyzing
    batch_tool_name: str = "batch"
    batch_child_prefix: str = "prt_"
    notify: bool = True
    notification_duration_ms: int = 5000
    timeout_seconds: float = 60.0
    # The explicit pruning tool also runs the automatic strategies before the oracle
    strategies_on_tool: bool = True


@dataclass
class DeclutterConfig:
    """Main configuration for declutter.

    Every field has a default, so ``DeclutterConfig()`` is a working setup.
    """

    enabled: bool = True
    debug: bool = False
    age_window: int = 5  # Most recent N tool calls never error/age-pruned
    protected_tools: set[str] = field(default_factory=lambda: set(DEFAULT_PROTECTED_TOOLS))
    strategies: StrategyConfig = field(default_factory=StrategyConfig)
    janitor: JanitorConfig = field(default_factory=JanitorConfig)
    placeholders: PlaceholderConfig = field(default_factory=PlaceholderConfig)

    # Synthetic note appended to the latest real user turn after pruning
    inject_note: bool = True
    note_text: str = DEFAULT_NOTE_TEXT
    nudge_text: str = DEFAULT_NUDGE_TEXT
    # Remind the model about context_pruning every N new tool results (0 = never)
    nudge_freq: int = 10

    def __post_init__(self) -> None:
        self.protected_tools = {name.lower() for name in self.protected_tools}

    def validate(self) -> None:
        """Raise ConfigurationError if any value is out of range."""
        if self.age_window < 0:
            raise ConfigurationError(
                "age_window must be >= 0", details={"age_window": self.age_window}
            )
        if self.nudge_freq < 0:
            raise ConfigurationError(
                "nudge_freq must be >= 0", details={"nudge_freq": self.nudge_freq}
            )
        if self.janitor.history_limit <= 0:
            raise ConfigurationError(
                "janitor.history_limit must be > 0",
                details={"history_limit": self.janitor.history_limit},
            )
        if self.janitor.min_messages < 0:
            raise ConfigurationError(
                "janitor.min_messages must be >= 0",
                details={"min_messages": self.janitor.min_messages},
            )

    def is_protected(self, tool_name: str | None) -> bool:
        """Check if a tool name is protected from automatic pruning."""
        if not tool_name:
            return False
        return tool_name.lower() in self.protected_tools

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> DeclutterConfig:
        """Build a config from DECLUTTER_* environment variables.

        Recognized variables:
            DECLUTTER_DEBUG: "1"/"true" enables debug logging.
            DECLUTTER_AGE_WINDOW: integer age window.
            DECLUTTER_NUDGE_FREQ: new tool results between reminders (0 disables).
            DECLUTTER_PROTECTED_TOOLS: comma-separated tool names, added to defaults.
            DECLUTTER_JANITOR_ENABLED: "0"/"false" disables the janitor.
            DECLUTTER_JANITOR_MODEL: model name passed to the oracle.

        Raises:
            ConfigurationError: If a value cannot be parsed.
        """
        env = os.environ if environ is None else environ
        config = cls()

        config.debug = _parse_bool(env.get("DECLUTTER_DEBUG"), default=False)

        config.age_window = _parse_int(env, "DECLUTTER_AGE_WINDOW", config.age_window)
        config.nudge_freq = _parse_int(env, "DECLUTTER_NUDGE_FREQ", config.nudge_freq)

        protected = env.get("DECLUTTER_PROTECTED_TOOLS")
        if protected:
            config.protected_tools |= {
                name.strip().lower() for name in protected.split(",") if name.strip()
            }

        config.janitor.enabled = _parse_bool(env.get("DECLUTTER_JANITOR_ENABLED"), default=True)
        model = env.get("DECLUTTER_JANITOR_MODEL")
        if model:
            config.janitor.model = model

        config.validate()
        return config


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer", details={"value": value}) from e


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError("Invalid boolean value", details={"value": value})


def configure_logging(debug: bool) -> None:
    """Set the declutter logger level from the debug flag."""
    logging.getLogger("declutter").setLevel(logging.DEBUG if debug else logging.INFO)
