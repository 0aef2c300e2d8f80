"""Tests for the automatic pruning strategies."""

import pytest

from declutter.config import DeclutterConfig, StrategyConfig
from declutter.state import ToolCallMetadata, ToolStatus
from declutter.strategies import (
    DEFAULT_STRATEGIES,
    DeduplicationStrategy,
    ErrorPruningStrategy,
    PruningStrategy,
    StrategyResult,
    recent_window,
    run_strategies,
    tool_signature,
)


def meta(tool, status=ToolStatus.COMPLETED, **params):
    return ToolCallMetadata(tool_name=tool, parameters=params, status=status)


class TestToolSignature:
    """Tests for call signatures."""

    def test_key_order_does_not_matter(self):
        """Parameters are canonicalized with sorted keys."""
        assert tool_signature("read", {"a": 1, "b": 2}) == tool_signature("read", {"b": 2, "a": 1})

    def test_none_values_dropped(self):
        """None-valued parameters do not change the signature."""
        assert tool_signature("read", {"path": "a", "offset": None}) == tool_signature(
            "read", {"path": "a"}
        )

    def test_tool_name_matters(self):
        """Same parameters on different tools are different calls."""
        assert tool_signature("read", {"path": "a"}) != tool_signature("grep", {"path": "a"})


class TestDeduplicationStrategy:
    """Tests for DeduplicationStrategy."""

    def test_abc_scenario(self, config):
        """A and B are identical reads, C is an edit: only A is pruned."""
        metadata = {
            "a": meta("read", path="x.py"),
            "b": meta("read", path="x.py"),
            "c": meta("edit", path="x.py", oldString="1", newString="2"),
        }

        result = DeduplicationStrategy().detect(
            metadata, ["a", "b", "c"], config.protected_tools, config
        )

        assert result.prune_output_ids == ["a"]
        assert result.prune_input_ids == []

    def test_keeps_last_of_each_group(self, config):
        """Every duplicate but the last in unpruned order is pruned."""
        metadata = {
            "r1": meta("read", path="a"),
            "g1": meta("grep", pattern="x"),
            "r2": meta("read", path="a"),
            "g2": meta("grep", pattern="x"),
            "r3": meta("read", path="a"),
        }

        result = DeduplicationStrategy().detect(
            metadata, list(metadata), config.protected_tools, config
        )

        assert result.prune_output_ids == ["r1", "g1", "r2"]

    def test_protected_tools_skipped(self, config):
        """Protected tools are never deduplicated."""
        metadata = {"t1": meta("todowrite", items="x"), "t2": meta("todowrite", items="x")}

        result = DeduplicationStrategy().detect(
            metadata, ["t1", "t2"], config.protected_tools, config
        )

        assert not result

    def test_only_unpruned_ids_considered(self, config):
        """An already pruned earlier duplicate does not re-enter the group."""
        metadata = {"a": meta("read", path="x"), "b": meta("read", path="x")}

        result = DeduplicationStrategy().detect(metadata, ["b"], config.protected_tools, config)

        assert not result

    def test_ids_without_metadata_ignored(self, config):
        """Ids with no metadata are skipped."""
        result = DeduplicationStrategy().detect({}, ["ghost"], config.protected_tools, config)
        assert not result

    def test_redacted_calls_skipped(self, config):
        """Different calls whose arguments were replaced by placeholders are not duplicates."""
        marker = config.placeholders.error_input
        metadata = {
            "e1": meta("bash", status=ToolStatus.ERROR, cmd=marker),
            "e2": meta("bash", status=ToolStatus.ERROR, cmd=marker),
            "r1": meta("read", path="a"),
            "r2": meta("read", path="a"),
        }

        result = DeduplicationStrategy().detect(
            metadata, list(metadata), config.protected_tools, config
        )

        assert result.prune_output_ids == ["r1"]


class TestErrorPruningStrategy:
    """Tests for ErrorPruningStrategy."""

    def _calls(self, total, error_index=0, tool="bash"):
        metadata = {}
        for i in range(total):
            status = ToolStatus.ERROR if i == error_index else ToolStatus.COMPLETED
            metadata[f"c{i}"] = meta(tool if i == error_index else "read", status, n=i)
        return metadata

    def test_error_inside_window_excluded(self, config):
        """With window 5, an error followed by only 4 calls is kept."""
        metadata = self._calls(5)

        result = ErrorPruningStrategy().detect(
            metadata, list(metadata), config.protected_tools, config
        )

        assert "c0" not in result.prune_input_ids

    def test_error_outside_window_included(self, config):
        """With window 5, an error followed by 5 calls is input-pruned."""
        metadata = self._calls(6)

        result = ErrorPruningStrategy().detect(
            metadata, list(metadata), config.protected_tools, config
        )

        assert result.prune_input_ids == ["c0"]
        assert result.prune_output_ids == []

    @pytest.mark.parametrize("window", [1, 2, 3, 4, 5])
    def test_most_recent_error_never_pruned(self, window):
        """A failed call that is the latest observed is always protected."""
        config = DeclutterConfig(age_window=window)
        metadata = self._calls(8, error_index=7)

        result = ErrorPruningStrategy().detect(
            metadata, list(metadata), config.protected_tools, config
        )

        assert result.prune_input_ids == []

    def test_window_zero_allows_everything(self):
        """A zero window exempts nothing."""
        config = DeclutterConfig(age_window=0)
        metadata = self._calls(1)

        result = ErrorPruningStrategy().detect(
            metadata, list(metadata), config.protected_tools, config
        )

        assert result.prune_input_ids == ["c0"]

    def test_protected_error_skipped(self, config):
        """Failed calls of protected tools are kept."""
        metadata = self._calls(7, tool="task")

        result = ErrorPruningStrategy().detect(
            metadata, list(metadata), config.protected_tools, config
        )

        assert not result

    def test_recent_window_uses_observation_order(self):
        """The window is the last N observed ids."""
        metadata = self._calls(4)
        assert recent_window(metadata, 2) == {"c2", "c3"}
        assert recent_window(metadata, 0) == set()


class TestRunStrategies:
    """Tests for strategy composition."""

    def test_defaults_are_strategies(self):
        """Default strategies satisfy the protocol."""
        assert all(isinstance(s, PruningStrategy) for s in DEFAULT_STRATEGIES)
        assert [s.name for s in DEFAULT_STRATEGIES] == ["deduplication", "error_pruning"]

    def test_union_of_results(self):
        """Outputs from dedup and inputs from error pruning are combined."""
        config = DeclutterConfig(age_window=1)
        metadata = {
            "r1": meta("read", path="a"),
            "e1": meta("bash", ToolStatus.ERROR, cmd="make"),
            "r2": meta("read", path="a"),
        }

        result = run_strategies(DEFAULT_STRATEGIES, metadata, list(metadata), config)

        assert result.prune_output_ids == ["r1"]
        assert result.prune_input_ids == ["e1"]

    def test_disabled_strategy_skipped(self):
        """Strategies disabled by name do not run."""
        config = DeclutterConfig(strategies=StrategyConfig(deduplication=False))
        metadata = {"r1": meta("read", path="a"), "r2": meta("read", path="a")}

        result = run_strategies(DEFAULT_STRATEGIES, metadata, list(metadata), config)

        assert not result

    def test_empty_unpruned_list(self, config):
        """Nothing to consider means nothing to prune."""
        assert not run_strategies(DEFAULT_STRATEGIES, {"a": meta("read")}, [], config)

    def test_merge_deduplicates(self):
        """Merging keeps first-seen order without repeats."""
        combined = StrategyResult(prune_output_ids=["a"])
        combined.merge(StrategyResult(prune_output_ids=["a", "b"], prune_input_ids=["c"]))

        assert combined.prune_output_ids == ["a", "b"]
        assert combined.prune_input_ids == ["c"]
