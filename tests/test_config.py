"""Tests for YAML and environment configuration of the indexer."""

import pytest

from tickerwisdom.index.state import IndexConfig
from tickerwisdom.pipeline.config import (
    IndexerConfig,
    IndexerConfigFactory,
    create_reconciler,
    dict_to_dataclass,
    load_config_from_yaml,
)
from tickerwisdom.pipeline.state import ReconciliationConfig
from tickerwisdom.symbols.state import ExtractionConfig

from conftest import FakeHistoryClient

ENV_VARS = (
    "TICKERWISDOM_ANALYSIS_CHANNELS",
    "TICKERWISDOM_DISCUSSION_CHANNELS",
    "TICKERWISDOM_MANAGER_IDS",
    "TICKERWISDOM_RELEVANCE_THRESHOLD",
    "TICKERWISDOM_FRESHNESS_DAYS",
    "TICKERWISDOM_LEXICON_PATH",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
    return monkeypatch


class TestYamlConfig:

    def test_loads_nested_sections(self, tmp_path):
        path = tmp_path / "indexer.yaml"
        path.write_text(
            "extraction:\n"
            "  min_confidence: 0.4\n"
            "  headline_only: false\n"
            "relevance:\n"
            "  threshold: 0.65\n"
            "  density_tiers: [[6, 0.0], [2, 0.3], [0, 0.5]]\n"
            "corroboration:\n"
            "  channel_ids: [1, 2]\n"
            "reconciliation:\n"
            "  min_relevance: null\n",
            encoding="utf-8",
        )

        config = load_config_from_yaml(path)

        assert config.extraction.min_confidence == 0.4
        assert not config.extraction.headline_only
        assert config.relevance.threshold == 0.65
        assert config.relevance.density_tiers == ((6, 0.0), (2, 0.3), (0, 0.5))
        assert config.corroboration.channel_ids == ("1", "2")
        assert config.reconciliation.min_relevance is None
        assert config.index == IndexConfig()

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config_from_yaml(path) == IndexerConfig()

    def test_unknown_keys_are_ignored(self, caplog):
        config = dict_to_dataclass(ExtractionConfig, {"min_confidence": 0.35, "mystery": 1})
        assert config.min_confidence == 0.35
        assert "mystery" in caplog.text

    def test_invalid_values_raise(self):
        with pytest.raises(ValueError):
            dict_to_dataclass(ReconciliationConfig, {"page_size": 500})

    def test_lexicon_path(self, tmp_path):
        lexicon_path = tmp_path / "lexicon.yaml"
        lexicon_path.write_text("allowlist: [ema]\n", encoding="utf-8")
        config = IndexerConfig(lexicon_path=str(lexicon_path))

        lexicon = config.build_lexicon()

        assert lexicon.is_valid_symbol("EMA")


class TestEnvironmentConfig:

    def test_overlays_environment(self, clean_env):
        clean_env.setenv("TICKERWISDOM_ANALYSIS_CHANNELS", "1, 2")
        clean_env.setenv("TICKERWISDOM_DISCUSSION_CHANNELS", "3")
        clean_env.setenv("TICKERWISDOM_MANAGER_IDS", "9")
        clean_env.setenv("TICKERWISDOM_RELEVANCE_THRESHOLD", "0.65")
        clean_env.setenv("TICKERWISDOM_FRESHNESS_DAYS", "3")

        config = IndexerConfigFactory.from_environment()

        assert config.linker.analysis_channel_ids == ("1", "2")
        assert config.corroboration.channel_ids == ("1", "2", "3")
        assert config.linker.manager_ids == ("9",)
        assert config.relevance.threshold == 0.65
        assert config.index.freshness_days == 3.0

    def test_keeps_base_when_environment_is_empty(self, clean_env):
        base = IndexerConfig(reconciliation=ReconciliationConfig(lookback_days=3))
        config = IndexerConfigFactory.from_environment(base=base)
        assert config.reconciliation.lookback_days == 3
        assert config.linker.analysis_channel_ids == ()

    def test_create_reconciler_uses_config(self, clean_env):
        config = IndexerConfig(reconciliation=ReconciliationConfig(lookback_days=2, page_size=50))
        reconciler = create_reconciler(config, FakeHistoryClient())
        assert reconciler.config.page_size == 50
        assert reconciler.extractor.corroborator is None
