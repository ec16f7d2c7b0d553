"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest

from cortex_kg.config import CortexConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without provider keys or CORTEX_* overrides."""
    for name in (
        "NVIDIA_API_KEY",
        "HUGGINGFACE_API_KEY",
        "CORTEX_LLM_BASE_URL",
        "CORTEX_LLM_MODEL",
        "CORTEX_LLM_FALLBACK_MODEL",
        "CORTEX_SEARCH_TIMEOUT",
        "CORTEX_GRAPH_MAX_NODES",
        "CORTEX_STRENGTH_INCREMENT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Built-in defaults."""

    def test_defaults(self) -> None:
        config = CortexConfig()

        assert config.graph_max_nodes == 80
        assert config.graph_max_links_per_node == 6
        assert config.strength_increment == 0.5
        assert config.max_strength == 10.0
        assert config.video_site_hint == "site:youtube.com"
        assert config.nvidia_api_key is None
        assert not config.huggingface_configured

    def test_mutable_defaults_not_shared(self) -> None:
        first = CortexConfig()
        first.hf_chat_models.append("extra")
        assert "extra" not in CortexConfig().hf_chat_models

    def test_unknown_option(self) -> None:
        with pytest.raises(ValueError):
            CortexConfig(not_an_option=1)


class TestEnvironment:
    """Environment variables and their precedence."""

    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NVIDIA_API_KEY", "nv")
        monkeypatch.setenv("HUGGINGFACE_API_KEY", "hf")
        monkeypatch.setenv("CORTEX_GRAPH_MAX_NODES", "120")
        monkeypatch.setenv("CORTEX_STRENGTH_INCREMENT", "0.25")

        config = CortexConfig()

        assert config.nvidia_api_key == "nv"
        assert config.huggingface_configured
        assert config.graph_max_nodes == 120
        assert config.strength_increment == 0.25

    def test_kwargs_beat_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HUGGINGFACE_API_KEY", "hf")
        monkeypatch.setenv("CORTEX_GRAPH_MAX_NODES", "120")

        config = CortexConfig(huggingface_api_key=None, graph_max_nodes=10)

        assert not config.huggingface_configured
        assert config.graph_max_nodes == 10


class TestFiles:
    """TOML round trip."""

    def test_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "cortex.toml"
        path.write_text(
            "[llm]\n"
            'model = "custom/model"\n'
            "\n"
            "[graph]\n"
            "max_nodes = 40\n"
            "strength_increment = 1.0\n"
            "\n"
            "[search]\n"
            "timeout = 5.0\n"
            "\n"
            "[api_keys]\n"
            'huggingface = "hf-file"\n'
        )

        config = CortexConfig.from_file(path)

        assert config.llm_model == "custom/model"
        assert config.graph_max_nodes == 40
        assert config.strength_increment == 1.0
        assert config.search_timeout == 5.0
        assert config.huggingface_api_key == "hf-file"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            CortexConfig.from_file(tmp_path / "missing.toml")

    def test_round_trip_without_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "cortex.toml"
        original = CortexConfig(
            nvidia_api_key="secret",
            graph_max_nodes=33,
            hf_chat_models=["a/b"],
        )

        original.to_file(path)
        loaded = CortexConfig.from_file(path)

        assert "secret" not in path.read_text()
        assert loaded.graph_max_nodes == 33
        assert loaded.hf_chat_models == ["a/b"]
        assert loaded.nvidia_api_key is None

    def test_with_overrides(self) -> None:
        base = CortexConfig(graph_max_nodes=50)
        derived = base.with_overrides(graph_max_nodes=10)

        assert derived.graph_max_nodes == 10
        assert base.graph_max_nodes == 50
        assert derived.llm_model == base.llm_model
