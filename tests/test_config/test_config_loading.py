from pathlib import Path

import pytest

import seqthink.config as config_module
from seqthink.config import Config
from seqthink.exceptions import ConfigurationError


def test_load_prefers_local_config_yaml(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)

    home_cfg = tmp_path / "home_config.yaml"
    home_cfg.write_text("model:\n  provider: ollama\n  model: llama3.2\n", encoding="utf-8")
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", home_cfg)

    local_cfg = tmp_path / "config.yaml"
    local_cfg.write_text(
        (
            "model:\n"
            "  provider: deepseek\n"
            "  model: deepseek-reasoner\n"
            "agent:\n"
            "  max_iterations: 6\n"
            "  source_tool: vaultSearch\n"
        ),
        encoding="utf-8",
    )

    cfg = Config.load()

    assert cfg.model.provider == "deepseek"
    assert cfg.model.model == "deepseek-reasoner"
    assert cfg.agent.max_iterations == 6
    assert cfg.agent.source_tool == "vaultSearch"
    assert cfg.agent.tool_timeout_seconds == 30.0


def test_load_falls_back_to_default_path_when_no_local(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)

    home_cfg = tmp_path / "home_config.yaml"
    home_cfg.write_text("model:\n  provider: openai\n  model: gpt-4o-mini\n", encoding="utf-8")
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", home_cfg)

    cfg = Config.load()

    assert cfg.model.provider == "openai"
    assert cfg.model.model == "gpt-4o-mini"


def test_defaults_when_no_config_file(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")

    cfg = Config.load()

    assert cfg.model.provider == "ollama"
    assert cfg.agent.max_iterations == 4
    assert cfg.memory.max_turns == 10


def test_env_overrides_nested_fields(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    monkeypatch.setenv("SEQTHINK_AGENT__MAX_ITERATIONS", "2")
    monkeypatch.setenv("SEQTHINK_LOGGING__LEVEL", "DEBUG")

    cfg = Config.load()

    assert cfg.agent.max_iterations == 2
    assert cfg.logging.level == "DEBUG"


def test_save_round_trips_through_yaml(tmp_path: Path):
    path = tmp_path / "nested" / "config.yaml"
    cfg = Config()
    cfg.model.model = "qwen3:32b"
    cfg.agent.tool_timeout_seconds = 12.5

    cfg.save(path)
    loaded = Config.from_yaml(path)

    assert loaded.model.model == "qwen3:32b"
    assert loaded.agent.tool_timeout_seconds == 12.5


def test_invalid_yaml_raises_configuration_error(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("model: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Config.from_yaml(path)


def test_non_mapping_yaml_raises_configuration_error(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Config.from_yaml(path)
