"""Tests for project configuration loading."""

import json
from pathlib import Path

import pytest

from agentflow.config import (
    DEFAULT_OLLAMA_URL,
    AppConfig,
    config_path,
    load_config,
    save_config,
)
from agentflow.domain.exceptions import ConfigError
from agentflow.domain.models import AgentRole, InvocationOptions


def write_config(root: Path, data: object) -> None:
    path = config_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")


class TestDefaults:
    """Tests for the built-in defaults."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        """A project without config.json runs on defaults."""
        config = load_config(tmp_path)

        assert config == AppConfig()
        assert config.workflow.max_iterations == 5
        assert config.workflow.human_approval is True
        assert config.providers["ollama"].base_url == DEFAULT_OLLAMA_URL

    def test_role_defaults(self) -> None:
        """Every role has a model; coder and fixer get larger outputs."""
        config = AppConfig()

        assert config.agent(AgentRole.CODER).max_tokens == 8192
        assert config.agent(AgentRole.JUDGE).temperature == 0.2
        assert {config.agent(role).provider for role in AgentRole} == {"ollama"}

    def test_to_options(self) -> None:
        """Role config converts to invocation options."""
        options = AppConfig().agent(AgentRole.ARCHITECT).to_options()

        assert options == InvocationOptions(
            model="llama3.2:latest", temperature=0.5, max_tokens=4096
        )


class TestLoadConfig:
    """Tests for load_config()."""

    def test_partial_file(self, tmp_path: Path) -> None:
        """Omitted sections and roles fall back to defaults."""
        write_config(
            tmp_path,
            {
                "providers": {"openai": {"api_key": "sk-test"}},
                "agents": {"coder": {"provider": "openai", "model": "gpt-4o"}},
                "workflow": {"max_iterations": 2, "test_command": "npm test"},
            },
        )

        config = load_config(tmp_path)

        assert config.agent(AgentRole.CODER).model == "gpt-4o"
        assert config.agent(AgentRole.REVIEWER).model == "llama3.2:latest"
        assert config.provider("openai").api_key == "sk-test"
        assert config.workflow.max_iterations == 2
        assert config.workflow.auto_run_tests is True
        assert config.resources.cache_size == 100

    def test_unknown_provider_settings_default(self) -> None:
        """Providers missing from the file get default settings."""
        assert AppConfig().provider("openai").timeout == 300.0

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Broken JSON is a ConfigError naming the file."""
        write_config(tmp_path, "{oops")

        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path)

        assert "Invalid JSON" in str(exc_info.value)
        assert exc_info.value.context["path"].endswith("config.json")

    @pytest.mark.parametrize(
        "data",
        [
            {"workflow": {"max_iterations": 0}},
            {"workflow": {"max_iteration": 3}},
            {"agents": {"designer": {}}},
            {"agents": {"coder": {"temperature": 5}}},
        ],
    )
    def test_invalid_values(self, tmp_path: Path, data: dict) -> None:
        """Out-of-range values, unknown keys and unknown roles are rejected."""
        write_config(tmp_path, data)

        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(tmp_path)


class TestSaveConfig:
    """Tests for save_config()."""

    def test_save_then_load(self, tmp_path: Path) -> None:
        """A saved config loads back equal."""
        config = AppConfig.model_validate(
            {"workflow": {"streaming": True}, "project": {"language": "typescript"}}
        )

        path = save_config(tmp_path, config)

        assert path == config_path(tmp_path)
        assert load_config(tmp_path) == config
