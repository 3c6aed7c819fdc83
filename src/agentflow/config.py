"""
Project configuration.

Loaded from <project_root>/.agentflow/config.json and validated with
pydantic. A project without a config file runs on the defaults: every
role on a local Ollama model, with human approval enabled.
"""

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agentflow.domain.exceptions import ConfigError
from agentflow.domain.models import AgentRole, InvocationOptions

CONFIG_DIR = ".agentflow"
CONFIG_FILE = "config.json"

DEFAULT_MODEL = "llama3.2:latest"
DEFAULT_OLLAMA_URL = "http://localhost:11434/v1"


class _Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ProviderSettings(_Settings):
    """Connection settings for one provider."""

    base_url: str | None = None
    api_key: str | None = None
    timeout: float = Field(default=300.0, gt=0)
    max_retries: int = Field(default=3, ge=0)  # Retries after the first attempt


class AgentRoleConfig(_Settings):
    """Model selection for one role."""

    provider: str = "ollama"
    model: str = DEFAULT_MODEL
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, gt=0)

    def to_options(self) -> InvocationOptions:
        return InvocationOptions(
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )


def _default_agents() -> dict[AgentRole, AgentRoleConfig]:
    return {
        AgentRole.ARCHITECT: AgentRoleConfig(temperature=0.5),
        AgentRole.CODER: AgentRoleConfig(temperature=0.3, max_tokens=8192),
        AgentRole.REVIEWER: AgentRoleConfig(temperature=0.4),
        AgentRole.TESTER: AgentRoleConfig(temperature=0.3),
        AgentRole.FIXER: AgentRoleConfig(temperature=0.3, max_tokens=8192),
        AgentRole.JUDGE: AgentRoleConfig(temperature=0.2),
    }


class ProjectSettings(_Settings):
    """Project metadata passed to agents."""

    language: str = "python"
    framework: str = "none"
    test_framework: str = "pytest"


class WorkflowSettings(_Settings):
    max_iterations: int = Field(default=5, ge=1)
    human_approval: bool = True
    auto_run_tests: bool = True
    test_command: str = "pytest"
    test_timeout: float = Field(default=120.0, gt=0)
    streaming: bool = False


class ResourceSettings(_Settings):
    """Limits for the shared pool, cache and context optimizer."""

    max_connections: int = Field(default=10, ge=1)
    idle_timeout: float = Field(default=60.0, gt=0)
    max_lifetime: float = Field(default=300.0, gt=0)
    cache_size: int = Field(default=100, ge=1)
    cache_ttl: float = Field(default=3600.0, gt=0)
    max_context_tokens: int = Field(default=100_000, gt=0)
    min_recent_tokens: int = Field(default=20_000, ge=0)


class AppConfig(_Settings):
    """Complete configuration for one project."""

    version: int = 1
    providers: dict[str, ProviderSettings] = Field(
        default_factory=lambda: {"ollama": ProviderSettings(base_url=DEFAULT_OLLAMA_URL)}
    )
    agents: dict[AgentRole, AgentRoleConfig] = Field(default_factory=_default_agents)
    project: ProjectSettings = Field(default_factory=ProjectSettings)
    workflow: WorkflowSettings = Field(default_factory=WorkflowSettings)
    resources: ResourceSettings = Field(default_factory=ResourceSettings)

    def agent(self, role: AgentRole) -> AgentRoleConfig:
        """Role config, falling back to defaults for roles left out of the file."""
        return self.agents.get(role) or _default_agents()[role]

    def provider(self, name: str) -> ProviderSettings:
        return self.providers.get(name) or ProviderSettings()


def config_path(project_root: Path) -> Path:
    return Path(project_root) / CONFIG_DIR / CONFIG_FILE


def load_config(project_root: Path) -> AppConfig:
    """
    Load the project's configuration.

    Args:
        project_root: Project directory

    Returns:
        Parsed config, or defaults when no config file exists

    Raises:
        ConfigError: If the file is unreadable, not JSON, or fails validation
    """
    path = config_path(project_root)
    if not path.exists():
        return AppConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}", {"path": str(path)}) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", {"path": str(path)}) from e

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration in {path}: {e.error_count()} error(s)\n{e}",
            {"path": str(path)},
        ) from e


def save_config(project_root: Path, config: AppConfig) -> Path:
    """Write config.json, creating .agentflow/ if needed."""
    path = config_path(project_root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config.model_dump_json(indent=2, exclude_none=True) + "\n", encoding="utf-8")
    return path
