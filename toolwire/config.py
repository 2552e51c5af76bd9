"""Configuration loading for toolwire.

Config precedence (lowest to highest):
1. Built-in defaults (in code)
2. ~/.toolwire/config.toml (user global)
3. ./.toolwire/config.toml (repo local)
4. Explicit --config path
5. Environment variables (TOOLWIRE_*)
6. CLI flags (applied by the caller)
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
import logging
import os
from pathlib import Path
import sys
from typing import Any, Callable

# tomli for Python < 3.11, else tomllib
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)


@dataclass
class BackendConfig:
    """OpenAI-compatible endpoint configuration."""

    url: str = "http://localhost:8080/v1"
    api_key: str = ""
    timeout: int = 120
    temperature: float = 0.7
    max_tokens: int = 2048
    max_retries: int = 2


@dataclass
class AgentConfig:
    """Agent configuration."""

    model: str = "qwen2.5-coder:7b"
    # Upper bound on model requests for one user question
    max_turns: int = 20
    max_malformed_retries: int = 3
    max_nudges: int = 2
    system_prompt: str = ""
    prompts_dir: str = ""


@dataclass
class ToolsConfig:
    """Tool calling configuration.

    native_tools=False sends no tool definitions; the tool list is described
    in the system prompt and calls are recovered from the reply text.
    """

    native_tools: bool = True
    allowed_roots: list[str] = field(default_factory=lambda: ["."])
    enable_bash: bool = True
    command_timeout: int = 60
    command_blacklist: list[str] = field(
        default_factory=lambda: ["sudo", "su", "mkfs", "shutdown", "reboot"]
    )
    auto_approve: bool = False


@dataclass
class UIConfig:
    """UI configuration."""

    color: str = "auto"  # "auto" | "never"
    quiet: bool = False
    show_tokens: bool = True


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "WARNING"
    format: str = "text"  # "text" | "json"
    file: str = ""  # optional JSONL log file


@dataclass
class Config:
    """Root configuration."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: str | None = None) -> Config:
        """Load configuration with precedence."""
        config = cls()

        # Load from files (lowest to highest priority)
        config_files = [
            Path.home() / ".toolwire" / "config.toml",
            Path.cwd() / ".toolwire" / "config.toml",
        ]

        if config_path:
            explicit = Path(config_path).expanduser()
            if not explicit.exists():
                raise FileNotFoundError(f"Config file not found: {explicit}")
            config_files.append(explicit)

        for path in config_files:
            if path.exists():
                config = _merge_config(config, _load_toml(path))

        # Apply environment overrides
        config = _apply_env_overrides(config)

        return config


def _load_toml(path: Path) -> dict[str, Any]:
    """Load TOML file, logging and skipping unreadable ones."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Ignoring config file {path}: {e}")
        return {}


def _merge_config(config: Config, data: dict[str, Any]) -> Config:
    """Merge TOML data into config, section by section.

    Unknown sections and keys are ignored.
    """
    for section_field in fields(config):
        section_data = data.get(section_field.name)
        if not isinstance(section_data, dict):
            continue
        section_obj = getattr(config, section_field.name)
        known = {f.name for f in fields(section_obj)}
        for key, value in section_data.items():
            if key in known:
                setattr(section_obj, key, value)
            else:
                logger.debug(f"Unknown config key [{section_field.name}] {key}")
    return config


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value}")


def _parse_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(os.pathsep) if item.strip()]


ENV_MAP: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "TOOLWIRE_MODEL": ("agent", "model", str),
    "TOOLWIRE_MAX_TURNS": ("agent", "max_turns", int),
    "TOOLWIRE_URL": ("backend", "url", str),
    "TOOLWIRE_API_KEY": ("backend", "api_key", str),
    "TOOLWIRE_TIMEOUT": ("backend", "timeout", int),
    "TOOLWIRE_TEMPERATURE": ("backend", "temperature", float),
    "TOOLWIRE_NATIVE_TOOLS": ("tools", "native_tools", _parse_bool),
    "TOOLWIRE_AUTO_APPROVE": ("tools", "auto_approve", _parse_bool),
    "TOOLWIRE_ALLOWED_ROOTS": ("tools", "allowed_roots", _parse_list),
    "TOOLWIRE_LOG_LEVEL": ("logging", "level", str),
    "TOOLWIRE_LOG_FORMAT": ("logging", "format", str),
}


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides.

    Pattern: TOOLWIRE_KEY, e.g. TOOLWIRE_MODEL, TOOLWIRE_URL
    """
    for env_var, (section, key, converter) in ENV_MAP.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        section_obj = getattr(config, section)
        try:
            setattr(section_obj, key, converter(value))
        except (ValueError, TypeError):
            logger.warning(f"Ignoring invalid value for {env_var}: {value!r}")

    return config


# Convenience function
def load_config(config_path: str | None = None) -> Config:
    """Load configuration."""
    return Config.load(config_path)
