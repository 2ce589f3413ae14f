"""
Configuration loader for roxy.
Loads settings from ~/.roxy/config.toml, environment overrides, and defaults.
"""
from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigError


ROOT_PATH = Path.home() / ".roxy"
CONFIG_PATH = ROOT_PATH / "config.toml"
WORKSPACE_PATH = ROOT_PATH / "workspace"

DEFAULT_MODEL = "deepseek/deepseek-chat"
DEFAULT_BASE_URL = "https://api.deepseek.com"
DEFAULT_MAX_ITERATIONS = 7

DEFAULT_CONFIG = f"""\
workspace = "{WORKSPACE_PATH.as_posix()}"
model = "{DEFAULT_MODEL}"
stream = true
max_iterations = {DEFAULT_MAX_ITERATIONS}
log_level = "INFO"

[providers.deepseek]
api_key = ""
base_url = "{DEFAULT_BASE_URL}"
"""

WORKSPACE_FILES = {
    "USER.md": "# User Information\n\nThis file contains user-specific information and preferences.\n",
    "MEMORY.md": "# Memory\n\nThis file stores important memories and learnings.\n",
    "SOUL.md": "# Soul\n\nThis file represents the core identity and values.\n",
    "AGENT.md": "# Agent Configuration\n\nThis file contains agent-specific configurations and behaviors.\n",
}


@dataclass
class Settings:
    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    model: str = "deepseek-chat"
    provider: str = "deepseek"
    workspace: Path = WORKSPACE_PATH
    session_dir: Path = ROOT_PATH / "sessions"
    data_dir: Path = ROOT_PATH / "data"
    stream: bool = True
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    command_timeout: float = 10.0
    safety_strict: bool = True
    log_level: str = "INFO"
    system_prompt: str = "You are a helpful AI assistant."
    providers: dict = field(default_factory=dict)


def _as_bool(value) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def split_model(model: str) -> tuple[str | None, str]:
    """'deepseek/deepseek-chat' -> ('deepseek', 'deepseek-chat')."""
    provider, sep, name = model.partition("/")
    if not sep:
        return None, model
    return provider, name


def load_settings(config_path: Path | None = None) -> Settings:
    config_file = config_path or Path(os.getenv("ROXY_CONFIG", CONFIG_PATH))
    data = {}
    if config_file.exists():
        try:
            with config_file.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid config file {config_file}: {exc}") from exc

    full_model = os.getenv("ROXY_MODEL", data.get("model", DEFAULT_MODEL))
    provider, model = split_model(full_model)
    providers = data.get("providers", {})
    if provider and providers and provider not in providers:
        raise ConfigError(f"Model {full_model!r} names unknown provider {provider!r}")
    provider_cfg = providers.get(provider, {}) if provider else {}

    base_url = os.getenv("ROXY_BASE_URL", provider_cfg.get("base_url", data.get("base_url", DEFAULT_BASE_URL)))
    api_key = os.getenv("ROXY_API_KEY", provider_cfg.get("api_key", data.get("api_key", "")))
    workspace = Path(os.getenv("ROXY_WORKSPACE", data.get("workspace", WORKSPACE_PATH))).expanduser()
    data_dir = Path(os.getenv("ROXY_DATA_DIR", data.get("data_dir", ROOT_PATH / "data"))).expanduser()
    session_dir = Path(data.get("session_dir", ROOT_PATH / "sessions")).expanduser()
    stream = _as_bool(os.getenv("ROXY_STREAM", data.get("stream", True)))
    log_level = os.getenv("ROXY_LOG_LEVEL", data.get("log_level", "INFO"))
    try:
        max_iterations = int(os.getenv("ROXY_MAX_ITERATIONS", data.get("max_iterations", DEFAULT_MAX_ITERATIONS)))
        command_timeout = float(data.get("command_timeout", 10.0))
    except ValueError as exc:
        raise ConfigError(f"Invalid numeric setting: {exc}") from exc
    if max_iterations < 1:
        raise ConfigError("max_iterations must be at least 1")

    return Settings(
        base_url=base_url,
        api_key=api_key,
        model=model,
        provider=provider or "",
        workspace=workspace,
        session_dir=session_dir,
        data_dir=data_dir,
        stream=stream,
        max_iterations=max_iterations,
        command_timeout=command_timeout,
        safety_strict=_as_bool(data.get("safety_strict", True)),
        log_level=log_level,
        system_prompt=data.get("system_prompt", Settings.system_prompt),
        providers=providers,
    )


def init_config(config_path: Path | None = None, workspace: Path | None = None) -> Path:
    """Write the default config (if absent) and seed the workspace files."""
    config_file = config_path or Path(os.getenv("ROXY_CONFIG", CONFIG_PATH))
    config_file.parent.mkdir(parents=True, exist_ok=True)
    workspace = workspace or WORKSPACE_PATH
    workspace.mkdir(parents=True, exist_ok=True)
    for name, content in WORKSPACE_FILES.items():
        path = workspace / name
        if not path.exists():
            path.write_text(content, encoding="utf-8")
    if not config_file.exists():
        text = DEFAULT_CONFIG
        if workspace != WORKSPACE_PATH:
            text = text.replace(WORKSPACE_PATH.as_posix(), workspace.as_posix())
        config_file.write_text(text, encoding="utf-8")
    return config_file
