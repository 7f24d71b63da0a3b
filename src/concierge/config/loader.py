"""
Concierge YAML Configuration Loader

Reads the configuration directory:

    config/
      policies.yaml
      faqs.yaml
      prompts/system.txt
      prompts/tools.txt

Any missing file or schema mismatch raises ConfigurationError, which is
fatal at startup.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from concierge.config.schema import AppConfig, FAQConfig, PolicyConfig, PromptConfig
from concierge.exceptions import ConfigurationError

REQUIRED_FILES = (
    "policies.yaml",
    "faqs.yaml",
    "prompts/system.txt",
    "prompts/tools.txt",
)

DEFAULT_CONFIG_DIR = "config"

M = TypeVar("M", bound=BaseModel)


def default_config_dir() -> Path:
    return Path(os.environ.get("CONCIERGE_CONFIG_DIR", DEFAULT_CONFIG_DIR))


def validate_config_directory(config_dir: Path) -> None:
    if not config_dir.is_dir():
        raise ConfigurationError("Config directory does not exist", "directory", str(config_dir))

    for name in REQUIRED_FILES:
        path = config_dir / name
        if not path.is_file():
            raise ConfigurationError(
                f"Required configuration file missing: {name}", "file", str(path)
            )


def load_yaml_file(path: Path, model: type[M]) -> M:
    """Parse a YAML file and validate it against ``model``."""
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load YAML: {e}", path.name, str(path)) from e

    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        raise ConfigurationError(
            f"Schema validation failed: {e}", path.name, str(path)
        ) from e


def load_prompt_config(config_dir: Path) -> PromptConfig:
    prompts_dir = config_dir / "prompts"
    try:
        system = (prompts_dir / "system.txt").read_text(encoding="utf-8")
        tools = (prompts_dir / "tools.txt").read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            f"Failed to load prompt files: {e}", "prompts", str(prompts_dir)
        ) from e
    return PromptConfig(system=system, tools=tools)


def load_app_config(config_dir: Path | str | None = None) -> AppConfig:
    """Load and validate the full configuration set."""
    root = Path(config_dir) if config_dir is not None else default_config_dir()
    validate_config_directory(root)

    return AppConfig(
        policies=load_yaml_file(root / "policies.yaml", PolicyConfig),
        faqs=load_yaml_file(root / "faqs.yaml", FAQConfig),
        prompts=load_prompt_config(root),
    )
