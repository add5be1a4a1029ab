"""Model registry and TOML configuration loader.

Loads model definitions from models.toml and pipeline defaults from
defaults.toml. Provides lookup for the model a run should use.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from commitgenie.schemas.pipeline import ModelConfig, PipelineConfig

# Default config directory inside the commitgenie package
_CONFIG_DIR = Path(__file__).parent.parent / "config"


def load_models(config_path: Path | None = None) -> dict[str, ModelConfig]:
    """Load the model registry from a TOML file.

    Args:
        config_path: Path to models.toml. Defaults to commitgenie/config/models.toml.

    Returns:
        Dictionary mapping model keys to ModelConfig instances.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML structure is invalid.
    """
    path = config_path or _CONFIG_DIR / "models.toml"
    if not path.exists():
        raise FileNotFoundError(f"Model registry not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    models_section = raw.get("models")
    if not models_section or not isinstance(models_section, dict):
        raise ValueError(f"No [models] section found in {path}")

    registry: dict[str, ModelConfig] = {}
    for key, entry in models_section.items():
        if not isinstance(entry, dict):
            continue
        registry[key] = ModelConfig(**entry)

    return registry


def load_pipeline_config(config_path: Path | None = None) -> PipelineConfig:
    """Load pipeline defaults from a TOML file.

    Args:
        config_path: Path to defaults.toml. Defaults to commitgenie/config/defaults.toml.

    Returns:
        PipelineConfig with values from the TOML file; keys missing from
        the file keep their schema defaults.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    pipeline_section = raw.get("pipeline", {})
    return PipelineConfig(**pipeline_section)


def resolve_model(registry: dict[str, ModelConfig], key: str = "") -> ModelConfig:
    """Pick the model a run should use.

    Args:
        registry: The loaded model registry.
        key: Registry key requested by the user; empty selects the first entry.

    Raises:
        ValueError: If the registry is empty or the key is unknown.
    """
    if not registry:
        raise ValueError("Model registry is empty")
    if not key:
        return next(iter(registry.values()))
    if key not in registry:
        known = ", ".join(sorted(registry))
        raise ValueError(f"Unknown model '{key}'. Available: {known}")
    return registry[key]
