"""
Configuration management for segmentation agreement.

This module provides:
- Pydantic models for type-safe configuration
- YAML configuration loading
- Environment variable overrides
- Configuration validation

Configuration is loaded from YAML files and can be overridden via:
1. Environment variables (SEGAGREE_<SECTION>__<KEY>)
2. Command-line arguments
3. Local config file (config/config.local.yml)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, Union

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Configuration Models
# =============================================================================


class GammaConfig(BaseModel):
    """Gamma measure and expected disorder estimation settings."""

    # Relative precision and confidence complement of the expected disorder
    precision: float = Field(default=0.01, gt=0.0)
    alpha: float = Field(default=0.05, gt=0.0, lt=1.0)

    # Aligner
    gap_weight: int = Field(default=1, ge=1)
    max_alignments: Optional[int] = Field(default=10_000, ge=1)
    max_distance: Optional[int] = Field(default=None, ge=0)

    # Estimator batches
    min_samples: int = Field(default=30, ge=2)
    max_samples: Optional[int] = Field(default=1_000_000, ge=2)

    @field_validator("max_samples")
    @classmethod
    def check_sample_bounds(cls, v: Optional[int], info: Any) -> Optional[int]:
        """Ensure the sample cap does not undercut the first batch."""
        min_samples = info.data.get("min_samples")
        if v is not None and min_samples is not None and v < min_samples:
            raise ValueError(f"max_samples ({v}) must be >= min_samples ({min_samples})")
        return v


class SamplerConfig(BaseModel):
    """Disorder sampler settings."""

    text_change_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    segment_change_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    random_seed: Optional[int] = 42


class UnitizingConfig(BaseModel):
    """Continuum alpha settings."""

    decimal_precision: int = Field(default=34, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    rich_console: bool = True

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Accept level names in any case."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class OutputConfig(BaseModel):
    """Output configuration."""

    json_indent: int = Field(default=2, ge=0)
    decimals: int = Field(default=4, ge=0)


# =============================================================================
# Main Configuration Class
# =============================================================================


class AgreementConfig(BaseSettings):
    """
    Main configuration class for segmentation agreement.

    Loads configuration from YAML files with environment variable overrides.
    Environment variables use the prefix SEGAGREE_ and nested keys are
    separated by double underscores (e.g., SEGAGREE_GAMMA__PRECISION).
    """

    model_config = SettingsConfigDict(
        env_prefix="SEGAGREE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    gamma: GammaConfig = Field(default_factory=GammaConfig)
    sampler: SamplerConfig = Field(default_factory=SamplerConfig)
    unitizing: UnitizingConfig = Field(default_factory=UnitizingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    # Runtime attributes (not from config file)
    _project_root: Optional[Path] = None
    _config_path: Optional[Path] = None

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        if self._project_root is not None:
            return self._project_root
        return Path.cwd()

    @property
    def config_path(self) -> Optional[Path]:
        """Path of the YAML file this configuration was loaded from, if any."""
        return self._config_path


# =============================================================================
# Configuration Loading
# =============================================================================


CONFIG_CANDIDATES = ("config/config.yml", "config/config.yaml")
LOCAL_CONFIG_NAME = "config.local.yml"

SECTION_MODELS: Dict[str, Type[BaseModel]] = {
    "gamma": GammaConfig,
    "sampler": SamplerConfig,
    "unitizing": UnitizingConfig,
    "logging": LoggingConfig,
    "output": OutputConfig,
}


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    project_root: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> AgreementConfig:
    """
    Load configuration from YAML file with optional overrides.

    Settings are layered as: defaults, environment variables, the config
    file, ``config.local.yml`` next to it, then ``overrides``.

    Args:
        config_path: Path to config YAML file. If None, looks for config/config.yml
        project_root: Project root directory. If None, uses current directory
        overrides: ``"section.field"`` keys mapped to values

    Returns:
        Loaded and validated AgreementConfig instance

    Raises:
        ValueError: If an override names an unknown setting or a file does not
            hold a mapping

    Example:
        >>> config = load_config("config/config.yml")
        >>> config = load_config(overrides={"gamma.precision": 0.05})
    """
    root = Path(project_root) if project_root is not None else Path.cwd()

    if config_path is not None:
        cfg_path: Optional[Path] = Path(config_path)
        if not cfg_path.is_absolute():
            cfg_path = root / cfg_path
    else:
        cfg_path = next(
            (root / name for name in CONFIG_CANDIDATES if (root / name).exists()), None
        )

    sections: Dict[str, Dict[str, Any]] = {}
    if cfg_path is not None:
        for path in (cfg_path, cfg_path.parent / LOCAL_CONFIG_NAME):
            if path.exists():
                _update_sections(sections, _read_sections(path))

    for key, value in (overrides or {}).items():
        section, name = _split_key(key)
        sections.setdefault(section, {})[name] = value

    config = AgreementConfig(**sections)
    config._project_root = root
    config._config_path = cfg_path
    return config


def _read_sections(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: expected a mapping of configuration sections")
    return data


def _update_sections(sections: Dict[str, Any], data: Dict[str, Any]) -> None:
    # Sections are merged field by field; unknown top-level keys are ignored later
    for section, values in data.items():
        if section in SECTION_MODELS and isinstance(values, dict):
            sections.setdefault(section, {}).update(values)
        else:
            sections[section] = values


def _split_key(key: str) -> Tuple[str, str]:
    section, _, name = key.partition(".")
    model = SECTION_MODELS.get(section)
    if model is None or name not in model.model_fields:
        raise ValueError(f"Unknown configuration setting: {key}")
    return section, name


def save_config(config: AgreementConfig, path: Union[str, Path]) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: AgreementConfig instance to save
        path: Output path for YAML file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)
