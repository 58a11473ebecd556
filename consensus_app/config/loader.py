"""Configuration loader with 3-tier parameter precedence."""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from ..errors import ConfigurationError
from .defaults import DefaultConfig, get_default_config

logger = structlog.get_logger(__name__)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``, recursing into nested sections."""
    result = base.copy()

    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: DefaultConfig
    filename: str = "engine.yaml"

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader for ``config_dir`` (repo ``config/`` by default)."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(config_dir=Path(config_dir), defaults=get_default_config())

    @property
    def config_file(self) -> Path:
        return self.config_dir / self.filename

    def load_file_config(self) -> dict[str, Any]:
        """
        Load deployment settings from the YAML file.

        A missing file is an empty tier. A file whose top level is not a
        mapping of sections raises ConfigurationError.
        """
        if not self.config_file.exists():
            return {}

        with open(self.config_file) as f:
            try:
                file_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Unreadable {self.filename}: {e}") from e

        if file_config is None:
            return {}
        if not isinstance(file_config, dict):
            raise ConfigurationError(
                f"{self.filename} must contain a mapping of sections",
                context={"path": str(self.config_file)}
            )
        return file_config

    def merge_config(self, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides (highest priority)
        2. YAML file settings
        3. Global defaults (lowest priority)
        """
        config = deep_merge(asdict(self.defaults), self.load_file_config())
        return deep_merge(config, overrides or {})

    def build_config(self, overrides: Optional[dict[str, Any]] = None) -> DefaultConfig:
        """Merge all tiers and rebuild the typed configuration."""
        merged = self.merge_config(overrides)

        sections = {}
        for section in fields(DefaultConfig):
            section_cls = type(getattr(self.defaults, section.name))
            known = {f.name for f in fields(section_cls)}
            values = merged.get(section.name) or {}

            unknown = sorted(set(values) - known)
            if unknown:
                logger.warning("Ignoring unknown configuration keys",
                               section=section.name, keys=unknown)

            sections[section.name] = section_cls(**{k: v for k, v in values.items() if k in known})
        return DefaultConfig(**sections)
