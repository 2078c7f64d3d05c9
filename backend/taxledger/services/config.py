"""Configuration loading and validation for the accounting engine."""

import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    path: str
    message: str


class ConfigValidationException(Exception):
    """Raised when config validation fails."""

    def __init__(self, errors: List[ConfigValidationError]):
        self.errors = errors
        messages = [f"{e.path}: {e.message}" for e in errors]
        super().__init__("Configuration validation failed:\n" + "\n".join(messages))


@dataclass(frozen=True)
class ConfigOption:
    """One recognised setting, addressed as "section.key"."""
    kind: type
    item_kind: Optional[type] = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    choices: Optional[Sequence[str]] = None

    def check(self, value: Any, path: str) -> List[ConfigValidationError]:
        if not _is_instance(value, self.kind):
            return [ConfigValidationError(
                path, f"Expected {self.kind.__name__}, got {type(value).__name__}"
            )]

        errors = []
        if self.item_kind is not None:
            errors.extend(
                ConfigValidationError(
                    f"{path}[{i}]",
                    f"Expected {self.item_kind.__name__}, got {type(item).__name__}",
                )
                for i, item in enumerate(value)
                if not _is_instance(item, self.item_kind)
            )
        if self.minimum is not None and value < self.minimum:
            errors.append(ConfigValidationError(path, f"Value {value} is below minimum {self.minimum}"))
        if self.maximum is not None and value > self.maximum:
            errors.append(ConfigValidationError(path, f"Value {value} is above maximum {self.maximum}"))
        if self.choices is not None and value not in self.choices:
            errors.append(ConfigValidationError(
                path, f"Value '{value}' not in allowed options: {list(self.choices)}"
            ))
        return errors


def _is_instance(value: Any, kind: type) -> bool:
    # YAML "true" must not satisfy an int setting
    if kind is int and isinstance(value, bool):
        return False
    return isinstance(value, kind)


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Every setting is optional; callers pass their own default to get()
CONFIG_OPTIONS: Dict[str, ConfigOption] = {
    "accounting.allow_dividend_without_holdings": ConfigOption(bool),
    "accounting.validate_invariants": ConfigOption(bool),
    "feed.path": ConfigOption(str),
    "feed.date_formats": ConfigOption(list, item_kind=str),
    "report.price_decimals": ConfigOption(int, minimum=0, maximum=8),
    "report.amount_decimals": ConfigOption(int, minimum=0, maximum=8),
    "logging.level": ConfigOption(str, choices=LOG_LEVELS),
    "logging.format": ConfigOption(str),
}


def _sections() -> Dict[str, List[Tuple[str, ConfigOption]]]:
    sections: Dict[str, List[Tuple[str, ConfigOption]]] = {}
    for dotted, option in CONFIG_OPTIONS.items():
        section, key = dotted.split(".", 1)
        sections.setdefault(section, []).append((key, option))
    return sections


class ConfigService:
    """Service for loading and validating configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize config service.

        Args:
            config_path: Path to config file. If None, uses TAXLEDGER_CONFIG
                or config.yaml in the working directory.
        """
        if config_path is None:
            config_path = os.environ.get("TAXLEDGER_CONFIG", str(Path.cwd() / "config.yaml"))

        self.config_path = config_path
        self._config: Dict[str, Any] = {}

    def load_and_validate(self) -> Dict[str, Any]:
        """Load and validate the configuration file.

        A missing or empty file means "all defaults".

        Returns:
            Validated configuration dictionary.

        Raises:
            ConfigValidationException: If validation fails.
        """
        if not os.path.exists(self.config_path):
            logger.warning(f"Config file not found at {self.config_path}, using defaults")
            self._config = {}
            return self._config

        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigValidationException([
                ConfigValidationError("", f"Invalid YAML syntax: {e}")
            ])

        if config is None:
            config = {}

        if not isinstance(config, dict):
            raise ConfigValidationException([
                ConfigValidationError("", f"Config must be a dictionary, got {type(config).__name__}")
            ])

        errors = self.validate(config)
        if errors:
            raise ConfigValidationException(errors)

        self._config = config
        logger.info(f"Configuration loaded and validated from {self.config_path}")
        return config

    @staticmethod
    def validate(config: Dict[str, Any]) -> List[ConfigValidationError]:
        """Check a parsed config mapping against CONFIG_OPTIONS."""
        errors: List[ConfigValidationError] = []
        sections = _sections()

        for section, values in config.items():
            if section not in sections:
                errors.append(ConfigValidationError(section, f"Unknown configuration key '{section}'"))
                continue
            if not isinstance(values, dict):
                errors.append(ConfigValidationError(
                    section, f"Expected dict, got {type(values).__name__}"
                ))
                continue

            options = dict(sections[section])
            for key, value in values.items():
                path = f"{section}.{key}"
                option = options.get(key)
                if option is None:
                    errors.append(ConfigValidationError(path, f"Unknown configuration key '{key}'"))
                else:
                    errors.extend(option.check(value, path))

        return errors

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            key: Dot-notation key (e.g., "report.price_decimals")
            default: Default value if not found

        Returns:
            Configuration value
        """
        value: Any = self._config
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value


# Global config service instance
config_service = ConfigService()
