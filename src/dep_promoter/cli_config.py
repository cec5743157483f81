"""
Configuration management for dep-promoter.

Settings come from (lowest precedence first) dataclass defaults, a config
file, ``DEP_PROMOTER_*`` environment variables and finally CLI flags.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

console = Console(stderr=True)

OUTPUT_FORMATS = ("console", "json")


@dataclass
class PromotionConfig:
    """Core promotion settings."""

    minimum_occurrences: int = 2
    workspace_root: Optional[str] = None
    quiet: bool = False
    verbose: bool = False
    dry_run: bool = False
    output_format: str = "console"


@dataclass
class SecurityConfig:
    """Manifest validation limits."""

    max_file_size_mb: int = 5
    allowed_file_extensions: List[str] = field(default_factory=lambda: [".toml"])

    @property
    def max_file_size_bytes(self) -> int:
        """Convert MB to bytes for internal use."""
        return self.max_file_size_mb * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "WARNING"
    structured: bool = True


@dataclass
class ComprehensiveConfig:
    """Main configuration containing all subsections."""

    promotion: PromotionConfig = field(default_factory=PromotionConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Global configuration instance
_global_config: Optional[ComprehensiveConfig] = None


def validate_config_values(config: ComprehensiveConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    occurrences = config.promotion.minimum_occurrences
    if isinstance(occurrences, bool) or not isinstance(occurrences, int) or occurrences < 1:
        errors.append("promotion.minimum_occurrences must be a positive integer")
    if config.promotion.output_format not in OUTPUT_FORMATS:
        errors.append(
            f"promotion.output_format must be one of: {', '.join(OUTPUT_FORMATS)}"
        )

    max_size = config.security.max_file_size_mb
    if isinstance(max_size, bool) or not isinstance(max_size, (int, float)) or max_size <= 0:
        errors.append("security.max_file_size_mb must be positive")
    if not config.security.allowed_file_extensions:
        errors.append("security.allowed_file_extensions must not be empty")

    if config.logging.log_level.upper() not in (
        "DEBUG",
        "INFO",
        "WARNING",
        "ERROR",
        "CRITICAL",
    ):
        errors.append(f"logging.log_level is not a valid level: {config.logging.log_level}")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON or YAML file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                data = yaml.safe_load(f)
            elif config_path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                return None
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )
        return None

    if not isinstance(data, dict):
        console.print(
            f"⚠️  Config file {config_path} must contain a mapping", style="yellow"
        )
        return None
    return data


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".dep-promoter.json",
        Path.cwd() / ".dep-promoter.yaml",
        Path.cwd() / ".dep-promoter.yml",
        Path.home() / ".config" / "dep-promoter" / "config.json",
        Path.home() / ".config" / "dep-promoter" / "config.yaml",
        Path.home() / ".dep-promoter.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: ComprehensiveConfig) -> None:
    """Load environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    def get_env_int(key: str, default: Optional[int] = None) -> Optional[int]:
        try:
            return int(os.environ[key]) if key in os.environ else default
        except ValueError:
            console.print(
                f"⚠️  Invalid integer value for {key}, using default", style="yellow"
            )
            return default

    if (min_occurrences := get_env_int("DEP_PROMOTER_MIN_OCCURRENCES")) is not None:
        config.promotion.minimum_occurrences = min_occurrences
    if workspace_root := os.environ.get("DEP_PROMOTER_WORKSPACE_ROOT"):
        config.promotion.workspace_root = workspace_root
    config.promotion.quiet = get_env_bool("DEP_PROMOTER_QUIET", config.promotion.quiet)
    config.promotion.verbose = get_env_bool(
        "DEP_PROMOTER_VERBOSE", config.promotion.verbose
    )

    if (max_file_size := get_env_int("DEP_PROMOTER_MAX_FILE_SIZE_MB")) is not None:
        config.security.max_file_size_mb = max_file_size

    if log_level := os.environ.get("DEP_PROMOTER_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def apply_config_data(config: ComprehensiveConfig, file_config: Dict[str, Any]) -> None:
    """Apply a parsed config file on top of ``config``."""
    for section_name in ("promotion", "security", "logging"):
        section_data = file_config.get(section_name)
        if isinstance(section_data, dict):
            apply_config_section(
                getattr(config, section_name), section_data, section_name
            )


def load_config() -> ComprehensiveConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = ComprehensiveConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            apply_config_data(config, file_config)

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        defaults = ComprehensiveConfig()
        if "security.max_file_size_mb must be positive" in validation_errors:
            console.print("Using the default manifest size limit.", style="yellow")
            config.security.max_file_size_mb = defaults.security.max_file_size_mb
        if config.promotion.output_format not in OUTPUT_FORMATS:
            config.promotion.output_format = defaults.promotion.output_format

    _global_config = config
    return config


def get_config() -> ComprehensiveConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate sample configuration."""
    return json.dumps(ComprehensiveConfig().to_dict(), indent=2)
