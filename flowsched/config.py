"""
Configuration management for flowsched.

Loads config.yaml from the flowsched home directory:

    ~/.config/flowsched/config.yaml   (or $FLOWSCHED_HOME/config.yaml)

Example:
    schedules_dir: ~/.local/share/flowsched/schedules
    poll_interval: 10
    wait_interval: 60
    log_level: INFO
    log_format: pretty
    smtp_host: localhost
    executor_factory: mybackend.executors:build_executor
    env_file: ~/.config/flowsched/.env
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv


class ConfigError(Exception):
    """Configuration validation error."""
    pass


def get_flowsched_home() -> Path:
    """Directory holding config.yaml ($FLOWSCHED_HOME or ~/.config/flowsched)."""
    env_home = os.environ.get("FLOWSCHED_HOME")
    if env_home:
        return Path(env_home).expanduser()
    return Path("~/.config/flowsched").expanduser()


@dataclass
class FlowschedConfig:
    """Complete flowsched configuration."""
    schedules_dir: str = "~/.local/share/flowsched/schedules"
    poll_interval: float = 10.0
    wait_interval: float = 60.0
    log_file: Optional[str] = None
    log_level: str = "INFO"
    log_format: str = "pretty"
    console_log: bool = True
    smtp_host: Optional[str] = None
    smtp_port: int = 25
    email_from: str = "flowsched@localhost"
    executor_factory: Optional[str] = None
    env_file: Optional[str] = None

    @property
    def schedules_path(self) -> Path:
        return Path(self.schedules_dir).expanduser()

    @property
    def log_path(self) -> Optional[Path]:
        return Path(self.log_file).expanduser() if self.log_file else None

    def validate(self) -> None:
        """Validate configuration values."""
        if self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.wait_interval < 0:
            raise ConfigError(f"wait_interval must not be negative, got {self.wait_interval}")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Unknown log_level: {self.log_level}")
        if self.log_format not in ("structured", "pretty"):
            raise ConfigError(f"log_format must be 'structured' or 'pretty', got {self.log_format}")
        if self.executor_factory and ":" not in self.executor_factory:
            raise ConfigError(f"executor_factory must be 'module:function', got {self.executor_factory}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FlowschedConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        try:
            config = cls(**data)
            config.poll_interval = float(config.poll_interval)
            config.wait_interval = float(config.wait_interval)
            config.smtp_port = int(config.smtp_port)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}")
        config.validate()
        return config

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_config(config_path: Optional[Path] = None) -> FlowschedConfig:
    """
    Load flowsched configuration from YAML.

    Args:
        config_path: Path to config file. Defaults to <home>/config.yaml

    Returns:
        FlowschedConfig instance

    Raises:
        FileNotFoundError: If the config file does not exist
        ConfigError: If config is invalid
    """
    if config_path is None:
        config_path = get_flowsched_home() / "config.yaml"

    if not config_path.exists():
        raise FileNotFoundError(f"flowsched config.yaml not found at {config_path}")

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}")

    if not isinstance(data, dict):
        raise ConfigError("Configuration file must contain a mapping")

    config = FlowschedConfig.from_dict(data)

    if config.env_file:
        env_path = Path(config.env_file).expanduser()
        if env_path.exists():
            load_dotenv(env_path)

    return config
