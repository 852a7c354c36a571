"""Simple YAML configuration loader for chat2me."""

import copy
import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from dotenv import dotenv_values

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "provider": {
        "base_url": "https://api.openai.com/v1/chat/completions",
        "model": "gpt-3.5-turbo",
        "timeout_seconds": 60.0,
        "api_key_env": "OPENAI_API_KEY",
    },
    "session": {
        "language": "en-US",
        "tts_enabled": True,
    },
    "speech": {
        "google_credentials_path": "credentials.json",
        "sample_rate": 16000,
        "chunk_size": 1024,
        "partial_interval_seconds": 1.0,
        "silence_timeout_seconds": 1.5,
        "max_utterance_seconds": 30.0,
        "silence_threshold": 0.01,
    },
    "ui": {
        "language_picker": True,
        "menu": True,
    },
    "logging": {
        "level": "INFO",
        "file_path": "logs/chat2me.log",
        "console_output": False,
    },
    "env_file": ".env",
}


@dataclass(frozen=True)
class ProviderSettings:
    """Everything the completion provider needs, resolved once at startup."""
    api_key: str
    base_url: str
    model: str
    timeout_seconds: float

    def __repr__(self) -> str:
        # Keep the secret out of logs and tracebacks
        return (f"ProviderSettings(base_url={self.base_url!r}, model={self.model!r}, "
                f"timeout_seconds={self.timeout_seconds!r}, api_key={'***' if self.api_key else ''!r})")


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base (in place) and return base."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class Chat2MeConfig:
    """chat2me configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults are
                        used and relative paths resolve against the working directory.
        """
        self.config = copy.deepcopy(DEFAULT_CONFIG)

        if config_path is None:
            self.config_file = None
            self.base_dir = Path.cwd()
            logger.info("No configuration file given, using defaults")
        else:
            self.config_file = Path(config_path)
            if not self.config_file.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_file}")
            self.base_dir = self.config_file.parent
            logger.info(f"Loading configuration from: {self.config_file}")
            _merge(self.config, self._load_config())

        self._resolve_paths(self.config)
        self._environment: Optional[Dict[str, str]] = None

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if config is None:
            logger.warning(f"Configuration file {self.config_file} is empty, using defaults")
            return {}
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        speech = config.get('speech', {})
        if speech.get('google_credentials_path'):
            creds_path = speech['google_credentials_path']
            if not os.path.isabs(creds_path):
                speech['google_credentials_path'] = str(self.base_dir / creds_path)

        log_cfg = config.get('logging', {})
        if log_cfg.get('file_path'):
            log_path = log_cfg['file_path']
            if not os.path.isabs(log_path):
                log_cfg['file_path'] = str(self.base_dir / log_path)

        if config.get('env_file') and not os.path.isabs(config['env_file']):
            config['env_file'] = str(self.base_dir / config['env_file'])

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'provider.model').

        Args:
            key_path: Dot-separated key path (e.g., 'speech.sample_rate')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'session.language')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def _load_environment(self) -> Dict[str, str]:
        """Read the .env file once and overlay the process environment."""
        if self._environment is None:
            env: Dict[str, str] = {}
            env_file = self.get('env_file')
            if env_file and Path(env_file).exists():
                logger.info(f"Loading environment from: {env_file}")
                env.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
            env.update(os.environ)
            self._environment = env
        return self._environment

    def get_provider_settings(self) -> ProviderSettings:
        """Build provider settings. A missing API key is not fatal here."""
        key_name = self.get('provider.api_key_env', 'OPENAI_API_KEY')
        api_key = self._load_environment().get(key_name, "")
        if not api_key:
            logger.warning(f"{key_name} is not set; completion requests will fail until it is")

        return ProviderSettings(
            api_key=api_key,
            base_url=self.get('provider.base_url'),
            model=self.get('provider.model'),
            timeout_seconds=float(self.get('provider.timeout_seconds', 60.0)),
        )

    def get_google_credentials_path(self) -> Optional[str]:
        """Get Google credentials path, or None when the file does not exist."""
        creds_path = self.get('speech.google_credentials_path')
        if not creds_path or not Path(creds_path).exists():
            return None
        return str(Path(creds_path).absolute())
