"""Configuration system using platformdirs for cross-platform paths."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import platformdirs

APP_NAME = "stepwise"
APP_AUTHOR = "stepwise"


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	log_dir: Path = field(init=False)

	# Workspace the step executor and manifest inspection operate on
	workspace: Path = field(default_factory=Path.cwd)

	# Generation
	generator_command: str = "claude"
	main_model: str = "opus"
	fast_model: str = "haiku"
	generator_timeout: float = 120.0

	# Execution
	step_timeout: float = 300.0
	max_repairs: int = 2
	autonomous: bool = False

	# Continuation pacing (seconds)
	verification_render_delay: float = 0.3
	continuation_delay: float = 1.0

	def __post_init__(self) -> None:
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)


_PATH_FIELDS = {"config_dir", "data_dir", "workspace"}
_FLOAT_FIELDS = {"generator_timeout", "step_timeout", "verification_render_delay", "continuation_delay"}
_INT_FIELDS = {"max_repairs"}
_BOOL_FIELDS = {"autonomous"}


def _coerce(key: str, val: Any) -> Any:
	"""Convert a raw env/toml value to the field's type."""
	if key in _PATH_FIELDS:
		return Path(os.path.expanduser(str(val)))
	if key in _FLOAT_FIELDS:
		return float(val)
	if key in _INT_FIELDS:
		return int(val)
	if key in _BOOL_FIELDS:
		if isinstance(val, bool):
			return val
		return str(val).strip().lower() in ("1", "true", "yes", "on")
	return val


def _apply_env_overrides(config: Config) -> Config:
	"""Apply STEPWISE_* environment variable overrides."""
	env_map = {
		"STEPWISE_CONFIG_DIR": "config_dir",
		"STEPWISE_DATA_DIR": "data_dir",
		"STEPWISE_WORKSPACE": "workspace",
		"STEPWISE_GENERATOR_COMMAND": "generator_command",
		"STEPWISE_MAIN_MODEL": "main_model",
		"STEPWISE_FAST_MODEL": "fast_model",
		"STEPWISE_GENERATOR_TIMEOUT": "generator_timeout",
		"STEPWISE_STEP_TIMEOUT": "step_timeout",
		"STEPWISE_MAX_REPAIRS": "max_repairs",
		"STEPWISE_AUTONOMOUS": "autonomous",
	}
	for env_key, attr in env_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, _coerce(attr, val))
	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	for key, val in data.items():
		if hasattr(config, key) and key != "log_dir":
			setattr(config, key, _coerce(key, val))

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config
