import logging
from pathlib import Path
from typing import Optional
import yaml
from fishfinder.config.models import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("conf/fishfinder.yaml")

def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from conf/fishfinder.yaml or a provided path.
    Missing file means defaults; invalid values raise pydantic.ValidationError.
    """
    config_file = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not config_file.exists():
        if config_path:
            logger.warning(f"Config file not found at {config_file}, using defaults.")
        return AppConfig()

    with open(config_file, 'r') as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_file} must contain a mapping, got {type(data).__name__}")

    return AppConfig(**data)
