from .config_manager import load_config, save_config
from ..paths import (
    ASSETS_DIR, CONFIG_DIR,
    ESTIMATOR_CONFIG_PATH,
    FIELD_LAYOUT_PATH,
)

__all__ = ["load_config", "save_config",
           "ESTIMATOR_CONFIG_PATH", "FIELD_LAYOUT_PATH",
           "ASSETS_DIR", "CONFIG_DIR"]
