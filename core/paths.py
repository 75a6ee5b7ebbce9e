import os

# 项目根目录：当前文件是 core/paths.py，向上两级
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# 统一配置目录
CONFIG_DIR = os.path.join(PROJECT_ROOT, ".config")
ASSETS_DIR = os.path.join(PROJECT_ROOT, "assets")

# 各种文件路径
ESTIMATOR_CONFIG_PATH = os.path.join(CONFIG_DIR, "estimator_config.json")
FIELD_LAYOUT_PATH     = os.path.join(ASSETS_DIR, "field_layout.json")
