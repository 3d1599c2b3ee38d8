import os
from pathlib import Path

# Load environment variables from .env file
from dotenv import load_dotenv

from depwright.utils.platform_utils import PlatformUtils

# Load .env from project root
_project_root = Path(__file__).parent.parent.parent
load_dotenv(_project_root / ".env")

APP_NAME = "depwright"

# Timeouts (seconds)
CHECK_TIMEOUT = float(os.getenv("CHECK_TIMEOUT", "10"))
INSTALL_TIMEOUT = float(os.getenv("INSTALL_TIMEOUT", "300"))
DOWNLOAD_TIMEOUT = float(os.getenv("DOWNLOAD_TIMEOUT", "60"))

# Region detection cache
REGION_CACHE_TTL_DAYS = int(os.getenv("REGION_CACHE_TTL_DAYS", "7"))
REGION_CACHE_KEY = "regionDetection"
CHINESE_LOCALES = ("zh-CN", "zh-TW", "zh-HK", "zh-SG")

# npm registries per region
NPM_MIRROR_URL = os.getenv("NPM_MIRROR_URL", "https://registry.npmmirror.com")
NPM_OFFICIAL_URL = os.getenv("NPM_OFFICIAL_URL", "https://registry.npmjs.org")

# Package pipeline
MIN_FREE_SPACE_MB = int(os.getenv("MIN_FREE_SPACE_MB", "500"))
PACKAGE_META_KEY = "packageMeta"
PACKAGE_ENTRY_BINARY = os.getenv("PACKAGE_ENTRY_BINARY", "WebService")
PACKAGE_LAUNCHER_SCRIPT = "start.sh"
PACKAGE_ROOT_NAME = "web-service"

# Directories
DATA_DIR = os.getenv("DEPWRIGHT_DATA_DIR", PlatformUtils.get_default_data_dir(APP_NAME))
CONFIG_DIR = os.getenv("DEPWRIGHT_CONFIG_DIR", PlatformUtils.get_default_config_dir(APP_NAME))
PACKAGE_SOURCE = os.getenv("DEPWRIGHT_PACKAGE_SOURCE", os.path.join(DATA_DIR, "release-packages"))

# Settings store (region cache lives here)
SETTINGS_STORE_PATH = os.path.join(CONFIG_DIR, "settings.json")
CONFIG_PATH = os.path.join(CONFIG_DIR, "config.json")

# Log files
LOG_DIR = os.path.join(DATA_DIR, "logs")
LOG_FILE = os.path.join(LOG_DIR, f"{APP_NAME}.log")
