import os
import json
from pathlib import Path
from dotenv import load_dotenv
from .logging_config import setup_app_logging
import logging

# Load environment variables from .env file
load_dotenv()

# Get the config directory path (where this file is located)
CONFIG_DIR = Path(__file__).parent

PROJECT_ROOT = CONFIG_DIR.parent

# Load configuration from config.json
config_path = CONFIG_DIR / 'config.json'
with open(config_path, 'r', encoding='utf-8') as f:
    CONFIG = json.load(f)

# CONFIG is the runtime representation of config.json, enriched below with
# derived absolute paths and environment overrides.
CONFIG['project_root'] = str(PROJECT_ROOT)

if 'paths' not in CONFIG:
    CONFIG['paths'] = {}


# --- Helper function to get config value from CONFIG or environment variable ---
def get_config_value(json_keys: list, env_var_name: str, default_value: any = None):
    """
    Retrieves a configuration value.
    Priority:
    1. Environment variable (if env_var_name is provided and variable is set).
    2. Value from CONFIG dictionary (using json_keys).
    3. default_value.
    """
    if env_var_name:
        env_value = os.getenv(env_var_name)
        if env_value is not None:
            # Attempt to match type of default_value if it's int, float or bool
            if isinstance(default_value, bool):
                if env_value.lower() == 'true': return True
                if env_value.lower() == 'false': return False
            elif isinstance(default_value, int):
                try:
                    return int(env_value)
                except ValueError:
                    pass
            elif isinstance(default_value, float):
                try:
                    return float(env_value)
                except ValueError:
                    pass
            return env_value

    current_level = CONFIG
    try:
        for key in json_keys:
            current_level = current_level[key]
        if isinstance(current_level, (str, int, bool, float, list, dict)):
            return current_level
    except (KeyError, TypeError):
        pass

    return default_value


# --- Paths ---
# Everything the dispatcher persists (SQLite store, classifier blob) lives under user_data/.
user_data_dir_name = get_config_value(['paths', 'user_data_dir_name'], 'AVA_USER_DATA_DIR', 'user_data')
user_data_full_path = Path(user_data_dir_name)
if not user_data_full_path.is_absolute():
    user_data_full_path = PROJECT_ROOT / user_data_full_path

CONFIG['paths']['user_data_full_path'] = str(user_data_full_path)
CONFIG['paths']['database_full_path'] = str(
    user_data_full_path / CONFIG['paths'].get('database_filename', 'ava.db')
)
CONFIG['paths']['classifier_full_path'] = str(
    user_data_full_path / CONFIG['paths'].get('classifier_filename', 'classifier.joblib')
)

# --- Server / RPC ---
CONFIG['server'] = {
    'host': get_config_value(['server', 'host'], 'AVA_HOST', '0.0.0.0'),
    'port': get_config_value(['server', 'port'], 'PORT', 4000),
}
CONFIG['rpc'] = {
    'host': get_config_value(['rpc', 'host'], 'AVA_RPC_HOST', '0.0.0.0'),
    # 0 means "next to the HTTP port", resolved at startup in main.py.
    'port': get_config_value(['rpc', 'port'], 'AVA_RPC_PORT', 0),
    'timeout_s': get_config_value(['rpc', 'timeout_s'], 'AVA_RPC_TIMEOUT_S', 30.0),
}

CONFIG['context'] = {
    'window_seconds': get_config_value(['context', 'window_seconds'], 'AVA_CONTEXT_WINDOW_SECONDS', 300),
}
CONFIG['packages_timeout_s'] = get_config_value(['packages_timeout_s'], 'AVA_PACKAGES_TIMEOUT_S', 5.0)
CONFIG.setdefault('packages', [])
CONFIG.setdefault('language', {})
CONFIG['language'].setdefault('confused', "I'm not sure I understand you.")

def check_base_url() -> list:
    """Return a list of problems with the BASE_URL environment variable.

    Packages build callback links from BASE_URL, so a bad value degrades them
    but never stops the dispatcher from booting. Callers log the result.
    """
    base = os.getenv('BASE_URL') or ''
    problems = []
    if not base:
        problems.append("BASE_URL environment variable not set")
        return problems
    if not base.startswith('http'):
        problems.append("BASE_URL invalid. Must include http/https")
    if not base.endswith('/'):
        problems.append("BASE_URL must end in '/'")
    return problems


# --- Logging Configuration ---
# Environment variables take precedence over config.json.
CONFIG['logging'] = {
    'level': get_config_value(['logging', 'level'], 'LOG_LEVEL', 'INFO'),
    'file_path': get_config_value(['logging', 'file_path'], 'LOG_FILE_PATH', 'logs/ava.log'),
    'max_bytes': get_config_value(['logging', 'max_bytes'], 'LOG_MAX_BYTES', 5*1024*1024), # 5MB
    'backup_count': get_config_value(['logging', 'backup_count'], 'LOG_BACKUP_COUNT', 3),
    'date_format': get_config_value(
        ['logging', 'date_format'],
        'LOG_DATE_FORMAT',
        '%Y-%m-%d %H:%M:%S'
    )
}

setup_app_logging(config=CONFIG.get('logging'))

config_init_logger = logging.getLogger(__name__)
config_init_logger.info("[config_init] Logging initialized from config/__init__.py using setup_app_logging.")
