# File: atmos/config_loader.py

"""
Handles loading and caching of the project's YAML configuration file (`config/config.yaml`)
and sets up centralized logging based on the loaded configuration.

Provides a globally accessible CONFIG dictionary after initial import.
Falls back to an empty config (and basic logging) if the file is missing or broken.
"""

import os
import sys
import logging
import logging.handlers
from functools import lru_cache

import yaml
from dotenv import load_dotenv

from atmos.exceptions import ConfigFileNotFoundError, ConfigError

# --- Determine Project Root ---
PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(PACKAGE_DIR, '..'))

# --- Define Config Path ---
CONFIG_FILE_NAME = 'config.yaml'
CONFIG_PATH = os.environ.get('ATMOS_CONFIG', os.path.join(PROJECT_ROOT, 'config', CONFIG_FILE_NAME))
DOTENV_PATH = os.path.join(PROJECT_ROOT, '.env')


# --- Configuration Loading Function ---
@lru_cache()
def load_config(config_path=CONFIG_PATH):
    """Loads the configuration from the YAML file.
    Uses LRU cache to load the file only once per path.

    Args:
        config_path (str): The path to the configuration YAML file.

    Raises:
        ConfigFileNotFoundError: If the config file doesn't exist.
        ConfigError: If the file cannot be parsed or other load errors occur.

    Returns:
        dict: A dictionary containing the configuration settings.
    """
    log = logging.getLogger(__name__)
    log.info(f"Attempting to load configuration from: {config_path}")
    if not os.path.exists(config_path):
        msg = f"Configuration file not found at: {config_path}"
        log.error(msg)
        raise ConfigFileNotFoundError(msg)
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        msg = f"Error parsing YAML configuration file: {config_path}. Error: {e}"
        log.error(msg, exc_info=True)
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Could not read configuration file {config_path}: {e}"
        log.error(msg, exc_info=True)
        raise ConfigError(msg) from e
    if config is None:
        log.warning(f"Configuration file is empty: {config_path}")
        return {}
    if not isinstance(config, dict):
        raise ConfigError(f"Top level of {config_path} must be a mapping, got {type(config).__name__}.")
    log.info("Configuration loaded successfully.")
    return config


# --- Central Logging Setup Function ---
def setup_logging(config):
    """Configures root logger with console and optional file handlers.

    Reads logging level, format, and file settings from the provided config dict.
    Removes pre-existing handlers before adding new ones.

    Args:
        config (dict): The loaded configuration dictionary (expects a 'logging' key).
    """
    if not isinstance(config, dict): config = {}
    log_cfg = config.get('logging') or {}
    log_level_str = log_cfg.get('level', 'INFO')
    log_format = log_cfg.get('format', '%(asctime)s - [%(levelname)s] - %(name)s - %(message)s')
    log_to_file = log_cfg.get('log_to_file', False)
    log_filename = log_cfg.get('log_filename', 'atmos.log')
    log_file_level_str = log_cfg.get('log_file_level', 'DEBUG')
    log_console_level_str = log_cfg.get('log_console_level', 'INFO')
    root_log_level = getattr(logging, str(log_level_str).upper(), logging.INFO)
    file_log_level = getattr(logging, str(log_file_level_str).upper(), logging.DEBUG)
    console_log_level = getattr(logging, str(log_console_level_str).upper(), logging.INFO)

    root_logger = logging.getLogger()
    levels = [root_log_level, console_log_level] + ([file_log_level] if log_to_file else [])
    root_logger.setLevel(min(levels))
    for handler in root_logger.handlers[:]: root_logger.removeHandler(handler)
    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    logging.info(f"Console logging configured at level: {logging.getLevelName(console_log_level)}")

    if log_to_file:
        try:
            log_file_path = os.path.join(PROJECT_ROOT, log_filename)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file_path, maxBytes=5*1024*1024, backupCount=3, encoding='utf-8')
            file_handler.setLevel(file_log_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logging.info(f"File logging configured at level: {logging.getLevelName(file_log_level)} to {log_file_path}")
        except OSError as e:
            logging.error(f"Failed to configure file logging: {e}", exc_info=True)
    else:
        logging.info("File logging is disabled in configuration.")


def load_environment(dotenv_path=DOTENV_PATH):
    """Loads secrets from the project-root .env file if present. Returns True when a file was read."""
    log = logging.getLogger(__name__)
    if not os.path.exists(dotenv_path):
        log.info(f".env file not found at: {dotenv_path}. API keys must be set in environment.")
        return False
    loaded = load_dotenv(dotenv_path=dotenv_path)
    if loaded:
        log.info(f"Loaded .env file from: {dotenv_path}")
    return loaded


def get_setting(section, key, default=None):
    """Reads ``CONFIG[section][key]``, tolerating missing or null sections."""
    section_cfg = CONFIG.get(section) or {}
    value = section_cfg.get(key, default)
    return default if value is None else value


# --- Load config and Setup Logging on Import ---
CONFIG = {}
try:
    CONFIG = load_config()
    setup_logging(CONFIG)
except ConfigError as e:
    logging.basicConfig(level=logging.WARNING, format='%(asctime)s [%(levelname)s] %(message)s')
    logging.critical(f"CRITICAL: Failed to load configuration: {e}. Using fallback logging and empty config.")

load_environment()


def get_config():
    """Returns the cached configuration dictionary.

    Useful for checking if the global CONFIG variable was successfully populated,
    especially if called after potential import-time failures.
    """
    return CONFIG
