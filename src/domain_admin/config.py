# src/domain_admin/config.py
"""
Configuration loading for the domain admin tools.

Settings come from config.yaml, then environment variables (optionally loaded
from a .env file), then command-line flags.
"""
import os
from pathlib import Path
from typing import Dict, Any, Optional
import logging

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_SITE = "https://kenai.com"
DEFAULT_CONFIG = {
    'forge': {
        'site': DEFAULT_SITE,
        'user': '${DOMAIN_ADMIN_USER}',
        'password': '${DOMAIN_ADMIN_PASSWORD}',
        'insecure': False,
        'timeout': 30.0,
    },
    'admin': {
        'page_size': None,
        'max_tries': 3,
    }
}

ENV_OVERRIDES = {
    'DOMAIN_ADMIN_SITE': 'site',
    'DOMAIN_ADMIN_USER': 'user',
    'DOMAIN_ADMIN_PASSWORD': 'password',
}


def load_env() -> Optional[Path]:
    """Load the first .env file found in the standard locations."""
    possible_paths = [
        Path.cwd() / ".env",
        Path.home() / ".domain-admin.env",
    ]

    for env_path in possible_paths:
        if env_path.exists():
            load_dotenv(dotenv_path=env_path)
            logger.debug(f"Loaded .env from: {env_path}")
            return env_path

    logger.debug("No .env file found in standard locations")
    return None


def _resolve(value):
    # "${VAR}" placeholders are read from the environment
    if isinstance(value, str) and value.startswith('${') and value.endswith('}'):
        return os.getenv(value[2:-1])
    return value


def load_config(config_path: str = "config.yaml") -> Dict[str, Any]:
    """Load configuration from YAML, fill defaults and apply env overrides."""
    path = Path(config_path)
    config = {}
    if path.exists():
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
        logger.debug(f"Loaded config from: {path}")

    # Ensure required structure
    if not isinstance(config, dict):
        config = {}

    for section, defaults in DEFAULT_CONFIG.items():
        if not isinstance(config.get(section), dict):
            config[section] = {}
        for key, value in defaults.items():
            config[section].setdefault(key, value)

    forge = config['forge']
    for key in list(forge):
        forge[key] = _resolve(forge[key])

    for env_var, key in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            forge[key] = value

    forge['site'] = (forge.get('site') or DEFAULT_SITE).rstrip('/')
    return config
