"""
Configuration management module for the asset tasks.
Responsible for loading bundle definitions and environment settings.
"""

import os
import logging

import yaml
from dotenv import load_dotenv

from errors import ConfigurationError

# Default configuration file path. When the module is reloaded for testing,
# a previously patched value for ``CONFIG_FILE`` should be preserved.
CONFIG_FILE = globals().get("CONFIG_FILE", os.path.join("config", "assets.yml"))

ASSET_KINDS = ("css", "js")
DEFAULT_PUBLIC_DIR = "public"
DEFAULT_ENVIRONMENT = "development"

# Cached configuration keyed by path, with the file's modification time
_cached_config = None
_cached_path = None
_config_mtime = None


def validate_config(config):
    """Validate the structure of a loaded ``assets.yml``."""
    if not isinstance(config, dict):
        logging.error("Asset configuration must be a mapping")
        return False

    for kind in ASSET_KINDS:
        if kind not in config:
            continue
        section = config[kind]
        if not isinstance(section, dict) or not isinstance(section.get("bundles") or {}, dict):
            logging.error("Invalid '%s' section: expected a 'bundles' mapping", kind)
            return False
        for name, filenames in (section.get("bundles") or {}).items():
            if filenames is None:
                continue
            if not isinstance(filenames, list) or not all(isinstance(f, str) for f in filenames):
                logging.error("Invalid %s bundle '%s': expected a list of file names", kind, name)
                return False

    hosts = config.get("asset_hosts")
    if hosts is not None and not isinstance(hosts, dict):
        logging.error("Invalid 'asset_hosts': expected a mapping of environment to host")
        return False
    locales = config.get("locales")
    if locales is not None and not isinstance(locales, list):
        logging.error("Invalid 'locales': expected a list")
        return False
    return True


def load_config(config_path=None):
    """
    Load ``assets.yml`` with caching and modification time checks.

    Args:
        config_path (str, optional): Path to the config file; defaults to ``CONFIG_FILE``

    Returns:
        dict: Parsed configuration

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed
    """
    global _cached_config, _cached_path, _config_mtime

    load_dotenv()
    path = config_path or CONFIG_FILE

    try:
        mtime = os.path.getmtime(path)
    except OSError:
        logging.error(f"Config file {path} not found")
        raise ConfigurationError(f"Asset configuration {path} not found")

    cache_key = os.path.abspath(path)
    if _cached_config is not None and _cached_path == cache_key and _config_mtime == mtime:
        return _cached_config

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Error loading config: {e}")
        raise ConfigurationError(f"Could not read asset configuration {path}: {e}") from e

    if config is None:
        config = {}
    if not validate_config(config):
        raise ConfigurationError(f"Invalid asset configuration in {path}")

    logging.debug(f"Configuration loaded from {path}")
    _cached_config = config
    _cached_path = cache_key
    _config_mtime = mtime
    return config


def get_bundle_names(config, kind):
    """Return the bundle names defined for ``kind`` in file order."""
    section = config.get(kind) or {}
    return list((section.get("bundles") or {}).keys())


def get_bundle_filenames(config, kind, bundle_name, config_path=None):
    """
    Return the ordered logical file names of a bundle.

    Raises:
        ConfigurationError: If the bundle is not defined or lists no files
    """
    config_path = config_path or CONFIG_FILE
    bundles = (config.get(kind) or {}).get("bundles") or {}
    if bundle_name not in bundles:
        raise ConfigurationError(
            f"No {kind.upper()} bundle named {bundle_name!r} is defined in {config_path}."
        )
    filenames = bundles[bundle_name] or []
    if not filenames:
        raise ConfigurationError(
            f"No {kind.upper()} files are specified for the {bundle_name} bundle in {config_path}."
        )
    return list(filenames)


def get_environment():
    """Return the current environment name, e.g. ``production``."""
    return os.environ.get("ASSET_ENV") or os.environ.get("APP_ENV") or DEFAULT_ENVIRONMENT


def get_asset_host(config, environment=None):
    """
    Get the asset host for ``environment``.

    The ``ASSET_HOST`` environment variable wins over ``asset_hosts`` in the
    config file. Blank values are treated as not configured.

    Returns:
        str or None: The asset host
    """
    env_host = os.environ.get("ASSET_HOST")
    if env_host and env_host.strip():
        return env_host.strip()

    environment = environment or get_environment()
    host = (config.get("asset_hosts") or {}).get(environment)
    if host and str(host).strip():
        return str(host).strip()
    return None


def get_public_dir(config):
    """Get the public directory with fallback to default."""
    return config.get("public_dir") or DEFAULT_PUBLIC_DIR


def get_locales(config):
    """Get the configured locale codes."""
    return [str(locale) for locale in config.get("locales") or []]
