"""Configuration loading: TOML parsing, deep merging, and driver list merging."""

from __future__ import annotations

import copy
import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from tomcat_setup import DriverSource, Settings

logger = logging.getLogger(__name__)

CONFIG_DIR = Path('/etc/tomcat-setup')

DEFAULT_CONFIG: dict[str, Any] = {
    'general': {'log_level': 'WARNING'},
    'java': {'version': '21'},
    'tomcat': {
        'index_url': 'https://dlcdn.apache.org/tomcat/',
        'install_root': '/opt',
        'service_user': 'tomcat',
        'service_group': 'tomcat',
        'shared_temp_dir': '/opt/webtemp',
        'java_opts': '-Djava.awt.headless=true -Xms512m -Xmx1024m',
    },
    'packages': {'upgrade': True, 'extra': []},
    'network': {'timeout': 30},
    'driver': [
        {
            # .jre11.jar runs on Java 11 and newer
            'name': 'MS SQL Server',
            'owner': 'microsoft',
            'repo': 'mssql-jdbc',
            'patterns': [r'\.jre11\.jar'],
            'enabled': True,
        },
        {
            'name': 'PostgreSQL',
            'owner': 'pgjdbc',
            'repo': 'pgjdbc',
            'patterns': [r'postgresql-[0-9.]+\.jar$'],
            'enabled': True,
        },
    ],
}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dicts. override values take precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def merge_driver_lists(base_drivers: list[dict[str, Any]], override_drivers: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Merge driver lists by name. Override drivers replace base drivers with the same name."""
    if not override_drivers:
        return base_drivers
    if not base_drivers:
        return override_drivers

    result = list(base_drivers)
    base_names = {d.get('name', ''): i for i, d in enumerate(result)}

    for driver in override_drivers:
        name = driver.get('name', '')
        if name and name in base_names:
            result[base_names[name]] = deep_merge(result[base_names[name]], driver)
        else:
            result.append(driver)

    return result


def _apply_override(config: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge an override dict into config, handling driver lists specially."""
    override_drivers = override.pop('driver', None)
    config_drivers = config.get('driver', [])
    config = deep_merge(config, override)
    if override_drivers is not None:
        config['driver'] = merge_driver_lists(config_drivers, override_drivers)
    return config


def _load_toml(path: str | Path) -> dict[str, Any]:
    """Load a single TOML file and return its contents as a dict."""
    with open(path, 'rb') as f:
        return tomllib.load(f)


def _load_config_dir(config: dict[str, Any], config_d: Path) -> dict[str, Any]:
    """Load all *.toml files from a config.d directory as overlays."""
    if not config_d.is_dir():
        return config
    for override_file in sorted(config_d.glob('*.toml')):
        logger.info(f"Loading config override: {override_file}")
        override = _load_toml(override_file)
        config = _apply_override(config, override)
    return config


def load_config(config_paths: list[str] | None = None, config_dir: Path = CONFIG_DIR) -> dict[str, Any]:
    """Load and merge TOML configuration on top of DEFAULT_CONFIG.

    When no --config paths are provided (default):
      1. Overlay <config_dir>/config.toml if it exists
      2. Overlay files from <config_dir>/config.d/*.toml (alphabetical)

    When --config paths are provided:
      Overlay only those files in order.
      The default config file and config.d directory are skipped.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_paths:
        for path in config_paths:
            if not os.path.exists(path):
                logger.error(f"Config file not found: {path}")
                continue
            logger.info(f"Loading config: {path}")
            config = _apply_override(config, _load_toml(path))
        return config

    base_path = config_dir / 'config.toml'
    if base_path.exists():
        config = _apply_override(config, _load_toml(base_path))
        logger.info(f"Loaded config from {base_path}")
    else:
        logger.debug(f"No config at {base_path}, using defaults")

    return _load_config_dir(config, config_dir / 'config.d')


def settings_from_config(config: dict[str, Any]) -> Settings:
    """Convert a merged config dict into Settings."""
    general = config.get('general', {})
    java = config.get('java', {})
    tomcat = config.get('tomcat', {})
    packages = config.get('packages', {})
    network = config.get('network', {})
    defaults = Settings()

    drivers = []
    for d in config.get('driver', []):
        if not d.get('enabled', True):
            continue
        if not (d.get('name') and d.get('owner') and d.get('repo') and d.get('patterns')):
            logger.error(f"Ignoring incomplete [[driver]] entry: {d}")
            continue
        drivers.append(DriverSource(
            name=d['name'],
            owner=d['owner'],
            repo=d['repo'],
            patterns=tuple(d['patterns']),
        ))

    return Settings(
        java_version=str(java.get('version', defaults.java_version)),
        index_url=tomcat.get('index_url', defaults.index_url),
        install_root=tomcat.get('install_root', defaults.install_root),
        service_user=tomcat.get('service_user', defaults.service_user),
        service_group=tomcat.get('service_group', defaults.service_group),
        shared_temp_dir=tomcat.get('shared_temp_dir', defaults.shared_temp_dir),
        java_opts=tomcat.get('java_opts', defaults.java_opts),
        upgrade_packages=bool(packages.get('upgrade', defaults.upgrade_packages)),
        extra_packages=tuple(packages.get('extra', [])),
        timeout=float(network.get('timeout', defaults.timeout)),
        drivers=tuple(drivers),
        log_level=str(general.get('log_level', defaults.log_level)).upper(),
    )


def log_config_sources(settings: Settings) -> None:
    """Log configuration summary."""
    logger.info(f"Java version: {settings.java_version}")
    logger.info(f"Distribution index: {settings.index_url}")
    logger.info(f"Install root: {settings.install_root}")
    logger.info(f"Drivers configured: {len(settings.drivers)}")

    for driver in settings.drivers:
        logger.debug(f"  [{driver.name}] {driver.owner}/{driver.repo} patterns={list(driver.patterns)}")
