from __future__ import annotations

import configparser
from pathlib import Path

from flightrisk_cli.exceptions import ConfigError
from flightrisk_cli.models.config import AppConfig

CONFIG_FILENAME = ".flightrisk-cli.ini"
_SECTION = "flightrisk"
_REQUIRED_KEYS = ("data_dir",)


def config_exists(directory: Path) -> bool:
    return (directory / CONFIG_FILENAME).is_file()


def write_config(directory: Path, config: AppConfig) -> None:
    cp = configparser.ConfigParser()
    cp[_SECTION] = {
        "data_dir": config.data_dir,
        "grid_size": config.grid_size,
    }
    path = directory / CONFIG_FILENAME
    with open(path, "w", encoding="utf-8") as f:
        cp.write(f)


def read_config(directory: Path) -> AppConfig:
    path = directory / CONFIG_FILENAME
    if not path.is_file():
        raise ConfigError(
            "Configuration not found. Run flightrisk-cli --init first."
        )

    cp = configparser.ConfigParser()
    try:
        cp.read(str(path), encoding="utf-8")
    except configparser.Error as exc:
        raise ConfigError(
            f"Invalid configuration format in {CONFIG_FILENAME}. "
            "Run flightrisk-cli --init to reconfigure."
        ) from exc

    if not cp.has_section(_SECTION):
        raise ConfigError(
            f"Invalid configuration: missing [{_SECTION}] section in {CONFIG_FILENAME}."
        )

    for key in _REQUIRED_KEYS:
        if not cp.has_option(_SECTION, key) or not cp.get(_SECTION, key).strip():
            raise ConfigError(
                f"Invalid configuration: missing or empty '{key}' in {CONFIG_FILENAME}. "
                "Run flightrisk-cli --init to reconfigure."
            )

    return AppConfig(
        data_dir=cp.get(_SECTION, "data_dir"),
        grid_size=cp.get(_SECTION, "grid_size", fallback="md"),
    )


def resolve_data_dir(directory: Path, config: AppConfig) -> Path:
    """Data directory from *config*, relative paths taken from *directory*."""
    data_dir = Path(config.data_dir).expanduser()
    return data_dir if data_dir.is_absolute() else directory / data_dir
