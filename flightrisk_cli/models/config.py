from __future__ import annotations

from dataclasses import dataclass

from flightrisk_cli.exceptions import ConfigError
from flightrisk_cli.geometry import LAYOUTS, GridLayout, get_layout


@dataclass
class AppConfig:
    data_dir: str
    grid_size: str = "md"

    def __post_init__(self) -> None:
        if not self.data_dir or not self.data_dir.strip():
            raise ConfigError("Data directory cannot be empty.")
        self.data_dir = self.data_dir.strip()
        self.grid_size = (self.grid_size or "md").strip().lower()
        if self.grid_size not in LAYOUTS:
            raise ConfigError(
                f"Unknown grid size '{self.grid_size}'. "
                f"Choose one of: {', '.join(LAYOUTS)}."
            )

    @property
    def layout(self) -> GridLayout:
        return get_layout(self.grid_size)
