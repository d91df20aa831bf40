from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from flightrisk_cli.formatters.base import BaseFormatter


class JsonFormatter(BaseFormatter):
    def render(self, data: Any) -> str:
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    def write(self, data: Any, output_path: Path) -> None:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(self.render(data))

    def file_extension(self) -> str:
        return ".json"
