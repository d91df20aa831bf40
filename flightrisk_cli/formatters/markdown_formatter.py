from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from flightrisk_cli.formatters.base import BaseFormatter


class MarkdownFormatter(BaseFormatter):
    _MAX_LINE_LENGTH = 120

    def write(self, data: Any, output_path: Path) -> None:
        """Render a `{"title", "body", "frontmatter"}` mapping to *output_path*."""
        content = self.render(
            title=str(data.get("title", "")),
            body=str(data.get("body", "")),
            frontmatter=data.get("frontmatter"),
        )
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(content)

    def file_extension(self) -> str:
        return ".md"

    @classmethod
    def render(
        cls,
        title: str,
        body: str,
        frontmatter: Optional[Dict[str, Any]] = None,
    ) -> str:
        parts = []
        if frontmatter:
            fm_text = yaml.safe_dump(
                frontmatter,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            ).rstrip("\n")
            parts.append(f"---\n{fm_text}\n---\n")
        if title:
            parts.append(f"# {title}\n")
        if body:
            wrapped_body = cls._wrap_body(body.rstrip("\n"))
            parts.append(wrapped_body + "\n")
        return "\n".join(parts)

    @staticmethod
    def table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> List[str]:
        """Pipe table lines; cell text is flattened to a single line."""
        lines = [
            "| " + " | ".join(headers) + " |",
            "|" + "|".join("---" for _ in headers) + "|",
        ]
        for row in rows:
            cells = [str(cell).replace("\n", " ").replace("|", "\\|") for cell in row]
            lines.append("| " + " | ".join(cells) + " |")
        return lines

    @staticmethod
    def section(heading: str, text: str, placeholder: str) -> List[str]:
        """A heading followed by *text*, or a hidden comment when *text* is blank."""
        lines = [heading, ""]
        if text.strip():
            lines.append(text.strip())
        else:
            lines.append(f"[//]: # ({placeholder})")
        lines.append("")
        return lines

    @classmethod
    def _wrap_body(cls, body: str) -> str:
        wrapped_lines = []
        for line in body.splitlines():
            if cls._should_preserve_line(line):
                wrapped_lines.append(line)
                continue
            wrapped_lines.append(
                textwrap.fill(
                    line,
                    width=cls._MAX_LINE_LENGTH,
                    break_long_words=False,
                    break_on_hyphens=False,
                )
            )
        return "\n".join(wrapped_lines)

    @classmethod
    def _should_preserve_line(cls, line: str) -> bool:
        if not line:
            return True
        if len(line) <= cls._MAX_LINE_LENGTH:
            return True
        if line.startswith(("#", "- ", "* ", "> ", "|", "```", "    ", "\t")):
            return True
        if "`" in line or "](" in line or "**" in line:
            return True
        return False
