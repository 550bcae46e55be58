"""Parse monument catalogue markdown files into Subject objects.

Table schema:
  | Monument | Era | Location | Description |

Section headers (## North India, ## Deccan, ...) become the region.
"""
from __future__ import annotations

import re
from pathlib import Path

from arfolk.models import Subject


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower())
    return slug.strip("-")


def parse_catalogue_file(path: Path) -> list[Subject]:
    text = path.read_text()
    source = path.name
    monuments: list[Subject] = []
    current_region = ""

    for line in text.splitlines():
        m = re.match(r"^## (.+)", line)
        if m:
            current_region = m.group(1).strip()
            continue

        if not line.startswith("|"):
            continue

        # | **Title** | era | location | description |
        m = re.match(
            r"\|\s*\*\*(.+?)\*\*\s*\|\s*(.*?)\s*\|\s*(.*?)\s*\|\s*(.+?)\s*\|\s*$",
            line,
        )
        if m:
            title = m.group(1).strip()
            monuments.append(Subject(
                id=slugify(title),
                title=title,
                description=m.group(4).strip(),
                era=m.group(2).strip(),
                location=m.group(3).strip(),
                region=current_region,
                source_file=source,
            ))

    return monuments
