"""Reference catalog: the static EMT stop and line tables.

Both XML files share the layout  TABLA/DocumentElement/REG,  one REG element
per record with one child element per column:

    <REG>
      <Node>4230</Node>
      <PosxNode>447148,3</PosxNode>
      <PosyNode>4474608</PosyNode>
      <Name>HNOS.GARCIA NOBLEJAS-PZA.DE ALSACIA</Name>
      <Lines>70/1</Lines>
    </REG>

Catalog rows are kept as plain dicts so they can be tagged as raw stops and
pushed through the normalizer like any API record.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

from emtbus.models import Line

logger = logging.getLogger(__name__)


def pad_line_code(code: str) -> str:
    """EMT line codes are keyed as three-digit strings ("27" → "027")."""
    return code.strip().rjust(3, "0")


def parse_records(xml_text: str | bytes) -> list[dict[str, str]]:
    """Flatten every REG element into a {column: text} dict."""
    root = ET.fromstring(xml_text)
    records: list[dict[str, str]] = []
    for reg in root.iter("REG"):
        records.append({child.tag: (child.text or "").strip() for child in reg})
    return records


class ReferenceCatalog:
    def __init__(self, stop_rows: list[dict[str, Any]], lines: list[Line]) -> None:
        self.rows = stop_rows
        self._lines = {line.code: line for line in lines}

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def lookup_line(self, code: str) -> Line | None:
        return self._lines.get(pad_line_code(code))

    def find_rows(self, query: str, exact: bool = False, limit: int | None = None) -> list[dict[str, Any]]:
        """Stop rows whose Node equals (exact) or starts with the query."""
        out: list[dict[str, Any]] = []
        for row in self.rows:
            node = str(row.get("Node", ""))
            if (node == query) if exact else node.startswith(query):
                out.append(row)
                if limit is not None and len(out) >= limit:
                    break
        return out

    @classmethod
    def from_xml(cls, nodes_xml: str, lines_xml: str) -> ReferenceCatalog:
        return cls(parse_stop_rows(nodes_xml), parse_lines(lines_xml))


def parse_lines(xml_text: str | bytes) -> list[Line]:
    return [
        Line(
            code=pad_line_code(r["Line"]),
            label=r.get("Label", ""),
            name_a=r.get("NameA", ""),
            name_b=r.get("NameB", ""),
        )
        for r in parse_records(xml_text)
        if r.get("Line")
    ]


def parse_stop_rows(xml_text: str | bytes) -> list[dict[str, Any]]:
    return [r for r in parse_records(xml_text) if r.get("Node")]


def _load_table(path: Path, parse):
    try:
        return parse(path.read_bytes())
    except (OSError, ET.ParseError) as e:
        logger.error("Cannot load %s: %s", path, e)
        return []


def load_catalog(nodes_path: Path, lines_path: Path) -> ReferenceCatalog:
    """Load the catalog from disk; a missing or broken file yields an empty table."""
    catalog = ReferenceCatalog(
        _load_table(nodes_path, parse_stop_rows),
        _load_table(lines_path, parse_lines),
    )
    logger.info("Reference catalog: %d stops, %d lines.", len(catalog), catalog.line_count)
    return catalog
