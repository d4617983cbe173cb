"""
taxonomy_import.xml_parser - XML → row dicts.

Expected shape (element names are the row keys):

    <terms>
      <term>
        <name>Toronto</name>
        <parent>Ontario</parent>
        <field_geolocation><lat>43.7</lat><lng>-79.4</lng></field_geolocation>
      </term>
    </terms>

Elements with children become nested dicts; rows without a name are
dropped.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from taxonomy_import.errors import SourceError


def read_rows(raw: str | bytes) -> list[dict]:
    if not raw or not raw.strip():
        raise SourceError("XML file is empty")
    try:
        root = ET.fromstring(raw)
    except ET.ParseError as exc:
        raise SourceError(f"XML cannot be parsed: {exc}") from exc

    rows = []
    for item in root:
        row = {child.tag: _value(child) for child in item}
        if not row.get("name"):
            continue
        rows.append(row)
    return rows


def _value(elem: ET.Element):
    if len(elem):
        return {child.tag: _value(child) for child in elem}
    return (elem.text or "").strip()
