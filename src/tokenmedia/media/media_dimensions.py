"""In-process dimension parsing for SVG documents and iframe snippets."""

from __future__ import annotations

import re
from xml.etree.ElementTree import Element, ParseError

from defusedxml import ElementTree
from defusedxml.common import DefusedXmlException

from ..domain.media import Dimensions

_LENGTH = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*(px)?\s*$", re.IGNORECASE)


class DimensionsError(ValueError):
    """Document has no usable width/height."""


def _local_name(element: Element) -> str:
    tag = element.tag if isinstance(element.tag, str) else ""
    return tag.rsplit("}", 1)[-1].lower()


def parse_length(value: str | None) -> int:
    """Parse ``"100"``, ``"100px"`` or ``"99.5"``; relative units yield 0."""

    if not value:
        return 0
    match = _LENGTH.match(value)
    if not match:
        return 0
    return int(float(match.group(1)))


def _parse_root(data: bytes | str) -> Element:
    if isinstance(data, str):
        data = data.encode("utf-8")
    try:
        return ElementTree.fromstring(data.strip())
    except (ParseError, DefusedXmlException) as exc:
        raise DimensionsError(f"unparseable document: {exc}") from exc


def parse_svg_dimensions(data: bytes | str) -> Dimensions:
    root = _parse_root(data)
    if _local_name(root) != "svg":
        raise DimensionsError("root element is not <svg>")

    width = parse_length(root.get("width"))
    height = parse_length(root.get("height"))
    if width > 0 and height > 0:
        return Dimensions(width=width, height=height)

    view_box = root.get("viewBox") or root.get("viewbox")
    if view_box:
        parts = view_box.replace(",", " ").split()
        if len(parts) == 4:
            try:
                return Dimensions(width=int(float(parts[2])), height=int(float(parts[3])))
            except ValueError as exc:
                raise DimensionsError(f"invalid viewBox '{view_box}'") from exc
    raise DimensionsError("svg declares neither width/height nor viewBox")


def parse_iframe_dimensions(data: bytes | str) -> Dimensions:
    root = _parse_root(data)
    if _local_name(root) != "iframe":
        raise DimensionsError("root element is not <iframe>")
    dimensions = Dimensions(width=parse_length(root.get("width")), height=parse_length(root.get("height")))
    if not dimensions.valid:
        raise DimensionsError("iframe declares no width/height")
    return dimensions


__all__ = ["DimensionsError", "parse_iframe_dimensions", "parse_length", "parse_svg_dimensions"]
