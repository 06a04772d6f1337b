"""buildserver.analysis.descriptors

Pure analyzers over visual-program descriptor files.

Two descriptor kinds are read:

* form-property files (``.scm``): a JSON payload wrapped as::

      #|
      $JSON
      {"Properties": {"$Name": "Screen1", "$Type": "Form", "$Components": [...]}}
      |#

* block files (``.bky``): Blockly XML. Each ``<block>`` element is offered to
  every active extractor; extractors accumulate their own result.

These functions never touch the filesystem.
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterable, Iterator, Optional, Set

logger = logging.getLogger(__name__)

DEFAULT_ORIENTATION = "unspecified"
PERMISSION_PREFIX = "android.permission."


# ---------------------------------------------------------------------------
# Form-property files
# ---------------------------------------------------------------------------


def parse_form_json(content: str) -> Dict[str, Any]:
    """Return the JSON object embedded in a ``.scm`` file.

    Raises ``ValueError`` if the payload is missing or not a JSON object.
    """
    text = content.strip()
    if text.startswith("#|"):
        text = text[2:]
    if text.endswith("|#"):
        text = text[:-2]
    text = text.strip()
    if text.startswith("$JSON"):
        text = text[len("$JSON"):]
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("form file payload is not a JSON object")
    return data


def _walk_components(props: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    yield props
    for child in props.get("$Components") or []:
        if isinstance(child, dict):
            yield from _walk_components(child)


def component_types_from_form(content: str) -> Set[str]:
    """Component names (``$Type`` values) used by one form, including the form itself."""
    data = parse_form_json(content)
    props = data.get("Properties")
    if not isinstance(props, dict):
        return set()
    return {str(c["$Type"]) for c in _walk_components(props) if c.get("$Type")}


def form_orientation(content: str) -> str:
    """Screen orientation declared by a form (``unspecified`` if absent)."""
    data = parse_form_json(content)
    props = data.get("Properties")
    if not isinstance(props, dict):
        return DEFAULT_ORIENTATION
    value = props.get("ScreenOrientation")
    return str(value) if value else DEFAULT_ORIENTATION


# ---------------------------------------------------------------------------
# Block files
# ---------------------------------------------------------------------------


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _child(el: ET.Element, name: str) -> Optional[ET.Element]:
    for c in el:
        if _local(c.tag) == name:
            return c
    return None


def _field_value(block: ET.Element, name: str) -> Optional[str]:
    for c in block:
        if _local(c.tag) == "field" and c.get("name") == name:
            return (c.text or "").strip()
    return None


class BlockXmlAnalyzer:
    """Base class for block extractors."""

    def analyze_block(self, block: ET.Element) -> None:
        raise NotImplementedError

    def get_result(self) -> Any:
        raise NotImplementedError


class ComponentBlocksExtractor(BlockXmlAnalyzer):
    """Collects component type -> block names (events, methods, properties)."""

    _MUTATION_KEYS = {
        "component_event": "event_name",
        "component_method": "method_name",
        "component_set_get": "property_name",
    }

    def __init__(self) -> None:
        self._result: Dict[str, Set[str]] = {}

    def analyze_block(self, block: ET.Element) -> None:
        btype = block.get("type") or ""
        if not btype.startswith("component_"):
            return
        mutation = _child(block, "mutation")
        if mutation is None:
            return
        ctype = mutation.get("component_type")
        if not ctype:
            return
        names = self._result.setdefault(ctype, set())
        key = self._MUTATION_KEYS.get(btype)
        if key and mutation.get(key):
            names.add(str(mutation.get(key)))

    def get_result(self) -> Dict[str, Set[str]]:
        return self._result


class _DropdownExtractor(BlockXmlAnalyzer):
    """Reads the OP field of ``helpers_dropdown`` blocks for one dropdown key."""

    dropdown_key = ""

    def __init__(self) -> None:
        self._result: Set[str] = set()

    def _value(self, block: ET.Element) -> Optional[str]:
        if block.get("type") != "helpers_dropdown":
            return None
        mutation = _child(block, "mutation")
        if mutation is None or mutation.get("key") != self.dropdown_key:
            return None
        return _field_value(block, "OP") or None

    def get_result(self) -> Set[str]:
        return self._result


class PermissionBlockExtractor(_DropdownExtractor):
    """Permissions named explicitly by ``Permission`` dropdown blocks."""

    dropdown_key = "Permission"

    def analyze_block(self, block: ET.Element) -> None:
        value = self._value(block)
        if not value:
            return
        if "." not in value:
            value = PERMISSION_PREFIX + value
        self._result.add(value)


class ScopeBlockExtractor(_DropdownExtractor):
    """Storage scopes named by ``FileScope`` dropdown blocks."""

    dropdown_key = "FileScope"

    def analyze_block(self, block: ET.Element) -> None:
        value = self._value(block)
        if value:
            self._result.add(value)


def analyze_blocks(content: str, analyzers: Iterable[BlockXmlAnalyzer]) -> None:
    """Feed every ``<block>`` element of one block file to every analyzer.

    Unparseable files are logged and skipped; an empty file has no blocks.
    """
    analyzers = list(analyzers)
    if not content.strip():
        return
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        logger.warning("skipping unparseable block file: %s", e)
        return
    for el in root.iter():
        if _local(el.tag) != "block":
            continue
        for analyzer in analyzers:
            analyzer.analyze_block(el)
