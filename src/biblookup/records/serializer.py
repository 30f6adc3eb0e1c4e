"""Schema-driven (de)serialization for Hash, JSON, XML and Obj formats.

Every record type carries a :class:`~biblookup.records.schema.Schema`.  The
functions here walk that schema in declared order, applying the
:class:`FormatPolicy` for the requested format.  A record type adjusts a
policy through its ``policy_overrides`` mapping rather than by subclassing
a format.

Deserialization is forgiving: unknown keys are ignored, malformed payloads
are logged and yield an empty record, and a value that cannot be coerced to
its declared scalar type is dropped with a warning.
"""

from __future__ import annotations

import ast
import json
import re
import xml.etree.ElementTree as ET
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Any

import structlog

from biblookup.errors import DeserializationError
from biblookup.records.schema import Field, transform_name
from biblookup.utils import camelize, pluralize

logger = structlog.get_logger(__name__)

XML_PROLOG = re.compile(r"^\s*(<\?xml[^>]*\?>)?\s*", flags=re.DOTALL)
XML_ROOT_TAG = re.compile(r"<([\w:.-]+)")
TRUE_VALUES = {"true", "1", "yes", "y", "t"}
FALSE_VALUES = {"false", "0", "no", "n", "f"}


class Format(str, Enum):
    HASH = "hash"
    JSON = "json"
    XML = "xml"
    OBJ = "obj"


@dataclass(frozen=True, slots=True)
class FormatPolicy:
    """Naming and rendering rules for one wire format."""

    parse_element: str = "default"
    parse_attribute: str = "default"
    render_element: str = "camelcase"
    render_attribute: str = "camelcase"
    render_empty: bool = False
    render_nil: bool = False
    attributes_as_elements: bool = False
    wrap_collections: bool = False

    def render_name(self, field: Field) -> str:
        if field.wire_name:
            return field.wire_name
        mode = self.render_attribute if field.attribute else self.render_element
        return transform_name(field.name, mode)

    def parse_names(self, field: Field) -> tuple[str, ...]:
        """Keys accepted for ``field``, most specific first."""
        mode = self.parse_attribute if field.attribute else self.parse_element
        candidates = [field.wire_name] if field.wire_name else []
        candidates += [transform_name(field.name, mode), self.render_name(field), field.name]
        return tuple(dict.fromkeys(name for name in candidates if name))

    def wraps(self, field: Field) -> bool:
        return self.wrap_collections if field.wrap is None else field.wrap


DEFAULT_POLICIES: Mapping[Format, FormatPolicy] = MappingProxyType(
    {
        Format.HASH: FormatPolicy(),
        Format.JSON: FormatPolicy(),
        Format.OBJ: FormatPolicy(),
        Format.XML: FormatPolicy(
            render_element="default",
            render_attribute="default",
            attributes_as_elements=True,
            wrap_collections=True,
        ),
    }
)


@lru_cache(maxsize=None)
def policy_for(record_type: type, fmt: Format) -> FormatPolicy:
    overrides = record_type.policy_overrides.get(fmt)
    base = DEFAULT_POLICIES[fmt]
    return replace(base, **overrides) if overrides else base


@dataclass(frozen=True, slots=True)
class NoWrap:
    pass


@dataclass(frozen=True, slots=True)
class WrapWithTemplate:
    """``template`` holds ``%(data)s``; for Hash/Obj data it is the wrapper key."""

    template: str


@dataclass(frozen=True, slots=True)
class WrapBoolean:
    enabled: bool


WrapStrategy = NoWrap | WrapWithTemplate | WrapBoolean


def wrap(data: Any, fmt: Format | str, strategy: WrapStrategy | None, name: str) -> Any:
    """Inject a synthetic root around bare lists or scalars."""
    fmt = Format(fmt)
    match strategy:
        case None | NoWrap() | WrapBoolean(enabled=False):
            return data
        case WrapWithTemplate(template=template):
            pass
        case _:
            template = None
    if fmt in (Format.HASH, Format.OBJ):
        if isinstance(data, Mapping):
            return data
        return {template or name: data}
    text = data.decode("utf-8") if isinstance(data, bytes) else str(data)
    if fmt is Format.JSON:
        if text.lstrip().startswith("{"):
            return text
        template = template or '{"%s": %%(data)s}' % name
        return template % {"data": text}
    prolog_match = XML_PROLOG.match(text)
    prolog, body = prolog_match.group(1) or "", text[prolog_match.end():]
    template = template or f"<{name}>%(data)s</{name}>"
    wrapper = XML_ROOT_TAG.search(template)
    root = XML_ROOT_TAG.match(body)
    if wrapper and root and _local(root.group(1)) == _local(wrapper.group(1)):
        return text
    return prolog + template % {"data": body}


def detect_format(data: Any) -> Format:
    if isinstance(data, (Mapping, list)):
        return Format.HASH
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    if isinstance(data, str) and data.lstrip().startswith("<"):
        return Format.XML
    return Format.JSON


# Rendering


def serialize(record, fmt: Format | str = Format.HASH):
    fmt = Format(fmt)
    match fmt:
        case Format.HASH:
            return to_mapping(record, fmt)
        case Format.JSON:
            return json.dumps(to_mapping(record, fmt))
        case Format.OBJ:
            return repr(to_mapping(record, fmt))
        case Format.XML:
            return ET.tostring(to_element(record, root_name(type(record))), encoding="unicode")


def root_name(record_type: type) -> str:
    return record_type.xml_root or camelize(record_type.__name__)


def to_mapping(record, fmt: Format) -> dict[str, Any]:
    policy = policy_for(type(record), fmt)
    result: dict[str, Any] = {}
    for field in record.schema:
        value = getattr(record, field.name)
        name = policy.render_name(field)
        if field.collection:
            if value or policy.render_empty:
                result[name] = [_render_item(field, item, fmt) for item in value or []]
        elif value is not None:
            result[name] = _render_item(field, value, fmt)
        elif policy.render_nil:
            result[name] = None
    return result


def _render_item(field: Field, value: Any, fmt: Format) -> Any:
    if field.nested:
        return to_mapping(value, fmt)
    if isinstance(value, Enum):
        return value.value
    if fmt is not Format.HASH and isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def to_element(record, tag: str) -> ET.Element:
    policy = policy_for(type(record), Format.XML)
    element = ET.Element(tag)
    for field in record.schema:
        value = getattr(record, field.name)
        name = policy.render_name(field)
        if field.collection:
            if not value and not policy.render_empty:
                continue
            parent = ET.SubElement(element, pluralize(name)) if policy.wraps(field) else element
            for item in value or []:
                _append(parent, field, name, item)
        elif value is None:
            if policy.render_nil and not (field.attribute or field.text):
                ET.SubElement(element, name)
        elif field.text:
            element.text = _xml_text(value)
        elif field.attribute and not policy.attributes_as_elements:
            element.set(name, _xml_text(value))
        else:
            _append(element, field, name, value)
    return element


def _append(parent: ET.Element, field: Field, name: str, value: Any) -> None:
    if field.nested:
        parent.append(to_element(value, name))
    else:
        ET.SubElement(parent, name).text = _xml_text(value)


def _xml_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


# Parsing


def deserialize(
    record_type: type,
    data: Any,
    fmt: Format | str | None = None,
    strategy: WrapStrategy | None = None,
):
    """Build a ``record_type`` instance from wire data."""
    return record_type(data, format=fmt, wrap=strategy)


def load_values(
    record_type: type,
    data: Any,
    fmt: Format | str | None = None,
    strategy: WrapStrategy | None = None,
) -> tuple[dict[str, Any], DeserializationError | None]:
    """Return field values parsed from ``data`` and the parse failure, if any."""
    fmt = Format(fmt) if fmt else detect_format(data)
    if strategy is None:
        strategy = record_type.wrap_formats.get(fmt)
    name = root_name(record_type)
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    try:
        match fmt:
            case Format.XML:
                text = wrap(str(data), fmt, strategy, name)
                root = ET.fromstring(text.encode("utf-8"))
                return from_element(record_type, root), None
            case Format.JSON:
                mapping = json.loads(wrap(data, fmt, strategy, name))
            case Format.OBJ:
                mapping = wrap(ast.literal_eval(data), fmt, strategy, name)
            case _:
                mapping = wrap(data, fmt, strategy, name)
    except (ET.ParseError, ValueError, SyntaxError, TypeError) as exc:
        logger.warning("serializer.malformed", record=record_type.__name__, format=fmt.value, error=str(exc))
        return {}, DeserializationError(f"malformed {fmt.value} for {record_type.__name__}: {exc}")
    if not isinstance(mapping, Mapping):
        logger.warning("serializer.not_an_object", record=record_type.__name__, format=fmt.value)
        return {}, DeserializationError(f"{fmt.value} payload for {record_type.__name__} is not an object")
    return from_mapping(record_type, record_type.prepare(mapping, fmt), fmt), None


def from_mapping(record_type: type, data: Mapping[str, Any], fmt: Format) -> dict[str, Any]:
    policy = policy_for(record_type, fmt)

    def load_nested(nested_type: type, raw: Any):
        if not isinstance(raw, Mapping):
            raise DeserializationError(f"expected an object for {nested_type.__name__}")
        return nested_type.loaded(from_mapping(nested_type, raw, fmt))

    values: dict[str, Any] = {}
    for field in record_type.schema:
        for key in policy.parse_names(field):
            if key in data:
                raw = data[key]
                break
        else:
            continue
        if raw is None:
            continue
        values[field.name] = _load_field(record_type, field, raw, load_nested)
    return values


def from_element(record_type: type, element: ET.Element) -> dict[str, Any]:
    policy = policy_for(record_type, Format.XML)
    children = list(element)

    def load_nested(nested_type: type, raw: Any):
        return nested_type.loaded(from_element(nested_type, raw))

    values: dict[str, Any] = {}
    for field in record_type.schema:
        names = policy.parse_names(field)
        if field.text:
            if element.text is not None:
                values[field.name] = _load_field(record_type, field, element.text.strip(), load_nested)
            continue
        if field.attribute:
            attrs = {_local(key): value for key, value in element.attrib.items()}
            found = next((attrs[name] for name in names if name in attrs), None)
            if found is not None:
                values[field.name] = _load_field(record_type, field, found, load_nested)
                continue
        if field.collection:
            containers = {pluralize(name) for name in names}
            matches = []
            for child in children:
                tag = _local(child.tag)
                if tag in containers and _is_container(child, names):
                    matches.extend(child)
                elif tag in names:
                    matches.append(child)
            if matches:
                raw = [_element_value(field, match) for match in matches]
                values[field.name] = _load_field(record_type, field, raw, load_nested)
        elif (match := next((child for child in children if _local(child.tag) in names), None)) is not None:
            values[field.name] = _load_field(record_type, field, _element_value(field, match), load_nested)
    return values


def _is_container(element: ET.Element, names: tuple[str, ...]) -> bool:
    """True when ``element`` only wraps items named like the field itself.

    Names that are already plural render as ``<books><books>A</books></books>``,
    so the wrapper and its items share a tag.
    """
    items = list(element)
    if not items:
        return _local(element.tag) not in names or not (element.text or "").strip()
    return all(_local(item.tag) in names for item in items)


def _element_value(field: Field, element: ET.Element) -> Any:
    return element if field.nested else (element.text or "").strip()


def _local(tag: str) -> str:
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[1]
    return tag.rsplit(":", 1)[-1]


def _load_field(owner: type, field: Field, raw: Any, load_nested: Callable[[type, Any], Any]) -> Any:
    if field.collection:
        items = raw if isinstance(raw, list) else [raw]
        result = []
        for item in items:
            try:
                result.append(_load_item(field, item, load_nested))
            except DeserializationError as exc:
                logger.warning("serializer.item_dropped", record=owner.__name__, field=field.name, error=str(exc))
        return result
    try:
        return _load_item(field, raw, load_nested)
    except DeserializationError as exc:
        logger.warning("serializer.field_dropped", record=owner.__name__, field=field.name, error=str(exc))
        return None


def _load_item(field: Field, raw: Any, load_nested: Callable[[type, Any], Any]) -> Any:
    if field.nested:
        record = load_nested(field.type, raw)
        if field.type.identifying_fields and not record.identified:
            raise DeserializationError(f"{field.type.__name__} has no identifying field")
        return record
    return coerce_scalar(raw, field.type, field.choices)


def coerce_scalar(value: Any, target: type, choices: tuple[str, ...] | None = None) -> Any:
    """Convert a wire value to ``target`` or raise :class:`DeserializationError`."""
    if isinstance(value, (Mapping, list)):
        raise DeserializationError(f"expected {target.__name__}, got {type(value).__name__}")
    try:
        result = _coerce(value, target)
    except (TypeError, ValueError) as exc:
        raise DeserializationError(f"cannot convert {value!r} to {target.__name__}") from exc
    if choices and result not in choices:
        raise DeserializationError(f"{result!r} is not one of {', '.join(choices)}")
    return result


def _coerce(value: Any, target: type) -> Any:
    if issubclass(target, Enum):
        return value if isinstance(value, target) else target(value)
    if target is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES:
            return False
        raise ValueError(value)
    if target is int:
        if isinstance(value, bool):
            raise TypeError("boolean is not an integer")
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(value)
        return int(value.strip()) if isinstance(value, str) else int(value)
    if target is float:
        if isinstance(value, bool):
            raise TypeError("boolean is not a number")
        return float(value)
    if target is datetime:
        if isinstance(value, datetime):
            return value
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if target is date:
        if isinstance(value, date):
            return value
        return date.fromisoformat(str(value).strip())
    return value if isinstance(value, str) else str(value)
