"""
Schema-driven structured extraction.

A schema names a ``baseSelector`` matching one element per record and a list
of ``fields`` evaluated relative to that element:

    schema = {
        "name": "products",
        "baseSelector": ".product",
        "fields": [
            {"name": "title", "selector": "h2", "type": "text"},
            {"name": "link", "selector": "a", "type": "attribute", "attribute": "href"},
            {"name": "price", "selector": ".price", "type": "regex", "pattern": r"\\$(\\d+)"},
        ],
    }

Field types: text, attribute, html, regex, nested, list, nested_list.
Transforms: lowercase, uppercase, strip. A field that yields nothing takes
its ``default`` when one is given and is omitted otherwise.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

from bs4 import BeautifulSoup
from lxml import etree
from lxml import html as lxml_html

logger = logging.getLogger(__name__)

FIELD_TYPES = ("text", "attribute", "html", "regex", "nested", "list", "nested_list")
TRANSFORMS = ("lowercase", "uppercase", "strip")


def validate_schema(schema: dict) -> None:
    """
    Check a schema's structure.

    Raises:
        ValueError: On a missing base selector, unknown field type or transform
    """
    if not isinstance(schema, dict) or not schema.get("baseSelector"):
        raise ValueError("Extraction schema needs a 'baseSelector'")
    for field in list(schema.get("baseFields") or []) + list(schema.get("fields") or []):
        _validate_field(field)


def _validate_field(field: dict) -> None:
    if not field.get("name"):
        raise ValueError(f"Extraction field without a name: {field!r}")
    field_type = field.get("type", "text")
    if field_type not in FIELD_TYPES:
        raise ValueError(f"Unknown field type {field_type!r} for field {field['name']!r}")
    if field_type == "attribute" and not field.get("attribute"):
        raise ValueError(f"Attribute field {field['name']!r} needs an 'attribute'")
    if field_type == "regex" and not field.get("pattern"):
        raise ValueError(f"Regex field {field['name']!r} needs a 'pattern'")
    if field_type in ("nested", "nested_list") and not field.get("fields"):
        raise ValueError(f"{field_type} field {field['name']!r} needs 'fields'")
    transform = field.get("transform")
    if transform is not None and transform not in TRANSFORMS:
        raise ValueError(f"Unknown transform {transform!r} for field {field['name']!r}")
    for child in field.get("fields") or []:
        _validate_field(child)


class JsonExtractionStrategy(ABC):
    """Walks a schema over a parsed document; subclasses supply the selector engine."""

    def __init__(self, schema: dict):
        validate_schema(schema)
        self.schema = schema

    @property
    def name(self) -> Optional[str]:
        return self.schema.get("name")

    def extract(self, html: str) -> list[dict]:
        """Extract one record per element matching ``baseSelector``."""
        root = self._parse(html)
        records = []
        for element in self._select(root, self.schema["baseSelector"]):
            record: dict[str, Any] = {}
            for field in self.schema.get("baseFields") or []:
                self._put(record, field, self._extract_field(element, field))
            record.update(self._extract_item(element, self.schema.get("fields") or []))
            records.append(record)

        logger.debug(f"Extracted {len(records)} record(s) for schema {self.name!r}")
        return records

    def _extract_item(self, element: Any, fields: list[dict]) -> dict:
        item: dict[str, Any] = {}
        for field in fields:
            self._put(item, field, self._extract_field(element, field))
        return item

    @staticmethod
    def _put(item: dict, field: dict, value: Any) -> None:
        if value is None:
            value = field.get("default")
        if value is not None:
            item[field["name"]] = value

    def _extract_field(self, element: Any, field: dict) -> Any:
        field_type = field.get("type", "text")
        selector = field.get("selector")

        if field_type == "nested":
            target = self._first(element, selector) if selector else element
            if target is None:
                return None
            return self._extract_item(target, field["fields"])

        if field_type in ("list", "nested_list"):
            if not selector:
                return None
            children = self._select(element, selector)
            if field.get("fields"):
                return [self._extract_item(child, field["fields"]) for child in children]
            return [self._apply_transform(self._text(child), field) for child in children]

        target = self._first(element, selector) if selector else element
        if target is None:
            return None

        if field_type == "text":
            value = self._text(target)
        elif field_type == "attribute":
            value = self._attribute(target, field["attribute"])
        elif field_type == "html":
            value = self._html(target)
        else:
            match = re.search(field["pattern"], self._text(target))
            if match is None:
                return None
            value = match.group(1) if match.groups() else match.group(0)

        return self._apply_transform(value, field)

    @staticmethod
    def _apply_transform(value: Any, field: dict) -> Any:
        transform = field.get("transform")
        if not isinstance(value, str) or transform is None:
            return value
        if transform == "lowercase":
            return value.lower()
        if transform == "uppercase":
            return value.upper()
        return value.strip()

    def _first(self, element: Any, selector: str) -> Any:
        matches = self._select(element, selector)
        return matches[0] if matches else None

    @abstractmethod
    def _parse(self, html: str) -> Any:
        ...

    @abstractmethod
    def _select(self, element: Any, selector: str) -> list:
        ...

    @abstractmethod
    def _text(self, element: Any) -> str:
        ...

    @abstractmethod
    def _attribute(self, element: Any, name: str) -> Optional[str]:
        ...

    @abstractmethod
    def _html(self, element: Any) -> str:
        ...


class JsonCssExtractionStrategy(JsonExtractionStrategy):
    """Selectors are CSS, evaluated with BeautifulSoup."""

    def _parse(self, html: str) -> Any:
        return BeautifulSoup(html, "lxml")

    def _select(self, element: Any, selector: str) -> list:
        return element.select(selector)

    def _text(self, element: Any) -> str:
        return element.get_text().strip()

    def _attribute(self, element: Any, name: str) -> Optional[str]:
        value = element.get(name)
        if isinstance(value, list):
            # bs4 returns multi-valued attributes such as class as lists
            return " ".join(value)
        return value

    def _html(self, element: Any) -> str:
        return str(element)


class JsonXPathExtractionStrategy(JsonExtractionStrategy):
    """
    Selectors are XPath, evaluated with lxml.

    Field selectors are relative to the record element; a bare path such as
    ``h2`` or ``span[@class='price']`` is evaluated as ``./h2``.
    """

    def _parse(self, html: str) -> Any:
        return lxml_html.fromstring(html or "<html></html>")

    def _select(self, element: Any, selector: str) -> list:
        try:
            results = element.xpath(self._relative(selector))
        except etree.XPathError as e:
            raise ValueError(f"Invalid XPath {selector!r}: {e}") from e
        return [node for node in results if isinstance(node, etree._Element)]

    @staticmethod
    def _relative(selector: str) -> str:
        if selector.startswith(("/", ".", "(")):
            return selector
        return f"./{selector}"

    def _text(self, element: Any) -> str:
        return element.text_content().strip()

    def _attribute(self, element: Any, name: str) -> Optional[str]:
        return element.get(name)

    def _html(self, element: Any) -> str:
        return etree.tostring(element, encoding="unicode", method="html", with_tail=False)
