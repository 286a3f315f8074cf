"""
Templates - placeholder expansion for destination directories and file names.

The directory template is rendered against the fetched document and the file
name template against each sheet. Placeholders are dotted attribute paths:

- ``${properties.title}`` - document or sheet title
- ``${properties.index}`` - sheet position in the document
- ``${properties.sheet_id}`` - numeric sheet id
- ``${id}`` - document id
- ``${title}`` / ``${index}`` - shortcuts for the properties above

CamelCase segments are accepted as well (``${Properties.Title}``), and ``$$``
produces a literal dollar sign.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from sheets_uploader.exceptions import TemplateError

_NAME = r"[A-Za-z_][A-Za-z0-9_]*"
TEMPLATE_PATTERN = re.compile(rf"\$\$|\$\{{\s*({_NAME}(?:\.{_NAME})*)\s*\}}")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_SCALARS = (str, int, float, bool)


def _snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _lookup(value: Any, segment: str) -> Any:
    for name in dict.fromkeys((segment, _snake(segment))):
        if isinstance(value, Mapping):
            if name in value:
                return value[name]
        elif not name.startswith("_") and hasattr(value, name):
            return getattr(value, name)
    raise KeyError(segment)


class Template:
    """A validated template source, ready to render."""

    def __init__(self, source: str, name: str = "template") -> None:
        self.source = source
        self.name = name
        self._check_syntax()

    def _check_syntax(self) -> None:
        leftover = TEMPLATE_PATTERN.sub("", self.source)
        position = leftover.find("$")
        if position != -1:
            raise TemplateError(
                f"{self.name} template problem: bad placeholder near {leftover[position:position + 12]!r}",
                context={"template": self.source},
            )

    def render(self, data: Any) -> str:
        def replace(match: re.Match[str]) -> str:
            dotted = match.group(1)
            if dotted is None:
                return "$"
            value = data
            for segment in dotted.split("."):
                try:
                    value = _lookup(value, segment)
                except KeyError:
                    raise TemplateError(
                        f"could not use {self.name} template: no field {dotted!r}",
                        context={"template": self.source, "field": dotted},
                    ) from None
            if value is None:
                return ""
            if not isinstance(value, _SCALARS):
                raise TemplateError(
                    f"could not use {self.name} template: {dotted!r} is not a plain value",
                    context={"template": self.source, "field": dotted},
                )
            return str(value)

        return TEMPLATE_PATTERN.sub(replace, self.source)

    def __repr__(self) -> str:
        return f"Template({self.source!r}, name={self.name!r})"


def compile_template(source: str, name: str = "template") -> Template:
    """Validate ``source`` once so syntax problems surface before any work starts."""
    return Template(source, name)


def render(template: str | Template, data: Any) -> str:
    """Render ``template`` against ``data`` (a document, a sheet or a mapping)."""
    if not isinstance(template, Template):
        template = compile_template(template)
    return template.render(data)
