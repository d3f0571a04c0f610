"""Formatting of resolved package lists."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

FORMAT_NAME_SPACE_VERSION = "{{ .Name }} {{ .Version }}"
FORMAT_NAME_SPACE_VERSION_WITH_SOURCE = "{{ .Name }} {{ .Version }} {{ .Source }}"
FORMAT_NAME_EQUALS_VERSION = "{{ .Name }}={{ .Version }}"
FORMAT_NAME_EQUALS_VERSION_WITH_SOURCE = "{{ .Name }}={{ .Version }} {{ .Source }}"
FORMAT_NAME_BRACKETS_VERSION = "{{ .Name }} ({{ .Version }})"
FORMAT_NAME_BRACKETS_VERSION_WITH_SOURCE = "{{ .Name }} ({{ .Version }}) {{ .Source }}"
FORMAT_PKG_LOCK = "- {{ .Name }}={{ .Version }}"
FORMAT_PKG_LOCK_WITH_SOURCE = "- {{ .Name }}={{ .Version }} # {{ .Source }}"

FORMATS = {
    "name-version": FORMAT_NAME_SPACE_VERSION,
    "name-version-source": FORMAT_NAME_SPACE_VERSION_WITH_SOURCE,
    "name=version": FORMAT_NAME_EQUALS_VERSION,
    "name=version-source": FORMAT_NAME_EQUALS_VERSION_WITH_SOURCE,
    "name-(version)": FORMAT_NAME_BRACKETS_VERSION,
    "name-(version)-source": FORMAT_NAME_BRACKETS_VERSION_WITH_SOURCE,
    "packagelock": FORMAT_PKG_LOCK,
    "packagelock-source": FORMAT_PKG_LOCK_WITH_SOURCE,
}
DEFAULT_FORMAT = "name-version"

_FIELD_RE = re.compile(r"\.[A-Za-z_][A-Za-z0-9_]*")
_COMMENT_RE = re.compile(r"/\*.*\*/", re.DOTALL)


class TemplateError(ValueError):
    """A package format template could not be parsed or executed."""


@dataclass(frozen=True)
class _Field:
    name: str


def resolve_format(name: str) -> str:
    """Return the template for a predefined format name, else ``name`` itself."""
    return FORMATS.get(name, name)


def _compile(template: str) -> list[str | _Field]:
    parts: list[str | _Field] = []
    pos = 0
    trim_next = False
    while True:
        start = template.find("{{", pos)
        text = template[pos:] if start < 0 else template[pos:start]
        if trim_next:
            text = text.lstrip()
            trim_next = False
        if start < 0:
            if text:
                parts.append(text)
            return parts
        end = template.find("}}", start + 2)
        if end < 0:
            raise TemplateError(f"failed to parse format: unclosed action in {template!r}")
        inner = template[start + 2 : end]
        if len(inner) > 1 and inner[0] == "-" and inner[1].isspace():
            text = text.rstrip()
            inner = inner[1:]
        if len(inner) > 1 and inner[-1] == "-" and inner[-2].isspace():
            trim_next = True
            inner = inner[:-1]
        if text:
            parts.append(text)
        action = inner.strip()
        pos = end + 2
        if _COMMENT_RE.fullmatch(action):
            continue
        if not action:
            raise TemplateError("failed to parse format: missing value for command")
        if not _FIELD_RE.fullmatch(action):
            raise TemplateError(f"failed to parse format: unsupported action {action!r}")
        parts.append(_Field(action[1:]))


def _execute(parts: list[str | _Field], values: dict[str, str]) -> str:
    out = []
    for part in parts:
        if isinstance(part, _Field):
            if part.name not in values:
                raise TemplateError(
                    f"failed to execute template: can't evaluate field {part.name}"
                )
            out.append(values[part.name])
        else:
            out.append(part)
    return "".join(out)


def render_package(template: str, name: str, version: str, source: str) -> str:
    """Render one package with a template using ``.Name``, ``.Version``, ``.Source``."""
    return _execute(
        _compile(template), {"Name": name, "Version": version, "Source": source}
    )


def render_packages(template: str, packages: Iterable[tuple[str, str, str]]) -> str:
    """Render ``(name, version, source)`` triples, one line each.

    The template is parsed before any package is rendered, so a malformed
    template fails even for an empty list.
    """
    parts = _compile(template)
    return "".join(
        _execute(parts, {"Name": name, "Version": version, "Source": source}) + "\n"
        for name, version, source in packages
    )