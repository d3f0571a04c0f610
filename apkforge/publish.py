"""Helpers for publishing images: annotation parsing and reference output."""

from __future__ import annotations

import re
from collections.abc import Iterable

_ANNOTATION_KEY_RE = re.compile(r"[a-z0-9\-.]+")


class AnnotationError(ValueError):
    """An annotation given on the command line is malformed."""


def parse_annotations(raw_annotations: Iterable[str]) -> dict[str, str]:
    """Parse ``key:value`` annotations into a mapping.

    Keys may hold lower-case letters, digits, dashes and dots. Each key may
    appear once and every value must be non-empty. The value is everything
    after the first colon.
    """
    annotations: dict[str, str] = {}
    for raw in raw_annotations:
        key, sep, value = raw.partition(":")
        if not sep:
            raise AnnotationError(f"unable to parse annotation: {raw}")
        if key in annotations:
            raise AnnotationError(f"annotation {key} defined more than once")
        if not _ANNOTATION_KEY_RE.fullmatch(key):
            raise AnnotationError(f"annotation key malformed: {key}")
        if value == "":
            raise AnnotationError(f"annotation {key} value is empty")
        annotations[key] = value
    return annotations


def format_image_refs(refs: Iterable[object]) -> str:
    """Return the published references, one per line, ending with a newline."""
    return "\n".join(str(ref) for ref in refs) + "\n"