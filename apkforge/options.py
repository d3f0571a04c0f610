"""Options that control how a built image is published."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field


@dataclass
class PublishOptions:
    """Settings for publishing an image."""

    local: bool = False
    tags: list[str] = field(default_factory=list)


PublishOption = Callable[[PublishOptions], None]


def with_local(local: bool) -> PublishOption:
    """Publish only to the local container daemon when ``local`` is true."""

    def apply(options: PublishOptions) -> None:
        options.local = local

    return apply


def with_tags(*args: str) -> PublishOption:
    """Use the given tags for publishing."""
    tags = list(args)

    def apply(options: PublishOptions) -> None:
        options.tags = list(tags)

    return apply


def apply_publish_options(options: Iterable[PublishOption]) -> PublishOptions:
    """Apply each option in order to fresh defaults and return the result."""
    result = PublishOptions()
    for option in options:
        option(result)
    return result