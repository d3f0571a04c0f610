"""Helpers for building images: architecture selection and file moves."""

from __future__ import annotations

import errno
import os
import shutil
from collections.abc import Sequence

# Architectures built when neither the command line nor the configuration
# names any.
ALL_ARCHS: tuple[str, ...] = ("x86_64", "aarch64")


def select_archs(archs: Sequence[str], config_archs: Sequence[str]) -> list[str]:
    """Return the architectures to build.

    Architectures given explicitly win; otherwise those of the configuration
    are used; when neither names any, every supported architecture is built.
    """
    if archs:
        return list(archs)
    if config_archs:
        return list(config_archs)
    return list(ALL_ARCHS)


def rename(source: str | os.PathLike[str], target: str | os.PathLike[str]) -> None:
    """Move ``source`` to ``target``, copying and deleting across devices."""
    try:
        os.rename(source, target)
        return
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
    with open(source, "rb") as src, open(target, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.remove(source)