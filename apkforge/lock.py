"""Helpers for writing package lock files."""

from __future__ import annotations

import base64
import posixpath

_SCHEMES = ("https://", "http://")


def remove_label(value: str) -> str:
    """Strip leading ``@label`` prefixes from a repository reference.

    ``"@alpine docker.io/x"`` becomes ``"docker.io/x"``; several labels are
    removed in turn. Raises ValueError for empty input or a label without a
    following value.
    """
    if value == "":
        raise ValueError("input is empty")
    while value.startswith("@"):
        label, sep, rest = value.partition(" ")
        if not sep:
            raise ValueError("input does not follow the format '@label url'")
        value = rest
    return value


def strip_url_scheme(url: str) -> str:
    """Remove a leading ``https://``, then a leading ``http://``."""
    for scheme in _SCHEMES:
        url = url.removeprefix(scheme)
    return url


def _extension(path: str) -> str:
    base = posixpath.basename(path)
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


def default_output_path(config_path: str, extension: str) -> str:
    """Return the lock file path next to ``config_path``.

    The configuration's extension is replaced, so ``apko.yaml`` with
    ``lock.json`` gives ``apko.lock.json``.
    """
    ext = _extension(config_path)
    stem = config_path[: len(config_path) - len(ext)] if ext else config_path
    return f"{stem}.{extension}"


def _range_and_checksum(start: int, end: int, algorithm: str, digest: bytes) -> dict[str, str]:
    return {
        "range": f"bytes={start}-{end}",
        "checksum": f"{algorithm}-" + base64.b64encode(bytes(digest)).decode("ascii"),
    }


def lock_package_ranges(
    signature_size: int,
    control_size: int,
    data_size: int,
    signature_hash: bytes,
    control_hash: bytes,
    data_hash: bytes,
) -> dict[str, dict[str, str]]:
    """Return the byte ranges and checksums of an APK's sections.

    The result has ``control`` and ``data`` entries, and a ``signature``
    entry when the package carries a signature.
    """
    control_start = signature_size
    data_start = signature_size + control_size
    ranges = {
        "control": _range_and_checksum(
            control_start, data_start - 1, "sha1", control_hash
        ),
        "data": _range_and_checksum(
            data_start, data_start + data_size - 1, "sha256", data_hash
        ),
    }
    if signature_size != 0:
        ranges["signature"] = _range_and_checksum(
            0, signature_size - 1, "sha1", signature_hash
        )
    return ranges