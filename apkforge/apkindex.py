"""Reading and writing APKINDEX files and their tar.gz archives."""

from __future__ import annotations

import base64
import binascii
import gzip
import io
import re
import tarfile
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import BinaryIO

APKINDEX_FILENAME = "APKINDEX"
DESCRIPTION_FILENAME = "DESCRIPTION"
SIGNATURE_PREFIX = ".SIGN."

# Some provides lines are very long; allow lines up to one megabyte.
_MAX_LINE_LENGTH = 1024 * 1024
_UINT64_MAX = 2**64 - 1
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_UINT_RE = re.compile(r"[0-9]+")
_INT_RE = re.compile(r"[+-]?[0-9]+")


class IndexParseError(ValueError):
    """An APKINDEX file or archive could not be parsed."""


@dataclass
class Package:
    """One package entry of an APKINDEX."""

    name: str = ""
    version: str = ""
    arch: str = ""
    description: str = ""
    license: str = ""
    origin: str = ""
    maintainer: str = ""
    url: str = ""
    dependencies: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)
    install_if: list[str] = field(default_factory=list)
    size: int = 0
    installed_size: int = 0
    provider_priority: int = 0
    checksum: bytes = b""
    repo_commit: str = ""
    build_date: int = 0
    build_time: datetime | None = None

    def checksum_string(self) -> str:
        """Return the checksum in the ``Q1``-prefixed base64 form of the index."""
        return "Q1" + base64.b64encode(self.checksum).decode("ascii")


@dataclass
class APKIndex:
    """The contents of an APKINDEX archive."""

    signature: bytes = b""
    description: str = ""
    packages: list[Package] = field(default_factory=list)


def _split_repeated_field(value: str) -> list[str]:
    return value.split(" ") if value else []


def _parse_uint(value: str, what: str) -> int:
    if _UINT_RE.fullmatch(value) and int(value) <= _UINT64_MAX:
        return int(value)
    raise IndexParseError(f"cannot parse {what} {value}")


def _parse_int(value: str, what: str) -> int:
    if _INT_RE.fullmatch(value) and _INT64_MIN <= int(value) <= _INT64_MAX:
        return int(value)
    raise IndexParseError(f"cannot parse {what} {value}")


def _lines(stream: Iterable[str] | Iterable[bytes] | str | bytes) -> Iterator[str]:
    if isinstance(stream, str):
        stream = io.StringIO(stream)
    elif isinstance(stream, (bytes, bytearray)):
        stream = io.BytesIO(bytes(stream))
    for raw in stream:
        line = raw.decode("utf-8", "surrogateescape") if isinstance(raw, bytes) else raw
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        if len(line) > _MAX_LINE_LENGTH:
            raise IndexParseError("line too long")
        yield line


def parse_package_index(stream) -> list[Package]:
    """Parse a plain APKINDEX from text, bytes, or a stream of lines.

    A package is recorded when a blank line ends it.
    """
    packages: list[Package] = []
    pkg = Package()
    line_number = 1

    for line in _lines(stream):
        if not line:
            if pkg.name:
                packages.append(pkg)
            pkg = Package()
            continue

        if len(line) < 2 or line[1] != ":":
            raise IndexParseError(
                f'cannot parse line {line_number}: expected ":" in not found'
            )

        token, value = line[0], line[2:]
        match token:
            case "P":
                pkg.name = value
            case "V":
                pkg.version = value
            case "A":
                pkg.arch = value
            case "L":
                pkg.license = value
            case "T":
                pkg.description = value
            case "o":
                pkg.origin = value
            case "m":
                pkg.maintainer = value
            case "U":
                pkg.url = value
            case "D":
                pkg.dependencies = _split_repeated_field(value)
            case "p":
                pkg.provides = _split_repeated_field(value)
            case "c":
                pkg.repo_commit = value
            case "t":
                seconds = _parse_int(value, "build time")
                pkg.build_date = seconds
                pkg.build_time = datetime.fromtimestamp(seconds, timezone.utc)
            case "i":
                pkg.install_if = _split_repeated_field(value)
            case "S":
                pkg.size = _parse_uint(value, "size field")
            case "I":
                pkg.installed_size = _parse_uint(value, "installed size field")
            case "k":
                pkg.provider_priority = _parse_uint(value, "provider priority field")
            case "C":
                if value.startswith("Q1"):
                    try:
                        pkg.checksum = base64.b64decode(value[2:], validate=True)
                    except binascii.Error as exc:
                        raise IndexParseError(
                            f"cannot decode checksum {value}: {exc}"
                        ) from exc

        line_number += 1

    return packages


def index_from_archive(archive: BinaryIO | bytes) -> APKIndex:
    """Read an APKINDEX.tar.gz archive into an :class:`APKIndex`."""
    if isinstance(archive, (bytes, bytearray)):
        archive = io.BytesIO(bytes(archive))

    index = APKIndex()
    with tarfile.open(fileobj=archive, mode="r|gz") as tar:
        for member in tar:
            handle = tar.extractfile(member)
            data = handle.read() if handle is not None else b""
            if member.name == APKINDEX_FILENAME:
                index.packages = parse_package_index(io.BytesIO(data))
            elif member.name == DESCRIPTION_FILENAME:
                index.description = data.decode("utf-8", "surrogateescape")
            elif member.name.startswith(SIGNATURE_PREFIX):
                index.signature = data
            else:
                raise IndexParseError(
                    f"unexpected file found in APKINDEX: {member.name}"
                )
    return index


def _render_package(pkg: Package) -> str:
    lines = [f"C:{pkg.checksum_string()}", f"P:{pkg.name}", f"V:{pkg.version}"]
    if pkg.arch:
        lines.append(f"A:{pkg.arch}")
    if pkg.size:
        lines.append(f"S:{pkg.size}")
    if pkg.installed_size:
        lines.append(f"I:{pkg.installed_size}")
    lines.append(f"T:{pkg.description}")
    if pkg.url:
        lines.append(f"U:{pkg.url}")
    if pkg.license:
        lines.append(f"L:{pkg.license}")
    if pkg.origin:
        lines.append(f"o:{pkg.origin}")
    if pkg.maintainer:
        lines.append(f"m:{pkg.maintainer}")
    if pkg.build_time is not None:
        lines.append(f"t:{int(pkg.build_time.timestamp())}")
    if pkg.repo_commit:
        lines.append(f"c:{pkg.repo_commit}")
    if pkg.dependencies:
        lines.append(f"D:{' '.join(pkg.dependencies)}")
    if pkg.install_if:
        lines.append(f"i:[{' '.join(pkg.install_if)}]")
    if pkg.provides:
        lines.append(f"p:{' '.join(pkg.provides)}")
    if pkg.provider_priority:
        lines.append(f"k:{pkg.provider_priority}")
    return "\n".join(lines) + "\n\n"


def archive_from_index(index: APKIndex) -> io.BytesIO:
    """Build an APKINDEX.tar.gz archive holding APKINDEX and DESCRIPTION."""
    contents = "".join(_render_package(pkg) for pkg in index.packages if pkg.name)
    items = [
        (APKINDEX_FILENAME, contents.encode("utf-8", "surrogateescape")),
        (DESCRIPTION_FILENAME, index.description.encode("utf-8", "surrogateescape")),
    ]

    buffer = io.BytesIO()
    with gzip.GzipFile(fileobj=buffer, mode="wb", mtime=0) as compressed:
        with tarfile.open(
            fileobj=compressed, mode="w", format=tarfile.USTAR_FORMAT
        ) as tar:
            for name, data in items:
                info = tarfile.TarInfo(name)
                info.size = len(data)
                info.mode = 0o644
                info.mtime = 0
                tar.addfile(info, io.BytesIO(data))
    buffer.seek(0)
    return buffer