import io
import tarfile

import pytest

from apkforge.apkindex import (
    APKIndex,
    IndexParseError,
    Package,
    archive_from_index,
    index_from_archive,
    parse_package_index,
)

SINGLE_PACKAGE = (
    "C:Q1Deb0jNytkrjPW4N/eKLZ43BwOlw=\n"
    "P:a-pkg\n"
    "V:1.2.3-r1\n"
    "A:x86_64\n"
    "S:9180\n"
    "I:40960\n"
    "T:A sample package\n"
    "U:http://a.package.org\n"
    "L:Apache-2.0\n"
    "o:a-pkg\n"
    "m:maintainer <maintainer@example.com>\n"
    "t:1600096848\n"
    "c:af13bd168c9d86ede4ad1be5c4ceac79253a7e26\n"
    "D:so:libc.musl-x86_64.so.1\n"
    "p:thing1 thing2\n"
    "i:abc xyz\n"
    "k:9001\n"
    "\n"
)

# Two packages with fields in the order the index writer emits them.
CANONICAL_TWO_PACKAGES = (
    "C:Q1Deb0jNytkrjPW4N/eKLZ43BwOlw=\n"
    "P:a-pkg\n"
    "V:1.2.3-r1\n"
    "A:x86_64\n"
    "S:9180\n"
    "I:40960\n"
    "T:A sample package\n"
    "U:http://a.package.org\n"
    "L:Apache-2.0\n"
    "o:a-pkg\n"
    "m:maintainer <maintainer@example.com>\n"
    "t:1600096848\n"
    "c:af13bd168c9d86ede4ad1be5c4ceac79253a7e26\n"
    "D:so:libc.musl-x86_64.so.1\n"
    "p:thing1 thing2\n"
    "k:9001\n"
    "\n"
    "C:Q1Pi7+Lp0TdU9DNxeZKvFbOSjmncw=\n"
    "P:b-pkg\n"
    "V:1.1.1-r1\n"
    "A:x86_64\n"
    "S:5243\n"
    "I:11392\n"
    "T:Another package\n"
    "U:http://b.package.org\n"
    "L:Apache-2.0\n"
    "o:b-pkg\n"
    "m:maintainer <maintainer@example.com>\n"
    "t:1600096848\n"
    "c:af13bd168c9d86ede4ad1be5c4ceac79253a7e26\n"
    "D:so:libc.musl-x86_64.so.1\n"
    "p:thing3 thing4\n"
    "k:9002\n"
    "\n"
)

DESCRIPTION = "v3.16.0-0-g0000000\n"


def _make_archive(members):
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, data in members:
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    buffer.seek(0)
    return buffer


def _read_members(archive):
    result = {}
    with tarfile.open(fileobj=archive, mode="r:gz") as tar:
        for member in tar:
            result[member.name] = tar.extractfile(member).read()
    return result


def _sample_archive():
    return _make_archive(
        [
            (".SIGN.RSA.build-key.rsa.pub", b"\x01\x02\x03signature"),
            ("DESCRIPTION", DESCRIPTION.encode()),
            ("APKINDEX", CANONICAL_TWO_PACKAGES.encode()),
        ]
    )


def test_single_package():
    packages = parse_package_index(io.StringIO(SINGLE_PACKAGE))
    assert len(packages) == 1
    pkg = packages[0]

    assert pkg.name == "a-pkg"
    assert pkg.version == "1.2.3-r1"
    assert pkg.arch == "x86_64"
    assert pkg.license == "Apache-2.0"
    assert pkg.description == "A sample package"
    assert pkg.origin == "a-pkg"
    assert pkg.maintainer == "maintainer <maintainer@example.com>"
    assert pkg.url == "http://a.package.org"
    assert pkg.dependencies == ["so:libc.musl-x86_64.so.1"]
    assert pkg.provides == ["thing1", "thing2"]
    assert pkg.install_if == ["abc", "xyz"]
    assert pkg.size == 9180
    assert pkg.installed_size == 40960
    assert pkg.provider_priority == 9001
    assert pkg.repo_commit == "af13bd168c9d86ede4ad1be5c4ceac79253a7e26"
    assert pkg.build_date == 1600096848
    assert pkg.build_time.timestamp() == 1600096848
    assert pkg.checksum == bytes(
        [
            0xD, 0xE6, 0xF4, 0x8C, 0xDC, 0xAD, 0x92, 0xB8, 0xCF, 0x5B,
            0x83, 0x7F, 0x78, 0xA2, 0xD9, 0xE3, 0x70, 0x70, 0x3A, 0x5C,
        ]
    )
    assert pkg.checksum.hex() == "0de6f48cdcad92b8cf5b837f78a2d9e370703a5c"


def test_checksum_string_round_trips():
    pkg = parse_package_index(SINGLE_PACKAGE)[0]
    assert pkg.checksum_string() == "Q1Deb0jNytkrjPW4N/eKLZ43BwOlw="


def test_multiple_packages():
    packages = parse_package_index(io.StringIO(CANONICAL_TWO_PACKAGES))
    assert len(packages) == 2
    assert packages[0].name == "a-pkg"
    assert packages[1].name == "b-pkg"


def test_single_package_from_bytes():
    body = (
        "C:Q1Deb0jNytkrjPW4N/eKLZ43BwOlw=\n"
        "P:a-pkg\n"
        "V:1.2.3-r1\n"
        "A:x86_64\n"
        "S:9180\n"
        "I:40960\n"
        "T:A sample package\n"
        "U:http://a.package.org\n"
        "L:Apache-2.0\n"
        "o:a-pkg\n"
        "m:maintainer <maintainer@example.com>\n"
        "t:1600096848\n"
        "c:af13bd168c9d86ede4ad1be5c4ceac79253a7e26\n"
        "D:so:libc.musl-x86_64.so.1\n"
        "\n"
    ).encode()
    packages = parse_package_index(body)
    assert len(packages) == 1


def test_empty_repeated_fields():
    body = (
        "C:Q1Deb0jNytkrjPW4N/eKLZ43BwOlw=\n"
        "P:a-pkg\n"
        "V:1.2.3-r1\n"
        "D:\n"
        "p:\n"
        "i:abc xyz\n"
        "k:9001\n"
        "\n"
    )
    packages = parse_package_index(body)
    assert len(packages) == 1
    assert packages[0].provides == []
    assert packages[0].dependencies == []


def test_crlf_lines_are_accepted():
    packages = parse_package_index(b"P:a-pkg\r\nV:1.0-r0\r\n\r\n")
    assert [(p.name, p.version) for p in packages] == [("a-pkg", "1.0-r0")]


def test_package_without_trailing_blank_line_is_not_recorded():
    assert parse_package_index("P:a-pkg\nV:1.0-r0\n") == []


def test_missing_colon_is_an_error():
    with pytest.raises(IndexParseError, match="cannot parse line 2"):
        parse_package_index("P:a-pkg\nVbad\n\n")


def test_bad_size_is_an_error():
    with pytest.raises(IndexParseError, match="cannot parse size field abc"):
        parse_package_index("P:a-pkg\nS:abc\n\n")


def test_negative_installed_size_is_an_error():
    with pytest.raises(IndexParseError, match="installed size field"):
        parse_package_index("P:a-pkg\nI:-1\n\n")


def test_bad_build_time_is_an_error():
    with pytest.raises(IndexParseError, match="cannot parse build time"):
        parse_package_index("P:a-pkg\nt:yesterday\n\n")


def test_parse_from_archive():
    index = index_from_archive(_sample_archive())
    assert index.description == DESCRIPTION
    assert len(index.signature) > 0
    assert len(index.packages) == 2
    assert [p.name for p in index.packages] == ["a-pkg", "b-pkg"]


def test_unexpected_file_in_archive():
    archive = _make_archive([("README", b"hello")])
    with pytest.raises(IndexParseError, match="unexpected file found in APKINDEX: README"):
        index_from_archive(archive)


def test_archive_from_index():
    original = index_from_archive(_sample_archive())
    members = _read_members(archive_from_index(original))

    assert set(members) == {"APKINDEX", "DESCRIPTION"}
    assert members["APKINDEX"].decode() == CANONICAL_TWO_PACKAGES
    assert members["DESCRIPTION"].decode() == DESCRIPTION


def test_archive_round_trip_preserves_packages():
    original = index_from_archive(_sample_archive())
    rebuilt = index_from_archive(archive_from_index(original))
    assert rebuilt.packages == original.packages
    assert rebuilt.description == original.description
    assert rebuilt.signature == b""


def test_archive_skips_packages_without_name():
    index = APKIndex(
        description="desc",
        packages=[Package(name="", version="1"), Package(name="kept", version="2")],
    )
    rebuilt = index_from_archive(archive_from_index(index))
    assert [(p.name, p.version) for p in rebuilt.packages] == [("kept", "2")]