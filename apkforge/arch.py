"""Mapping of platform architecture names to APK architecture names."""

_APK_ARCHES = {
    "i386": "x86",
    "386": "x86",
    "amd64": "x86_64",
    "arm64": "aarch64",
    "arm/v6": "armhf",
    "arm/v7": "armv7",
}


def arch_to_apk(value: str) -> str:
    """Return the APK name for an architecture; unknown names pass through."""
    return _APK_ARCHES.get(value, value)