"""Tools for APK package indexes, lock files, package listings and dependency graphs."""

__version__ = "0.1.0"

__all__ = [
    "apkindex",
    "arch",
    "build",
    "dot",
    "lock",
    "options",
    "publish",
    "showpackages",
]