"""Versioned artifact names of the form ``<prefix>-<N>``."""

from __future__ import annotations

import re
from collections.abc import Iterable

VERSION_SEPARATOR = "-"

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def latest_version(names: Iterable[str], prefix: str) -> int:
    """Return the highest ``N`` among ``<prefix>-<N>`` names, or -1 if none.

    Names with another prefix, without the separator, or whose suffix is
    not a decimal integer are ignored. A sign is allowed, so ``p-+5`` is
    version 5 and negative versions never win over an empty history.
    """
    latest = -1
    for name in names:
        if not name.startswith(prefix):
            continue
        suffix = name[len(prefix):]
        if not suffix.startswith(VERSION_SEPARATOR):
            continue  # No version specifier
        digits = suffix[len(VERSION_SEPARATOR):]
        if not _INTEGER_RE.fullmatch(digits):
            continue
        latest = max(latest, int(digits))
    return latest


def next_version(names: Iterable[str], prefix: str) -> int:
    """Version number for the next artifact under *prefix*."""
    return latest_version(names, prefix) + 1


def versioned_name(prefix: str, version: int) -> str:
    if version < 0:
        raise ValueError(f"version must be non-negative, got {version}")
    return f"{prefix}{VERSION_SEPARATOR}{version}"
