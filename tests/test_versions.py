"""Tests for versioned artifact names."""

from __future__ import annotations

import pytest

from cluster_license.licensing.versions import latest_version, next_version, versioned_name


@pytest.mark.parametrize("names, expected", [
    (set(), 0),
    ({"p-0", "p-3", "p-1"}, 4),
    ({"p-0", "q-9", "p-abc"}, 1),
    ({"p", "p-", "p-+", "p- 7", "p-3.0", "p-0x3"}, 0),
    ({"p-+5", "p-2"}, 6),
    ({"p--4"}, 0),
    ({"px-3", "p-2"}, 3),
    ({"p-10", "p-9"}, 11),
    ({"p-007"}, 8),
])
def test_next_version(names, expected):
    assert next_version(names, "p") == expected


def test_latest_version_sentinel():
    assert latest_version([], "com.docker.license") == -1


def test_latest_ignores_other_prefixes():
    names = ["com.docker.license-4", "com.docker.licenses-99", "other-12"]
    assert latest_version(names, "com.docker.license") == 4


def test_accepts_any_iterable():
    assert next_version((f"p-{i}" for i in range(5)), "p") == 5


def test_non_ascii_digits_ignored():
    # Arabic-Indic three; int() would accept it
    assert next_version({"p-٣"}, "p") == 0


def test_versioned_name():
    assert versioned_name("com.docker.license", 7) == "com.docker.license-7"


def test_versioned_name_rejects_negative():
    with pytest.raises(ValueError):
        versioned_name("p", -1)
