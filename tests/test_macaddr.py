from __future__ import annotations

import hashlib
import re

from gwtopo.macaddr import OUI, address_pair, primary_address, secondary_address

MAC_RE = re.compile(r"^00:60:2F(:[0-9a-f]{2}){3}$")

NAMES = [
    "genieacs",
    "bng-7",
    "vcpe",
    "client-lan-vcpe-p1",
    "mv1-r21-7",
    "mv2plus-r22-9-05",
    "mv3-r22-20-09",
    "x",
]


def test_primary_matches_md5_prefix() -> None:
    digest = hashlib.md5(b"genieacs").hexdigest()
    expected = f"{OUI}:{digest[0:2]}:{digest[2:4]}:{digest[4:6]}"
    assert primary_address("genieacs") == expected


def test_secondary_uses_salted_digest_slice() -> None:
    digest = hashlib.md5(b"genieacs:secondary").hexdigest()
    expected = f"{OUI}:{digest[6:8]}:{digest[8:10]}:{digest[10:12]}"
    assert secondary_address("genieacs") == expected


def test_addresses_are_deterministic_and_distinct() -> None:
    for name in NAMES:
        assert primary_address(name) == primary_address(name)
        assert secondary_address(name) == secondary_address(name)
        assert primary_address(name) != secondary_address(name)
        assert MAC_RE.match(primary_address(name))
        assert MAC_RE.match(secondary_address(name))


def test_address_pair() -> None:
    assert address_pair("vcpe") == (primary_address("vcpe"), secondary_address("vcpe"))


def test_different_names_differ() -> None:
    assert len({primary_address(name) for name in NAMES}) == len(NAMES)
