"""Stable simulated MAC addresses derived from container names.

Both addresses carry the fixed ``00:60:2F`` OUI. The primary address uses
the first three bytes of the MD5 digest of the name, the secondary address
uses bytes four to six of the digest of the salted name. This is a
simulation convenience, not an identity scheme.
"""

import hashlib

OUI = "00:60:2F"
SECONDARY_SALT = ":secondary"


def _nic_part(hexdigits: str) -> str:
    return ":".join(hexdigits[i : i + 2] for i in range(0, len(hexdigits), 2))


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8"), usedforsecurity=False).hexdigest()


def primary_address(name: str) -> str:
    """first MAC address of a container"""
    return f"{OUI}:{_nic_part(_md5(name)[0:6])}"


def secondary_address(name: str) -> str:
    """second MAC address of a container, differs from the primary one"""
    return f"{OUI}:{_nic_part(_md5(name + SECONDARY_SALT)[6:12])}"


def address_pair(name: str) -> tuple[str, str]:
    return primary_address(name), secondary_address(name)
