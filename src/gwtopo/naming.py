"""Device identifier grammar and its packed integer form.

Identifiers look like ``{family}-{release}-{customer}[-{index}]``, for
example ``mv2plus-r22-9-05``. Each field maps through a fixed table and the
result is packed positionally::

    hash = family * 1000 + release * 100 + customer * 10 + index + 1

The packed value is used as the VLAN ID of a customer device on a LAN port.
The index occupies the last decimal digit, so only indices 01-09 are
encodable; larger indices would alias onto other customers' hashes
(``mv1-r21-7-15`` and ``mv1-r21-9-05`` would both be 1016). Index suffixes
are accepted with two digits (``05``) or in the legacy three digit form
(``005``); decoding always produces the two digit form.

The largest packed value is 3130 (``mv3-r22-20-09``), so ``decode`` accepts
1001-3130. A limit of 3129 would reject the valid identifier
``mv3-r22-20-09``.
"""

import re

from gwtopo.models import InvalidHash, InvalidIdentifier

FAMILIES = {"mv1": 1, "mv2plus": 2, "mv3": 3}
RELEASES = {"r21": 0, "r22": 1}
CUSTOMERS = {"7": 0, "9": 1, "20": 2}

MAX_INDEX = 9
HASH_MIN = 1001
HASH_MAX = (
    max(FAMILIES.values()) * 1000
    + max(RELEASES.values()) * 100
    + max(CUSTOMERS.values()) * 10
    + MAX_INDEX
    + 1
)

_FAMILY_NAMES = {v: k for k, v in FAMILIES.items()}
_RELEASE_NAMES = {v: k for k, v in RELEASES.items()}
_CUSTOMER_NAMES = {v: k for k, v in CUSTOMERS.items()}

_IDENTIFIER_RE = re.compile(
    r"^(?P<family>mv1|mv2plus|mv3)-(?P<release>r21|r22)-(?P<customer>7|9|20)"
    r"(?:-0?(?P<index>0[1-9]))?$"
)
# container names also allow indices that have no packed form
_CONTAINER_NAME_RE = re.compile(
    r"^(mv1|mv2plus|mv3)-r2[12]-(7|9|20)(-0?(0[1-9]|[1-9][0-9]))?$"
)
_LAN_DEVICE_RE = re.compile(r"^(?P<base>.+)-p(?P<port>[1-4])$")
_ETH_RE = re.compile(r"^(mv[123]|mv2plus)-.*-p([1-4])$|^(vcpe)-p([1-4])$")

# LAN port assignments that carry no customer VLAN
UNTAGGED_ASSIGNMENTS = ("wan", "wanoe")


def validate_identifier(value: str) -> bool:
    """true if value is an encodable device identifier"""
    return _IDENTIFIER_RE.match(value) is not None


def validate_container_name(value: str) -> bool:
    """true if value follows the device naming scheme for containers,
    whether or not it has a packed form"""
    return _CONTAINER_NAME_RE.match(value) is not None


def encode(value: str) -> int:
    """pack a device identifier, raises InvalidIdentifier"""
    match = _IDENTIFIER_RE.match(value)
    if match is None:
        if validate_container_name(value):
            raise InvalidIdentifier(
                f"{value}: index above {MAX_INDEX:02d} has no unique packed form"
            )
        raise InvalidIdentifier(f"{value}: not a valid device identifier")

    index = int(match["index"]) if match["index"] else 0
    return (
        FAMILIES[match["family"]] * 1000
        + RELEASES[match["release"]] * 100
        + CUSTOMERS[match["customer"]] * 10
        + index
        + 1
    )


def decode(packed: int) -> str:
    """unpack a hash into its canonical identifier, raises InvalidHash"""
    if isinstance(packed, bool) or not isinstance(packed, int):
        raise InvalidHash(f"{packed!r}: not an integer")
    if not HASH_MIN <= packed <= HASH_MAX:
        raise InvalidHash(f"{packed}: outside {HASH_MIN}-{HASH_MAX}")

    value = packed - 1
    index = value % 10
    customer = (value // 10) % 10
    release = (value // 100) % 10
    family = value // 1000

    try:
        parts = [
            _FAMILY_NAMES[family],
            _RELEASE_NAMES[release],
            _CUSTOMER_NAMES[customer],
        ]
    except KeyError:
        raise InvalidHash(f"{packed}: field out of range") from None
    if index:
        parts.append(f"{index:02d}")
    return "-".join(parts)


def canonicalize(value: str) -> str:
    """the canonical spelling of an identifier, e.g. 005 becomes 05"""
    return decode(encode(value))


def parse_lan_device(value: str) -> tuple[str, int]:
    """split a LAN client device like mv1-r21-7-p3 into (base, port)"""
    match = _LAN_DEVICE_RE.match(value)
    if match is None:
        raise InvalidIdentifier(
            f"{value}: device identifier must end with -p1, -p2, -p3 or -p4"
        )
    return match["base"], int(match["port"])


def eth_interface(value: str) -> str:
    """the gateway interface a LAN port identifier is attached to

    mv1 and mv2plus number their LAN ports from eth0, mv3 and the vCPE
    from eth1.
    """
    match = _ETH_RE.match(value)
    if match is None:
        raise InvalidIdentifier(
            f"{value}: expected a form like mv1-r21-7-p1, mv3-r21-9-02-p4 or vcpe-p1"
        )
    kind = match[1] or match[3]
    port = int(match[2] or match[4])
    if kind in ("mv3", "vcpe"):
        return f"eth{port}"
    return f"eth{port - 1}"


def lan_port_vlan(assignment: str | None) -> int | None:
    """VLAN for the device assigned to a LAN port, None if untagged"""
    if not assignment or assignment in UNTAGGED_ASSIGNMENTS:
        return None
    try:
        return encode(assignment)
    except InvalidIdentifier as exc:
        raise InvalidIdentifier(
            f"cannot determine unique vlan for {assignment}: {exc}"
        ) from None
