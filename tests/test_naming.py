from __future__ import annotations

import pytest

from gwtopo.models import InvalidHash, InvalidIdentifier
from gwtopo.naming import (
    CUSTOMERS,
    FAMILIES,
    HASH_MAX,
    HASH_MIN,
    RELEASES,
    canonicalize,
    decode,
    encode,
    eth_interface,
    lan_port_vlan,
    parse_lan_device,
    validate_container_name,
    validate_identifier,
)


def _all_identifiers():
    for family in FAMILIES:
        for release in RELEASES:
            for customer in CUSTOMERS:
                base = f"{family}-{release}-{customer}"
                yield base
                for index in range(1, 10):
                    yield f"{base}-{index:02d}"


def test_encode_known_values() -> None:
    assert encode("mv1-r21-7") == 1001
    assert encode("mv3-r22-20") == 3121
    assert encode("mv2plus-r22-9-05") == 2116


def test_legacy_three_digit_index_normalizes() -> None:
    assert encode("mv2plus-r22-9-005") == encode("mv2plus-r22-9-05")
    assert decode(encode("mv2plus-r22-9-005")) == "mv2plus-r22-9-05"
    assert canonicalize("mv1-r21-7-009") == "mv1-r21-7-09"


@pytest.mark.parametrize(
    "value",
    [
        "mv4-r21-7",
        "mv1-r23-7",
        "mv1-r21-8",
        "mv1-r21-7-00",
        "mv1-r21-7-000",
        "mv1-r21-7-5",
        "mv1-r21-7-",
        "xmv1-r21-7",
        "mv1-r21-7-01x",
        "MV1-r21-7",
        "",
    ],
)
def test_encode_rejects(value: str) -> None:
    assert validate_identifier(value) is False
    with pytest.raises(InvalidIdentifier):
        encode(value)


def test_index_without_packed_form_is_rejected() -> None:
    # index 15 would share its hash with mv1-r21-9-05
    assert validate_container_name("mv1-r21-7-15")
    assert not validate_identifier("mv1-r21-7-15")
    with pytest.raises(InvalidIdentifier, match="no unique packed form"):
        encode("mv1-r21-7-15")


def test_round_trip_over_the_whole_grammar() -> None:
    seen = {}
    for ident in _all_identifiers():
        assert validate_identifier(ident)
        packed = encode(ident)
        assert HASH_MIN <= packed <= HASH_MAX
        assert decode(packed) == ident
        assert packed not in seen, f"{ident} collides with {seen.get(packed)}"
        seen[packed] = ident


@pytest.mark.parametrize("packed", [0, -1, 1000, HASH_MAX + 1, 4001, 13001, 99999])
def test_decode_rejects_out_of_range(packed: int) -> None:
    with pytest.raises(InvalidHash):
        decode(packed)


@pytest.mark.parametrize("packed", [1031, 1201, 2000, 1041])
def test_decode_rejects_invalid_fields(packed: int) -> None:
    with pytest.raises(InvalidHash):
        decode(packed)


def test_decode_rejects_non_integers() -> None:
    with pytest.raises(InvalidHash):
        decode("1001")  # type: ignore[arg-type]
    with pytest.raises(InvalidHash):
        decode(True)  # type: ignore[arg-type]


def test_decode_omits_zero_index() -> None:
    assert decode(1001) == "mv1-r21-7"
    assert decode(HASH_MAX) == "mv3-r22-20-09"


def test_container_names() -> None:
    assert validate_container_name("mv1-r21-7")
    assert validate_container_name("mv3-r22-20-099")
    assert validate_container_name("mv3-r22-20-99")
    assert not validate_container_name("mv3-r22-20-100")
    assert not validate_container_name("vcpe")


def test_parse_lan_device() -> None:
    assert parse_lan_device("vcpe-p1") == ("vcpe", 1)
    assert parse_lan_device("mv2plus-r22-20-p4") == ("mv2plus-r22-20", 4)
    with pytest.raises(InvalidIdentifier):
        parse_lan_device("vcpe-p5")
    with pytest.raises(InvalidIdentifier):
        parse_lan_device("vcpe")


@pytest.mark.parametrize(
    "value, expected",
    [
        ("mv1-r21-7-p1", "eth0"),
        ("mv2plus-r21-7-001-p3", "eth2"),
        ("mv3-r21-9-002-p4", "eth4"),
        ("vcpe-p1", "eth1"),
    ],
)
def test_eth_interface(value: str, expected: str) -> None:
    assert eth_interface(value) == expected


def test_eth_interface_rejects() -> None:
    with pytest.raises(InvalidIdentifier):
        eth_interface("client-p1")


def test_lan_port_vlan() -> None:
    assert lan_port_vlan(None) is None
    assert lan_port_vlan("") is None
    assert lan_port_vlan("wan") is None
    assert lan_port_vlan("wanoe") is None
    assert lan_port_vlan("mv1-r22-9") == 1111
    with pytest.raises(InvalidIdentifier, match="cannot determine unique vlan"):
        lan_port_vlan("mv9-r21-7")


def test_largest_packed_value() -> None:
    assert HASH_MAX == 3130
    assert encode("mv3-r22-20-09") == 3130
    assert decode(3130) == "mv3-r22-20-09"
