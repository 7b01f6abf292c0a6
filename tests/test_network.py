import pytest

from wgserver.errors import AddressPoolExhausted
from wgserver.network import address_in_subnet, next_address, prefix_length

SUBNET = "10.66.66.0/24"
SERVER = "10.66.66.1"


def test_first_client_gets_address_after_server():
    assert next_address(SUBNET, [], reserved=[SERVER]) == "10.66.66.2"


def test_lowest_free_address_is_reused():
    existing = ["10.66.66.3", "10.66.66.4"]
    assert next_address(SUBNET, existing, reserved=[SERVER]) == "10.66.66.2"


def test_skips_assigned_addresses():
    existing = ["10.66.66.2", "10.66.66.3"]
    assert next_address(SUBNET, existing, reserved=[SERVER]) == "10.66.66.4"


def test_prefix_suffix_is_ignored():
    existing = ["10.66.66.2/32"]
    assert next_address(SUBNET, existing, reserved=["10.66.66.1/24"]) == "10.66.66.3"


def test_pool_exhausted():
    # /30 has two hosts: the server and one client
    with pytest.raises(AddressPoolExhausted) as exc:
        next_address("10.0.0.0/30", ["10.0.0.2"], reserved=["10.0.0.1"])
    assert exc.value.exit_code == 4
    assert "10.0.0.0/30" in str(exc.value)


def test_never_hands_out_network_or_broadcast():
    existing = [f"10.66.66.{i}" for i in range(2, 254)]
    assert next_address(SUBNET, existing, reserved=[SERVER]) == "10.66.66.254"
    with pytest.raises(AddressPoolExhausted):
        next_address(SUBNET, existing + ["10.66.66.254"], reserved=[SERVER])


def test_address_in_subnet():
    assert address_in_subnet("10.66.66.7", SUBNET)
    assert not address_in_subnet("10.66.67.7", SUBNET)
    assert not address_in_subnet("10.66.66.255", SUBNET)
    assert not address_in_subnet("not-an-ip", SUBNET)
    assert address_in_subnet("10.0.0.1", "10.0.0.0/31")


def test_prefix_length():
    assert prefix_length(SUBNET) == 24
    assert prefix_length("10.66.66.1/24") == 24
