"""Tests for the per-link IPv4 addressing plan."""

import ipaddress

import pytest

from p2p_sim.core.addressing import Ipv4AddressAllocator, plan_addresses
from p2p_sim.core.errors import ConfigurationError


class TestPlanAddresses:
    """One /24 per link, starting at 10.1.1.0/24."""

    def test_first_links_follow_the_base_block(self):
        plan = plan_addresses(3)
        assert [(str(left), str(right)) for left, right in plan] == [
            ("10.1.1.1/24", "10.1.1.2/24"),
            ("10.1.2.1/24", "10.1.2.2/24"),
            ("10.1.3.1/24", "10.1.3.2/24"),
        ]

    def test_link_subnets_are_disjoint(self):
        networks = [left.network for left, _ in plan_addresses(40)]
        for index, network in enumerate(networks):
            for other in networks[index + 1:]:
                assert not network.overlaps(other)

    def test_both_ends_share_their_link_subnet(self):
        for left, right in plan_addresses(5):
            assert left.network == right.network
            assert left.ip != right.ip

    def test_custom_base_and_prefix(self):
        plan = plan_addresses(2, base="192.168.0.0/24", prefix=30)
        assert plan[0][0].ip == ipaddress.IPv4Address("192.168.0.5")
        assert plan[1][1].ip == ipaddress.IPv4Address("192.168.0.10")

    def test_too_many_links_for_the_block(self):
        with pytest.raises(ConfigurationError) as exc_info:
            plan_addresses(256)
        assert exc_info.value.field == "node_count"

    def test_whole_block_is_usable(self):
        assert len(plan_addresses(255)) == 255


class TestIpv4AddressAllocator:
    """Allocator validation."""

    def test_capacity_skips_the_zero_subnet(self):
        assert Ipv4AddressAllocator().capacity == 255

    def test_invalid_base(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Ipv4AddressAllocator(base="not-a-network")
        assert exc_info.value.field == "address_base"

    @pytest.mark.parametrize("prefix", [16, 31])
    def test_invalid_prefix(self, prefix):
        with pytest.raises(ConfigurationError) as exc_info:
            Ipv4AddressAllocator(prefix=prefix)
        assert exc_info.value.field == "subnet_prefix"

    def test_exhaustion(self):
        allocator = Ipv4AddressAllocator(base="10.0.0.0/29", prefix=30)
        allocator.assign()
        with pytest.raises(ConfigurationError):
            allocator.assign()
