"""IPv4 addressing plan for point-to-point links.

Every link gets its own subnet carved out of a base block, in link order,
so the plan is a pure function of the link count and can be computed before
any simulation object exists.
"""

import ipaddress
from typing import Iterator, List, Tuple

from p2p_sim.core.errors import ConfigurationError

LinkAddresses = Tuple[ipaddress.IPv4Interface, ipaddress.IPv4Interface]


class Ipv4AddressAllocator:
    """Hands out one subnet per link, skipping the base block's first subnet.

    With the default base ``10.1.0.0/16`` and prefix 24, link 0 gets
    ``10.1.1.0/24``, link 1 gets ``10.1.2.0/24`` and so on.
    """

    def __init__(self, base: str = "10.1.0.0/16", prefix: int = 24) -> None:
        try:
            self.base = ipaddress.IPv4Network(base)
        except ValueError as exc:
            raise ConfigurationError("address_base", str(exc)) from exc
        if not self.base.prefixlen < prefix <= 30:
            raise ConfigurationError(
                "subnet_prefix",
                f"must be between {self.base.prefixlen + 1} and 30, got {prefix}",
            )
        self.prefix = prefix
        self._subnets: Iterator[ipaddress.IPv4Network] = self.base.subnets(
            new_prefix=prefix
        )
        # The all-zero subnet is kept free.
        next(self._subnets)

    @property
    def capacity(self) -> int:
        """Number of links this allocator can address."""
        return 2 ** (self.prefix - self.base.prefixlen) - 1

    def assign(self) -> LinkAddresses:
        """Allocate the next subnet and return both endpoint interfaces."""
        try:
            subnet = next(self._subnets)
        except StopIteration:
            raise ConfigurationError(
                "address_base", f"{self.base} has no free /{self.prefix} subnet left"
            ) from None
        hosts = subnet.hosts()
        first, second = next(hosts), next(hosts)
        return (
            ipaddress.IPv4Interface(f"{first}/{self.prefix}"),
            ipaddress.IPv4Interface(f"{second}/{self.prefix}"),
        )


def plan_addresses(
    link_count: int, base: str = "10.1.0.0/16", prefix: int = 24
) -> List[LinkAddresses]:
    """Compute the endpoint addresses of ``link_count`` links.

    Args:
        link_count: Number of point-to-point links.
        base: Base block the per-link subnets are carved from.
        prefix: Prefix length of each per-link subnet.

    Returns:
        One (left, right) interface pair per link, in link order.
    """
    allocator = Ipv4AddressAllocator(base, prefix)
    if link_count > allocator.capacity:
        raise ConfigurationError(
            "node_count",
            f"{link_count} links do not fit in {base} with /{prefix} subnets",
        )
    return [allocator.assign() for _ in range(link_count)]
