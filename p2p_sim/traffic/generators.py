"""Traffic generators for network simulation.

This module provides interarrival-time functions for traffic sources,
including constant, Poisson, Pareto and bursty traffic patterns. Random
patterns draw from a caller-supplied numpy Generator so that a seeded
scenario is reproducible.
"""

from typing import Callable, Union

import numpy as np

from p2p_sim.core.enums import TrafficPattern


def packets_per_second(data_rate: float, packet_size: int) -> float:
    """Packet rate of a flow sending ``packet_size``-byte packets at ``data_rate`` bit/s."""
    return data_rate / (packet_size * 8)


def constant_traffic(rate: float) -> Callable[[], float]:
    """Generate constant bit rate traffic.

    Args:
        rate: Rate of packet generation in packets per second.

    Returns:
        Function that returns constant interval between packets.
    """
    interval = 1 / rate
    return lambda: interval


def poisson_traffic(rate: float, rng: np.random.Generator) -> Callable[[], float]:
    """Generate Poisson traffic.

    Args:
        rate: Average rate of packet generation in packets per second.
        rng: Random generator to draw from.

    Returns:
        Function that returns exponentially distributed interval between packets.
    """
    return lambda: float(rng.exponential(1 / rate))


def pareto_traffic(
    rate: float, rng: np.random.Generator, alpha: float = 1.5
) -> Callable[[], float]:
    """Generate Pareto (heavy-tailed) traffic.

    Args:
        rate: Average rate of packet generation in packets per second.
        rng: Random generator to draw from.
        alpha: Shape parameter for Pareto distribution (default: 1.5).

    Returns:
        Function that returns Pareto distributed interval between packets.
    """
    # numpy's pareto is Lomax; shift by one so the mean is 1 / rate.
    scale = (alpha - 1) / (alpha * rate)
    return lambda: float((rng.pareto(alpha) + 1) * scale)


def bursty_traffic(
    burst_size: int, packet_interval: Union[float, Callable[[], float]]
) -> Callable[[], float]:
    """Generate bursty network traffic pattern.

    Creates traffic that comes in bursts of packets followed by quiet periods.
    Each burst contains a fixed number of packets sent at regular intervals,
    followed by a longer gap before the next burst starts.

    Args:
        burst_size: Number of packets to send in each burst
        packet_interval: Time between packets within a burst, either as:
            - Fixed float value in seconds
            - Callable that returns variable intervals

    Returns:
        Function that returns the time interval until the next packet should be sent:
        - Returns packet_interval for packets within a burst
        - Returns packet_interval * burst_size for gap between bursts
    """
    get_interval = (
        packet_interval if callable(packet_interval) else lambda: packet_interval
    )

    packets = 0

    def next_packet_delay() -> float:
        nonlocal packets
        interval = get_interval()
        packets += 1

        if packets < burst_size:
            # continue burst
            return interval
        # end burst
        packets = 0
        return interval * burst_size

    return next_packet_delay


def interval_function(
    pattern: TrafficPattern,
    data_rate: float,
    packet_size: int,
    rng: np.random.Generator,
    burst_size: int = 5,
) -> Callable[[], float]:
    """Build the interarrival function of a flow.

    The long-run average rate of every pattern matches ``data_rate``, except
    BURSTY, which sends bursts at twice the nominal packet rate separated by
    a gap of ``burst_size`` intra-burst intervals.

    Args:
        pattern: Interarrival pattern.
        data_rate: Nominal sending rate in bits per second.
        packet_size: Payload size in bytes.
        rng: Random generator for the random patterns.
        burst_size: Packets per burst for BURSTY.

    Returns:
        Function returning the delay until the next packet.
    """
    rate = packets_per_second(data_rate, packet_size)
    if pattern is TrafficPattern.CONSTANT:
        return constant_traffic(rate)
    if pattern is TrafficPattern.POISSON:
        return poisson_traffic(rate, rng)
    if pattern is TrafficPattern.PARETO:
        return pareto_traffic(rate, rng)
    if pattern is TrafficPattern.BURSTY:
        return bursty_traffic(burst_size, 1 / (2 * rate))
    raise ValueError(f"Unsupported traffic pattern: {pattern}")
