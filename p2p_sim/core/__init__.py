"""Core components for scenario simulation.

This package contains the engine facade, the chain topology with its links,
nodes and addressing plan, the routing protocols, the trace sink, and the
builder and runner that assemble and execute a scenario.
"""
