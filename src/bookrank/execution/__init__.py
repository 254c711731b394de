"""Bounded worker pools, fan-out joins and cooperative deadlines."""

from bookrank.execution.pool import Deadline, UnitOutcome, fan_out, run_units


__all__ = [
    "Deadline",
    "UnitOutcome",
    "fan_out",
    "run_units",
]
