# footprint: Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from footprint.core.ports.repo import (
    EventStorePort,
    FunnelRepoPort,
    GoalRepoPort,
    SegmentRepoPort,
)
from footprint.core.ports.time import TimePort

__all__ = [
    "EventStorePort",
    "FunnelRepoPort",
    "GoalRepoPort",
    "SegmentRepoPort",
    "TimePort",
]
