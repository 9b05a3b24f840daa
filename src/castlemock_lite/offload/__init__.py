"""
CastleMock Lite Offload Module

Background execution of match and import tasks with in-process fallback.
"""

from .coordinator import (
    OffloadTask,
    OffloadCoordinator,
    InProcessCoordinator,
    WorkerCoordinator,
    create_coordinator,
    execute_task,
)

__all__ = [
    'OffloadTask',
    'OffloadCoordinator',
    'InProcessCoordinator',
    'WorkerCoordinator',
    'create_coordinator',
    'execute_task',
]
