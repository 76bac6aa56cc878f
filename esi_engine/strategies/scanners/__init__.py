"""Concrete directive scanner implementations."""

from esi_engine.strategies.scanners.state_machine import StateMachineScanner, Tag, read_tag

__all__ = [
    "StateMachineScanner",
    "Tag",
    "read_tag",
]
