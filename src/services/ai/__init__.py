"""Init file for AI services."""

from .agents import create_structure_agent, run_structure_agent


__all__ = [
    "create_structure_agent",
    "run_structure_agent",
]
