"""Debate format definitions and implementations."""

from .base import DebateFormat, PhaseMetadata
from .standard import StandardFormat
from .registry import format_registry

__all__ = [
    'DebateFormat',
    'PhaseMetadata',
    'StandardFormat',
    'format_registry'
]
