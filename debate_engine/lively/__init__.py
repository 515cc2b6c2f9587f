"""Lively debate mode: streaming turns with real-time interruptions."""

from .interruption_engine import EvaluationContext, InterruptionEngine
from .orchestrator import LivelyDebateOrchestrator
from .scheduler import LivelyScheduler, PreemptResult
from .scoring import (
    HeuristicContradictionDetector,
    LexicalRelevanceScorer,
    ModelRelevanceScorer,
)

__all__ = [
    "EvaluationContext",
    "InterruptionEngine",
    "LivelyDebateOrchestrator",
    "LivelyScheduler",
    "PreemptResult",
    "HeuristicContradictionDetector",
    "LexicalRelevanceScorer",
    "ModelRelevanceScorer",
]
