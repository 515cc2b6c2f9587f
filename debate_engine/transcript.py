"""Final transcript documents built from persisted debate data."""

from datetime import datetime
from typing import Any, TypedDict
import logging

from formats.base import DebateFormat
from .models import DebateState, Intervention, Utterance
from .prompt_builder import SPEAKER_LABELS
from .stores import DebateStores
from .types import DebatePhase, Speaker

logger = logging.getLogger(__name__)

TRANSCRIPT_SCHEMA_VERSION = "2.0.0"


class PhaseSummary(TypedDict):
    """Per-phase statistics in a transcript."""

    phase: str
    name: str
    utterance_count: int
    speakers: list[str]
    duration_ms: int


class TranscriptMetadata(TypedDict):
    """Header of a transcript document."""

    debate_id: str
    proposition: str
    format: str
    generated_at: str
    utterance_count: int
    word_count: int
    interruption_count: int
    total_elapsed_ms: int


class TranscriptDocument(TypedDict):
    """JSON-serializable transcript of a whole debate."""

    schema_version: str
    metadata: TranscriptMetadata
    phases: list[PhaseSummary]
    utterances: list[dict[str, Any]]
    interventions: list[dict[str, Any]]
    final_state: dict[str, Any]


def build_transcript(
    proposition: str,
    debate_format: DebateFormat,
    state: DebateState,
    utterances: list[Utterance],
    interventions: list[Intervention],
) -> TranscriptDocument:
    """Assemble the transcript document; utterances are expected in timestamp order."""
    phases: list[PhaseSummary] = []
    for phase in debate_format.get_phases():
        in_phase = [u for u in utterances if u.phase is phase]
        if not in_phase:
            continue
        speakers: list[str] = []
        for utterance in in_phase:
            if utterance.speaker.value not in speakers:
                speakers.append(utterance.speaker.value)
        phases.append(
            PhaseSummary(
                phase=phase.value,
                name=debate_format.get_phase_metadata(phase).name,
                utterance_count=len(in_phase),
                speakers=speakers,
                duration_ms=in_phase[-1].timestamp_ms - in_phase[0].timestamp_ms,
            )
        )

    return TranscriptDocument(
        schema_version=TRANSCRIPT_SCHEMA_VERSION,
        metadata=TranscriptMetadata(
            debate_id=state.debate_id,
            proposition=proposition,
            format=debate_format.name,
            generated_at=datetime.now().isoformat(),
            utterance_count=len(utterances),
            word_count=sum(len(u.content.split()) for u in utterances),
            interruption_count=sum(1 for u in utterances if u.metadata.get("interrupted")),
            total_elapsed_ms=state.total_elapsed_ms,
        ),
        phases=phases,
        utterances=[u.to_dict() for u in utterances],
        interventions=[i.to_dict() for i in interventions],
        final_state=state.to_dict(),
    )


def format_transcript_text(document: TranscriptDocument) -> str:
    """Render a transcript document as plain text."""
    metadata = document["metadata"]
    lines = [
        f"DEBATE: {metadata['proposition']}",
        f"Format: {metadata['format']}",
        f"Utterances: {metadata['utterance_count']} ({metadata['word_count']} words)",
        "",
    ]

    phase_names = {p["phase"]: p["name"] for p in document["phases"]}
    current_phase = None
    for utterance in document["utterances"]:
        if utterance["phase"] != current_phase:
            current_phase = utterance["phase"]
            lines.append(f"=== {phase_names.get(current_phase, current_phase)} ===")
        label = SPEAKER_LABELS[Speaker(utterance["speaker"])]
        suffix = " [interrupted]" if utterance["metadata"].get("interrupted") else ""
        lines.append(f"[{_format_ms(utterance['timestamp_ms'])}] {label}{suffix}: {utterance['content']}")
        lines.append("")

    answered = [i for i in document["interventions"] if i["response"] is not None]
    if answered:
        lines.append("=== Audience interventions ===")
        for intervention in answered:
            lines.append(f"- {intervention['intervention_type']}: {intervention['content']}")
        lines.append("")

    final_state = document["final_state"]
    lines.append(f"Final phase: {final_state['current_phase']}")
    if final_state.get("error"):
        lines.append(f"Error: {final_state['error']}")
    return "\n".join(lines)


def _format_ms(ms: int) -> str:
    seconds = ms // 1000
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class TranscriptManager:
    """Loads a debate's persisted data and builds its transcript."""

    def __init__(self, stores: DebateStores, debate_format: DebateFormat):
        self.stores = stores
        self.debate_format = debate_format

    async def build(self, proposition: str, state: DebateState) -> TranscriptDocument:
        utterances = await self.stores.utterances.list_by_session(state.debate_id)
        interventions = await self.stores.interventions.list_by_debate(state.debate_id)
        document = build_transcript(proposition, self.debate_format, state, utterances, interventions)
        if state.current_phase is not DebatePhase.COMPLETED:
            logger.debug("Built partial transcript for debate %s in %s", state.debate_id, state.current_phase.value)
        return document
