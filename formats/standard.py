"""Six-phase moderated debate format."""

from debate_engine.models import Turn
from debate_engine.types import DebatePhase, PromptType, Speaker
from .base import DebateFormat, PhaseMetadata

PRO = Speaker.PRO
CON = Speaker.CON
MODERATOR = Speaker.MODERATOR

DEFAULT_TURN_MS = 120_000
LONG_TURN_MS = 180_000

CONSTRUCTIVE_ROUNDS = [
    ("economic_technical", "Economic and technical considerations"),
    ("ethical_social", "Ethical and social considerations"),
    ("practical", "Practical implementation considerations"),
]

PHASE_TABLE: dict[DebatePhase, PhaseMetadata] = {
    DebatePhase.PHASE_1_OPENING: PhaseMetadata(
        phase=DebatePhase.PHASE_1_OPENING,
        name="Opening Statements",
        duration_minutes=4,
        allowed_speakers=(MODERATOR, PRO, CON),
        turns_per_speaker=1,
        description="Moderator introduction followed by each side's opening position",
    ),
    DebatePhase.PHASE_2_CONSTRUCTIVE: PhaseMetadata(
        phase=DebatePhase.PHASE_2_CONSTRUCTIVE,
        name="Constructive Arguments",
        duration_minutes=6,
        allowed_speakers=(PRO, CON),
        turns_per_speaker=3,
        description="Alternating arguments across economic, ethical and practical rounds",
    ),
    DebatePhase.PHASE_3_CROSSEXAM: PhaseMetadata(
        phase=DebatePhase.PHASE_3_CROSSEXAM,
        name="Cross-Examination",
        duration_minutes=6,
        allowed_speakers=(PRO, CON, MODERATOR),
        turns_per_speaker=2,
        description="Question and answer exchanges with moderator checkpoints",
    ),
    DebatePhase.PHASE_4_REBUTTAL: PhaseMetadata(
        phase=DebatePhase.PHASE_4_REBUTTAL,
        name="Rebuttals",
        duration_minutes=4,
        allowed_speakers=(CON, PRO),
        turns_per_speaker=1,
        description="Each side answers the strongest points against it",
    ),
    DebatePhase.PHASE_5_CLOSING: PhaseMetadata(
        phase=DebatePhase.PHASE_5_CLOSING,
        name="Closing Statements",
        duration_minutes=4,
        allowed_speakers=(CON, PRO),
        turns_per_speaker=1,
        description="Final summaries, CON first so PRO has the last word",
    ),
    DebatePhase.PHASE_6_SYNTHESIS: PhaseMetadata(
        phase=DebatePhase.PHASE_6_SYNTHESIS,
        name="Moderator Synthesis",
        duration_minutes=3,
        allowed_speakers=(MODERATOR,),
        turns_per_speaker=1,
        description="Neutral synthesis of the debate without declaring a winner",
    ),
}


class StandardFormat(DebateFormat):
    """Moderated six-phase debate: opening, constructive, cross-exam, rebuttal, closing, synthesis."""

    @property
    def name(self) -> str:
        return "standard"

    @property
    def display_name(self) -> str:
        return "Six-Phase Moderated"

    @property
    def description(self) -> str:
        return "Moderated debate with constructive rounds, cross-examination and a neutral synthesis"

    def get_phase_metadata(self, phase: DebatePhase) -> PhaseMetadata:
        if phase not in PHASE_TABLE:
            raise ValueError(f"{phase.value} has no phase metadata")
        return PHASE_TABLE[phase]

    def build_turns(self, phase: DebatePhase) -> list[Turn]:
        builders = {
            DebatePhase.PHASE_1_OPENING: self._opening_turns,
            DebatePhase.PHASE_2_CONSTRUCTIVE: self._constructive_turns,
            DebatePhase.PHASE_3_CROSSEXAM: self._cross_exam_turns,
            DebatePhase.PHASE_4_REBUTTAL: self._rebuttal_turns,
            DebatePhase.PHASE_5_CLOSING: self._closing_turns,
            DebatePhase.PHASE_6_SYNTHESIS: self._synthesis_turns,
        }
        if phase not in builders:
            raise ValueError(f"{phase.value} has no turns")
        return builders[phase](phase)

    def get_format_instructions(self) -> str:
        return """SIX-PHASE MODERATED FORMAT:
- Opening: the moderator frames the proposition, then PRO and CON state their positions
- Constructive: three rounds covering economic/technical, ethical/social and practical arguments
- Cross-examination: each side questions the other, the moderator summarises each exchange
- Rebuttal: each side answers the strongest points raised against it
- Closing: final summaries, CON first and PRO last
- Synthesis: the moderator summarises without declaring a winner"""

    def _opening_turns(self, phase: DebatePhase) -> list[Turn]:
        return [
            Turn(phase, 1, MODERATOR, PromptType.INTRODUCTION,
                 metadata={"expected_duration_ms": DEFAULT_TURN_MS}),
            Turn(phase, 2, PRO, PromptType.OPENING_STATEMENT,
                 metadata={"expected_duration_ms": DEFAULT_TURN_MS}),
            Turn(phase, 3, CON, PromptType.OPENING_STATEMENT,
                 metadata={"expected_duration_ms": DEFAULT_TURN_MS}),
        ]

    def _constructive_turns(self, phase: DebatePhase) -> list[Turn]:
        turns: list[Turn] = []
        for round_index, (category, label) in enumerate(CONSTRUCTIVE_ROUNDS, start=1):
            for speaker in (PRO, CON):
                turns.append(
                    Turn(
                        phase,
                        len(turns) + 1,
                        speaker,
                        PromptType.CONSTRUCTIVE_ARGUMENT,
                        metadata={
                            "round": round_index,
                            "category": category,
                            "category_label": label,
                            "expected_duration_ms": DEFAULT_TURN_MS,
                        },
                    )
                )
        return turns

    def _cross_exam_turns(self, phase: DebatePhase) -> list[Turn]:
        turns: list[Turn] = []
        for round_index, (questioner, respondent) in enumerate(((PRO, CON), (CON, PRO)), start=1):
            question_number = len(turns) + 1
            turns.append(
                Turn(phase, question_number, questioner, PromptType.CROSS_EXAM_QUESTION,
                     metadata={"round": round_index, "expected_duration_ms": LONG_TURN_MS})
            )
            turns.append(
                Turn(phase, question_number + 1, respondent, PromptType.CROSS_EXAM_RESPONSE,
                     responds_to=question_number,
                     metadata={"round": round_index, "expected_duration_ms": DEFAULT_TURN_MS})
            )
            turns.append(
                Turn(phase, question_number + 2, MODERATOR, PromptType.MODERATOR_CHECKPOINT,
                     metadata={"round": round_index, "expected_duration_ms": DEFAULT_TURN_MS})
            )
        return turns

    def _rebuttal_turns(self, phase: DebatePhase) -> list[Turn]:
        return [
            Turn(phase, 1, CON, PromptType.REBUTTAL, metadata={"expected_duration_ms": DEFAULT_TURN_MS}),
            Turn(phase, 2, PRO, PromptType.REBUTTAL, metadata={"expected_duration_ms": DEFAULT_TURN_MS}),
        ]

    def _closing_turns(self, phase: DebatePhase) -> list[Turn]:
        return [
            Turn(phase, 1, CON, PromptType.CLOSING_STATEMENT,
                 metadata={"expected_duration_ms": DEFAULT_TURN_MS}),
            Turn(phase, 2, PRO, PromptType.CLOSING_STATEMENT,
                 metadata={"expected_duration_ms": DEFAULT_TURN_MS}),
        ]

    def _synthesis_turns(self, phase: DebatePhase) -> list[Turn]:
        return [
            Turn(phase, 1, MODERATOR, PromptType.SYNTHESIS,
                 metadata={"expected_duration_ms": LONG_TURN_MS}),
        ]
