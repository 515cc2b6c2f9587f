"""Prompt construction for debate turns."""

import logging
import re
from dataclasses import dataclass, field

from formats.base import DebateFormat
from formats.standard import StandardFormat
from .models import Intervention, Turn, Utterance
from .types import DebatePhase, InterventionType, PromptType, Speaker

logger = logging.getLogger(__name__)

ROLE_NAMES = {
    Speaker.PRO: "the PRO advocate",
    Speaker.CON: "the CON advocate",
    Speaker.MODERATOR: "the Moderator",
    Speaker.SYSTEM: "the System",
}

SPEAKER_LABELS = {
    Speaker.PRO: "PRO",
    Speaker.CON: "CON",
    Speaker.MODERATOR: "Moderator",
    Speaker.SYSTEM: "System",
}

# Fraction of the configured word limit each prompt type may use
WORD_LIMIT_MULTIPLIERS = {
    PromptType.INTRODUCTION: 0.6,
    PromptType.CROSS_EXAM_QUESTION: 0.4,
    PromptType.MODERATOR_CHECKPOINT: 0.5,
    PromptType.INTERVENTION_RESPONSE: 0.6,
    PromptType.SYNTHESIS: 1.5,
}

INTERJECTION_WORD_LIMIT = 40

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


@dataclass
class PromptContext:
    """Everything an agent needs to produce one turn."""

    debate_id: str
    proposition: str
    phase: DebatePhase
    speaker: Speaker
    prompt_type: PromptType
    word_limit: int
    turn: Turn | None = None
    prior_summary: str = ""
    recent_utterances: list[Utterance] = field(default_factory=list)
    interventions: list[Intervention] = field(default_factory=list)
    responding_to: Utterance | None = None
    resumption_note: str | None = None
    target_content: str | None = None
    max_tokens: int | None = None


class PromptBuilder:
    """Builds prompt contexts and chat messages for agents."""

    def __init__(
        self,
        debate_format: DebateFormat | None = None,
        word_limit: int = 250,
        history_window: int = 6,
    ):
        self.debate_format = debate_format or StandardFormat()
        self.word_limit = word_limit
        self.history_window = history_window

    def build_context(
        self,
        debate_id: str,
        proposition: str,
        turn: Turn,
        history: list[Utterance],
        interventions: list[Intervention] | None = None,
        resumption_note: str | None = None,
    ) -> PromptContext:
        recent, older = self._split_history(history)
        return PromptContext(
            debate_id=debate_id,
            proposition=proposition,
            phase=turn.phase,
            speaker=turn.speaker,
            prompt_type=turn.prompt_type,
            word_limit=self.word_limit_for(turn.prompt_type),
            turn=turn,
            prior_summary=self.summarize(older),
            recent_utterances=recent,
            interventions=list(interventions or []),
            responding_to=self._find_responded_turn(turn, history),
            resumption_note=resumption_note,
        )

    def build_interjection_context(
        self,
        debate_id: str,
        proposition: str,
        phase: DebatePhase,
        interrupter: Speaker,
        partial_content: str,
        history: list[Utterance],
        max_tokens: int,
    ) -> PromptContext:
        recent, older = self._split_history(history)
        return PromptContext(
            debate_id=debate_id,
            proposition=proposition,
            phase=phase,
            speaker=interrupter,
            prompt_type=PromptType.INTERJECTION,
            word_limit=INTERJECTION_WORD_LIMIT,
            prior_summary=self.summarize(older),
            recent_utterances=recent,
            target_content=partial_content,
            max_tokens=max_tokens,
        )

    def word_limit_for(self, prompt_type: PromptType) -> int:
        return max(20, int(self.word_limit * WORD_LIMIT_MULTIPLIERS.get(prompt_type, 1.0)))

    def summarize(self, utterances: list[Utterance]) -> str:
        """One line per earlier utterance: speaker and first sentence."""
        lines = []
        for utterance in utterances:
            if not utterance.content.strip():
                continue
            first_sentence = _SENTENCE_END.split(utterance.content.strip(), maxsplit=1)[0]
            if len(first_sentence) > 200:
                first_sentence = first_sentence[:197] + "..."
            lines.append(f"- {SPEAKER_LABELS[utterance.speaker]}: {first_sentence}")
        return "\n".join(lines)

    def build_messages(self, context: PromptContext) -> list[dict[str, str]]:
        """Render a context as chat messages for the model."""
        messages = [{"role": "system", "content": self._system_prompt(context)}]

        if context.prior_summary:
            messages.append(
                {
                    "role": "system",
                    "content": f"Summary of earlier exchanges:\n{context.prior_summary}",
                }
            )

        for utterance in context.recent_utterances:
            if utterance.speaker is context.speaker:
                messages.append({"role": "assistant", "content": utterance.content})
            else:
                messages.append(
                    {
                        "role": "user",
                        "content": f"{SPEAKER_LABELS[utterance.speaker]}: {utterance.content}",
                    }
                )

        messages.append({"role": "user", "content": self._turn_prompt(context)})
        return messages

    def _split_history(self, history: list[Utterance]) -> tuple[list[Utterance], list[Utterance]]:
        if self.history_window <= 0:
            return [], list(history)
        return list(history[-self.history_window:]), list(history[:-self.history_window])

    def _find_responded_turn(self, turn: Turn, history: list[Utterance]) -> Utterance | None:
        if turn.responds_to is None:
            return None
        for utterance in reversed(history):
            if (
                utterance.phase is turn.phase
                and utterance.metadata.get("turn_number") == turn.responds_to
            ):
                return utterance
        logger.warning("No utterance found for turn %s that %s responds to", turn.responds_to, turn.turn_id)
        return None

    def _system_prompt(self, context: PromptContext) -> str:
        role = ROLE_NAMES[context.speaker]
        if context.speaker is Speaker.MODERATOR:
            role_instruction = (
                "You are the neutral Moderator. You guide the debate, keep both sides honest "
                "and never take a side or declare a winner."
            )
        elif context.speaker is Speaker.PRO:
            role_instruction = "You ARE the PRO advocate. You support the proposition and believe it is correct."
        else:
            role_instruction = "You ARE the CON advocate. You oppose the proposition and believe it is wrong."

        return f"""You are {role} in a formal, moderated debate about: "{context.proposition}"

{self.debate_format.get_format_instructions()}

YOUR ROLE: {role_instruction}

RESPONSE FORMAT:
- Speak directly as your role without labels, prefixes, or announcements
- Use plain text without markdown formatting
- Write in a natural spoken style, as if addressing a live audience
- Stay under {context.word_limit} words"""

    def _turn_prompt(self, context: PromptContext) -> str:
        parts = [self._instruction(context)]

        if context.responding_to is not None:
            asker = SPEAKER_LABELS[context.responding_to.speaker]
            parts.append(f'{asker} asked you: "{context.responding_to.content}"')

        if context.interventions:
            lines = [self._format_intervention(i) for i in context.interventions]
            parts.append(
                "The audience has raised the following. Address each briefly in your response:\n"
                + "\n".join(lines)
            )

        if context.resumption_note:
            parts.append(context.resumption_note)

        parts.append(f"Stay under {context.word_limit} words.")
        return "\n\n".join(parts)

    def _format_intervention(self, intervention: Intervention) -> str:
        labels = {
            InterventionType.QUESTION: "Question",
            InterventionType.CHALLENGE: "Challenge",
            InterventionType.EVIDENCE_INJECTION: "New evidence",
            InterventionType.CLARIFICATION_REQUEST: "Clarification request",
            InterventionType.PAUSE_REQUEST: "Pause request",
        }
        return f"- {labels[intervention.intervention_type]}: {intervention.content}"

    def _instruction(self, context: PromptContext) -> str:
        turn_metadata = context.turn.metadata if context.turn else {}
        opponent = SPEAKER_LABELS[context.speaker.opponent]
        instructions = {
            PromptType.INTRODUCTION: (
                "Open the debate. Introduce the proposition, explain why it matters and "
                "outline how the debate will proceed. Do not argue either side."
            ),
            PromptType.OPENING_STATEMENT: (
                "Give your opening statement. State your position clearly and preview your "
                "strongest arguments."
            ),
            PromptType.CONSTRUCTIVE_ARGUMENT: (
                f"Build your case on {turn_metadata.get('category_label', 'your strongest ground').lower()}. "
                "Present a distinct argument with evidence and reasoning."
            ),
            PromptType.CROSS_EXAM_QUESTION: (
                f"Ask {opponent} one pointed question that exposes a weakness in their case. "
                "Ask only the question."
            ),
            PromptType.CROSS_EXAM_RESPONSE: (
                "Answer the question directly and honestly, then reinforce your position."
            ),
            PromptType.MODERATOR_CHECKPOINT: (
                "Briefly summarise the exchange you just heard: what was asked, how it was "
                "answered and what remains unresolved. Stay neutral."
            ),
            PromptType.REBUTTAL: (
                f"Rebut the strongest points {opponent} has made. Identify flaws in their "
                "reasoning and defend your case."
            ),
            PromptType.CLOSING_STATEMENT: (
                "Give your closing statement. Summarise your strongest points and answer "
                "your opponent's best argument."
            ),
            PromptType.SYNTHESIS: (
                "Synthesise the debate. Summarise the main arguments of each side, the points "
                "of agreement and the open questions. Do not declare a winner."
            ),
            PromptType.INTERVENTION_RESPONSE: "Respond to the audience intervention below.",
            PromptType.INTERJECTION: (
                f"{opponent} is speaking right now and just said:\n\"{context.target_content or ''}\"\n"
                "Interrupt with one short, sharp sentence that challenges this claim. "
                "No preamble."
            ),
        }
        return instructions[context.prompt_type]
