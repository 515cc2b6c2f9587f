"""Cleanup and validation of agent responses before they are persisted."""

import logging
import re
from dataclasses import dataclass, field

from .types import PromptType, Speaker

logger = logging.getLogger(__name__)

MIN_CONTENT_CHARS = 10
SHORT_RESPONSE_CHARS = 200

ROLE_PREFIX_PATTERNS = [
    r"^(?:pro|con|moderator)\s+(?:opening|rebuttal|closing|constructive)\s+(?:statement|argument)[\:\-\s]*",
    r"^(?:opening|rebuttal|closing)\s+(?:statement|argument)[\:\-\s]*",
    r"^\*\*(?:pro|con|moderator)[^*]*\*\*[\:\-\s]*",
    r"^(?:Phase\s+\d+[\:\-\s]*)?(?:pro|con)\s+(?:opening|rebuttal|closing)[\:\-\s]*",
    r"^(?:pro|con|moderator)\s*:\s*",
]

# Echoed transcript labels like "[CON - rebuttal]:"
ECHO_PATTERN = r"\[.*?\s*-\s*\w+\]:\s*"

WINNER_PATTERNS = [
    r"\bthe winner (?:is|of this debate)\b",
    r"\b(?:pro|con|the proposition|the opposition) (?:clearly )?(?:wins|won)\b",
    r"\bi declare\b.*\b(?:winner|victor)\b",
]


@dataclass
class ValidationResult:
    """Outcome of validating one response."""

    content: str
    errors: list[str] = field(default_factory=list)
    flags: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class ResponseValidator:
    """Strips echoed labels and markdown, then checks a response is usable."""

    def __init__(self, word_limit_tolerance: float = 1.25):
        self.word_limit_tolerance = word_limit_tolerance

    def clean(self, response: str) -> str:
        cleaned = response.strip()

        for pattern in ROLE_PREFIX_PATTERNS:
            cleaned = re.sub(pattern, "", cleaned, flags=re.IGNORECASE).strip()

        while re.match(ECHO_PATTERN, cleaned, re.IGNORECASE):
            cleaned = re.sub(ECHO_PATTERN, "", cleaned, count=1, flags=re.IGNORECASE).strip()

        cleaned = re.sub(r"^#{1,6}\s+", "", cleaned, flags=re.MULTILINE)
        cleaned = re.sub(r"\*\*([^*]+)\*\*", r"\1", cleaned)
        cleaned = re.sub(r"\*([^*]+)\*", r"\1", cleaned)
        cleaned = re.sub(r"^\*+\s*", "", cleaned, flags=re.MULTILINE)

        if response.strip() and not cleaned.strip():
            logger.warning(f"Response was cleaned to empty. Original: {response!r}")
        return cleaned.strip()

    def validate(
        self,
        response: str,
        speaker: Speaker,
        prompt_type: PromptType,
        word_limit: int | None = None,
    ) -> ValidationResult:
        content = self.clean(response)
        result = ValidationResult(content=content)

        if not content:
            result.errors.append("empty response")
            return result
        if len(content) < MIN_CONTENT_CHARS:
            result.errors.append(f"response shorter than {MIN_CONTENT_CHARS} characters")

        if prompt_type is PromptType.CROSS_EXAM_QUESTION and "?" not in content:
            result.errors.append("cross-examination question contains no question")

        if prompt_type is PromptType.SYNTHESIS or speaker is Speaker.MODERATOR:
            for pattern in WINNER_PATTERNS:
                if re.search(pattern, content, re.IGNORECASE):
                    result.errors.append("moderator declared a winner")
                    break

        if len(content) < SHORT_RESPONSE_CHARS and prompt_type not in (
            PromptType.CROSS_EXAM_QUESTION,
            PromptType.INTERJECTION,
        ):
            result.flags.append("short_response")

        if word_limit and len(content.split()) > word_limit * self.word_limit_tolerance:
            result.flags.append("over_word_limit")

        if result.errors:
            logger.info(
                "Response from %s for %s failed validation: %s",
                speaker.value,
                prompt_type.value,
                "; ".join(result.errors),
            )
        return result
