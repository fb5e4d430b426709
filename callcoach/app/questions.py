"""
Interview Call Coach - Coding Question Detection.

Deterministic parsing of the interviewer's accumulated speech into a
DSAQuestion for the side-channel coding chat.

Rules, applied in order by parse_question():
1. Title from a labeled pattern ("problem: ...", "implement a ...",
   "given ..."), truncated to 80 chars.
2. Difficulty keyword: beginner/easy -> Easy, advanced/hard -> Hard,
   anything else -> Medium.
3. Problem body: the buffer with labels and difficulty words removed,
   truncated to 500 chars.
4. Constraints: the "constraints:" section split on bullets, dashes and
   newlines, at most 5 items.
Fallback: no title, but a buffer over 50 chars that mentions a coding
keyword becomes a generic "Programming Problem" (body truncated to 400).
"""

from __future__ import annotations

import logging
import re

from callcoach.core.domain.models import Difficulty, DSAQuestion


logger = logging.getLogger(__name__)


# Any of these in the assistant buffer opens the coding side channel
CODING_TRIGGER_KEYWORDS = [
    "dsa",
    "algorithm",
    "data structure",
    "coding",
    "problem",
    "solve",
    "function",
    "array",
    "string",
    "tree",
    "graph",
    "linked list",
    "stack",
    "queue",
    "write a",
    "implement",
    "return",
    "leetcode",
    "write code",
    "solution",
    "complexity",
]

# Narrower set used by the generic fallback
FALLBACK_KEYWORDS = [
    "array",
    "string",
    "tree",
    "graph",
    "algorithm",
    "function",
    "return",
    "implement",
]

FALLBACK_TITLE = "Programming Problem"
MAX_TITLE_LENGTH = 80
MAX_PROBLEM_LENGTH = 500
MAX_FALLBACK_PROBLEM_LENGTH = 400
MIN_FALLBACK_LENGTH = 50
MIN_PROBLEM_LENGTH = 20
MAX_CONSTRAINTS = 5

TITLE_PATTERNS = [
    re.compile(r"\b(?:problem|question|challenge|task):\s*(.+?)(?:[\n.?!]|$)", re.IGNORECASE),
    re.compile(r"\b(?:write|implement|create|solve)\s+(?:an?\s+)?(.+?)(?:[\n.,;?!]|$)", re.IGNORECASE),
    re.compile(r"\b(?:given|you have|consider)\s+(.+?)(?:[\n.?!]|$)", re.IGNORECASE),
]

DIFFICULTY_PATTERN = re.compile(
    r"\b(easy|medium|hard|beginner|intermediate|advanced)\b", re.IGNORECASE
)
DIFFICULTY_LABEL_PATTERN = re.compile(r"\bdifficulty(?:\s+level)?\s*:?", re.IGNORECASE)
LEADING_LABEL_PATTERN = re.compile(r"^\s*(?:problem|question|challenge|task):\s*", re.IGNORECASE)
CONSTRAINTS_PATTERN = re.compile(r"constraints?:\s*(.+?)(?:\n\s*\n|$)", re.IGNORECASE | re.DOTALL)
CONSTRAINT_SEPARATORS = re.compile(r"[•\-\n]")


def contains_coding_trigger(text: str) -> bool:
    """Case-insensitive substring check against the trigger keywords."""
    lowered = text.lower()
    return any(keyword in lowered for keyword in CODING_TRIGGER_KEYWORDS)


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _extract_title(message: str) -> str:
    for pattern in TITLE_PATTERNS:
        match = pattern.search(message)
        if match and match.group(1).strip():
            return _truncate(match.group(1).strip(), MAX_TITLE_LENGTH)
    return ""


def _extract_difficulty(message: str) -> Difficulty:
    match = DIFFICULTY_PATTERN.search(message)
    if not match:
        return Difficulty.MEDIUM
    word = match.group(1).lower()
    if word in ("easy", "beginner"):
        return Difficulty.EASY
    if word in ("hard", "advanced"):
        return Difficulty.HARD
    return Difficulty.MEDIUM


def _clean_problem(message: str) -> str:
    problem = LEADING_LABEL_PATTERN.sub("", message)
    problem = DIFFICULTY_LABEL_PATTERN.sub("", problem)
    problem = DIFFICULTY_PATTERN.sub("", problem)
    problem = re.sub(r"[ \t]{2,}", " ", problem)
    problem = re.sub(r"[ \t]+([,.;:])", r"\1", problem)
    problem = re.sub(r"[\s,;:]+$", "", problem)
    return problem.strip()


def _extract_constraints(message: str) -> tuple[str, ...] | None:
    match = CONSTRAINTS_PATTERN.search(message)
    if not match:
        return None
    items = [c.strip() for c in CONSTRAINT_SEPARATORS.split(match.group(1))]
    items = [c for c in items if c][:MAX_CONSTRAINTS]
    return tuple(items) or None


def parse_question(message: str) -> DSAQuestion | None:
    """
    Parse a coding question out of accumulated interviewer speech.

    Args:
        message: Space-joined assistant utterances of the current window

    Returns:
        DSAQuestion, or None if nothing question-like was found
    """
    message = message.strip()
    if not message:
        return None

    title = _extract_title(message)
    problem = _clean_problem(message)

    if title and len(problem) > MIN_PROBLEM_LENGTH:
        return DSAQuestion(
            title=title,
            difficulty=_extract_difficulty(message),
            problem=_truncate(problem, MAX_PROBLEM_LENGTH),
            constraints=_extract_constraints(message),
        )

    if len(message) > MIN_FALLBACK_LENGTH:
        lowered = message.lower()
        if any(keyword in lowered for keyword in FALLBACK_KEYWORDS):
            logger.debug("No labeled title found, using generic programming problem")
            return DSAQuestion(
                title=FALLBACK_TITLE,
                difficulty=Difficulty.MEDIUM,
                problem=_truncate(message, MAX_FALLBACK_PROBLEM_LENGTH),
            )

    return None
