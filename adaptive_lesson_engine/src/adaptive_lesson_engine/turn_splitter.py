"""
Turn Splitter

Paces block content into short conversational turns: one or two sentences
per paragraph, with the block's first Socratic question asked right after
the opening turn.
"""

import re
from typing import Any, List, Optional, Sequence

from adaptive_lesson_engine.lesson_models import Turn

MAX_TURNS = 6
SENTENCES_PER_TURN = 2
CONTINUE_TEXT = "Let's continue."

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")


def split_into_turns(content: Any, socratic_questions: Optional[Sequence[str]] = None) -> List[Turn]:
    """
    Split block content into 1-6 turns.

    Args:
        content: Block text; anything that is not non-blank text yields a single
            continuity turn
        socratic_questions: The block's Socratic questions; the first is asked
            after the opening turn

    Returns:
        List of Turn objects (never empty, at most MAX_TURNS)
    """
    if not isinstance(content, str) or not content.strip():
        return [Turn(say=CONTINUE_TEXT)]

    turns: List[Turn] = []
    for paragraph in _PARAGRAPH_BREAK_RE.split(content):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        sentences = [s for s in _SENTENCE_BOUNDARY_RE.split(paragraph) if s]
        turns.append(Turn(say=" ".join(sentences[:SENTENCES_PER_TURN])))

    questions = [q for q in (socratic_questions or []) if isinstance(q, str) and q.strip()]
    if questions:
        turns.insert(1, Turn(question=questions[0].strip(), kind="socratic"))

    return turns[:MAX_TURNS]
