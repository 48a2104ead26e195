"""
Answer Mapper - Applies a numbered reply to conversation state

Responsibilities:
- Parse raw patient replies into 1-based choice indices
- Mark the question answered and its mapped tokens present

Design principles:
- All-or-nothing: invalid input raises InvalidChoice and leaves state untouched
- Never guesses: no fuzzy matching of free text to choices
- Mutates the state it is given (the caller owns the state)
"""

import logging
from dataclasses import dataclass
from typing import Tuple

from symptom_triage.core.catalog import TriageCatalog
from symptom_triage.core.conversation_state import ConversationState

logger = logging.getLogger(__name__)


class InvalidChoice(ValueError):
    """
    Reply does not select a valid choice for the question.

    Attributes:
        question_key: Question being answered
        reply: The rejected reply (raw text or index)
        choice_count: Number of valid choices (0 for unknown questions)
    """

    def __init__(self, question_key: str, reply, choice_count: int, reason: str = ""):
        self.question_key = question_key
        self.reply = reply
        self.choice_count = choice_count
        message = reason or (
            f"Invalid choice {reply!r} for question '{question_key}' "
            f"(expected 1-{choice_count})"
        )
        super().__init__(message)


@dataclass(frozen=True)
class AnswerOutcome:
    """Result of applying one answer."""
    question_key: str
    choice_index: int
    choice: str
    tokens: Tuple[str, ...]
    state: ConversationState


class AnswerMapper:
    """Maps numbered replies to symptom tokens using the Question Catalog."""

    def __init__(self, catalog: TriageCatalog):
        self.catalog = catalog

    @staticmethod
    def parse_choice(reply, choice_count: int) -> int:
        """
        Parse a reply into a 1-based choice index.

        Accepts ints and digit strings ("2", " 2 ", "2.").

        Raises:
            ValueError: If the reply is not a number in 1..choice_count
        """
        if isinstance(reply, bool):
            raise ValueError(f"Choice must be a number, got {reply!r}")

        if isinstance(reply, int):
            index = reply
        else:
            text = str(reply).strip().rstrip('.').strip()
            if not text.isdigit():
                raise ValueError(f"Choice must be a number, got {reply!r}")
            index = int(text)

        if not 1 <= index <= choice_count:
            raise ValueError(f"Choice {index} out of range 1-{choice_count}")
        return index

    def apply_answer(self, state: ConversationState, question_key: str,
                     chosen_index) -> AnswerOutcome:
        """
        Record the answer to a question.

        Args:
            state: Conversation state to update
            question_key: Key of the question that was asked
            chosen_index: 1-based choice index (int or digit string)

        Returns:
            AnswerOutcome with the applied tokens and the updated state

        Raises:
            InvalidChoice: Unknown question or invalid index (state unchanged)
        """
        spec = self.catalog.questions.get(question_key)
        if spec is None:
            raise InvalidChoice(
                question_key, chosen_index, 0, reason=f"Unknown question '{question_key}'"
            )

        try:
            index = self.parse_choice(chosen_index, len(spec.choices))
        except ValueError as e:
            logger.warning(f"Rejected reply for '{question_key}': {e}")
            raise InvalidChoice(question_key, chosen_index, len(spec.choices)) from e

        tokens = spec.choice_tokens[index - 1]

        state.mark_answered(question_key)
        for token in tokens:
            state.mark_present(token)

        logger.debug(f"Answered '{question_key}' with choice {index}, recorded {list(tokens)}")

        return AnswerOutcome(
            question_key=question_key,
            choice_index=index,
            choice=spec.choices[index - 1],
            tokens=tokens,
            state=state,
        )
