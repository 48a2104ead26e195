"""
Question Selector - Stateless next-question cascade

Responsibilities:
- Decide whether the assessment should stop
- Pick the next unanswered question from a fixed priority cascade
- Build immutable QuestionOutput records from the Question Catalog

Design principles:
- Stateless: all state comes from the ConversationState parameter
- Deterministic: same state and category always give the same question
- Never mutates state (the caller applies answers)

Cascade (first rung yielding an unanswered question wins):
    1. Hard stops: >= 7 answered, or >= 2 answered and top confidence >= 90
    2. Category questions (when a known category hint is set)
    3. Questions of the top real condition when its confidence >= 40
    4. Global fallback priority list
    5. Last-resort question
    6. Completed

Unknown question keys in any list are skipped with a warning.
"""

import logging
from typing import Iterable, Optional, Union

from symptom_triage.contracts import AssessmentComplete, QuestionOutput
from symptom_triage.core.catalog import TriageCatalog
from symptom_triage.core.conversation_state import ConversationState
from symptom_triage.core.scoring_engine import ScoringEngine

logger = logging.getLogger(__name__)

ASSESSMENT_READY_MESSAGE = (
    "Thank you for answering your symptom questions. "
    "Based on your responses, here is my assessment:"
)
QUESTIONS_EXHAUSTED_MESSAGE = (
    "Thank you for providing detailed information about your symptoms. "
    "Here is my assessment:"
)

# Completion reasons
REASON_MAX_QUESTIONS = "max_questions"
REASON_HIGH_CONFIDENCE = "high_confidence"
REASON_EXHAUSTED = "exhausted"

NextStep = Union[QuestionOutput, AssessmentComplete]


class QuestionSelector:
    """
    Stateless question selector.

    Example:
        selector = QuestionSelector(catalog)
        step = selector.get_next_question(state, category='cardiac')
        if step.completed: ...
    """

    def __init__(self, catalog: TriageCatalog, scoring_engine: Optional[ScoringEngine] = None):
        self.catalog = catalog
        self.scoring_engine = scoring_engine or ScoringEngine(catalog)
        self.stop_rules = catalog.stop_rules

    # =========================================================================
    # Public API
    # =========================================================================

    def get_next_question(self, state: ConversationState,
                          category: Optional[str] = None) -> NextStep:
        """
        Get the next question or declare the assessment complete.

        Args:
            state: Current conversation state (not modified)
            category: Optional category hint; defaults to state.category.
                Unknown hints are treated as no category.

        Returns:
            QuestionOutput, or AssessmentComplete when nothing should be asked
        """
        stop = self.check_stop_conditions(state)
        if stop is not None:
            return stop

        hint = category if category is not None else state.category
        category_id = self.catalog.resolve_category(hint)
        if hint is not None and category_id is None:
            logger.debug(f"Unknown category hint '{hint}', continuing without category")

        # Rung 2: category-scoped
        if category_id is not None:
            question = self._first_unanswered(
                self.catalog.category_questions(category_id), state, "category"
            )
            if question is not None:
                return question

        # Rung 3: disease-driven
        ranked = self.scoring_engine.rank(state)
        if ranked and ranked[0].confidence >= self.stop_rules.condition_question_confidence:
            top = ranked[0].condition
            question = self._first_unanswered(top.questions, state, "condition")
            if question is not None:
                return question

        # Rung 4: global fallback
        question = self._first_unanswered(self.catalog.fallback_priority, state, "fallback")
        if question is not None:
            return question

        # Rung 5: last resort
        last_resort = self.catalog.last_resort_question
        if last_resort:
            question = self._first_unanswered([last_resort], state, "last_resort")
            if question is not None:
                return question

        logger.info("No unanswered questions remain, assessment complete")
        return AssessmentComplete(reason=REASON_EXHAUSTED, message=QUESTIONS_EXHAUSTED_MESSAGE)

    def check_stop_conditions(self, state: ConversationState) -> Optional[AssessmentComplete]:
        """
        Evaluate the hard stops.

        Returns:
            AssessmentComplete if the conversation should stop, else None
        """
        answered = state.answered_count()

        if answered >= self.stop_rules.max_answered:
            logger.info(f"Stopping: {answered} questions answered")
            return AssessmentComplete(reason=REASON_MAX_QUESTIONS, message=ASSESSMENT_READY_MESSAGE)

        if answered >= self.stop_rules.early_stop_min_answered:
            confidence = self.scoring_engine.top_confidence(state)
            if confidence >= self.stop_rules.early_stop_confidence:
                logger.info(f"Stopping early: top confidence {confidence} after {answered} answers")
                return AssessmentComplete(
                    reason=REASON_HIGH_CONFIDENCE, message=ASSESSMENT_READY_MESSAGE
                )

        return None

    def build_question(self, key: str, source: str) -> Optional[QuestionOutput]:
        """QuestionOutput for key, or None if the key is not in the catalog."""
        spec = self.catalog.get_question(key)
        if spec is None:
            return None
        return QuestionOutput(key=spec.key, question=spec.question, choices=spec.choices, source=source)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _first_unanswered(self, keys: Iterable[str], state: ConversationState,
                          source: str) -> Optional[QuestionOutput]:
        for key in keys:
            if state.is_answered(key):
                continue
            question = self.build_question(key, source)
            if question is not None:
                logger.debug(f"Next question '{key}' from {source} list")
                return question
        return None
