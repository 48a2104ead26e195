"""
Symptom triage conversation engine.

Module-level helpers use the packaged catalog (or TRIAGE_DATA_DIR):

    from symptom_triage import next_question, apply_answer, score_conversation
    from symptom_triage.core.conversation_state import ConversationState

    state = ConversationState(category='fever_infections')
    question = next_question(state)
    apply_answer(state, question.key, 1)
    print(format_triage(score_conversation(state)))
"""

from symptom_triage.core.answer_mapper import AnswerMapper, InvalidChoice
from symptom_triage.core.catalog import get_default_catalog
from symptom_triage.core.question_selector import QuestionSelector
from symptom_triage.core.scoring_engine import ScoringEngine
from symptom_triage.core.triage_formatter import TriageFormatter

__all__ = [
    "InvalidChoice",
    "apply_answer",
    "format_triage",
    "next_question",
    "score_conversation",
    "treatment_recommendations",
]


def score_conversation(state):
    """Score the conversation against the default catalog -> TriageResult."""
    return ScoringEngine(get_default_catalog()).score(state)


def next_question(state, category=None):
    """Next QuestionOutput, or AssessmentComplete when the assessment should stop."""
    return QuestionSelector(get_default_catalog()).get_next_question(state, category)


def apply_answer(state, question_key, chosen_index):
    """
    Record a 1-based choice for question_key on state -> AnswerOutcome.

    Raises InvalidChoice without touching state when the index is invalid.
    """
    return AnswerMapper(get_default_catalog()).apply_answer(state, question_key, chosen_index)


def treatment_recommendations(condition_id, state):
    """Guideline treatment and precautions for condition_id, or None."""
    return ScoringEngine(get_default_catalog()).treatment_recommendations(condition_id, state)


def format_triage(result):
    return TriageFormatter().format(result)
