"""
Test Suite for Question Selector

Part 1 runs the cascade against the packaged catalog.
Part 2 uses small temp-file catalogs to reach rungs the packaged
data never reaches (last resort, exhausted, unknown keys).
Run with: pytest tests/test_question_selector.py -v
"""

import unittest
import json
import tempfile
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from symptom_triage.contracts import AssessmentComplete, QuestionOutput
from symptom_triage.core.answer_mapper import AnswerMapper
from symptom_triage.core.catalog import TriageCatalog
from symptom_triage.core.conversation_state import ConversationState
from symptom_triage.core.question_selector import (
    ASSESSMENT_READY_MESSAGE,
    QUESTIONS_EXHAUSTED_MESSAGE,
    QuestionSelector,
)


# =============================================================================
# PART 1: Packaged catalog
# =============================================================================

class TestCascadeWithPackagedCatalog(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.catalog = TriageCatalog.load()
        cls.selector = QuestionSelector(cls.catalog)
        cls.mapper = AnswerMapper(cls.catalog)

    # -------------------------------------------------------------------------
    # Category rung
    # -------------------------------------------------------------------------

    def test_fever_category_starts_with_fever_duration(self):
        """Empty state + fever_infections -> fever-duration prompt, 4 choices"""
        result = self.selector.get_next_question(ConversationState(), "fever_infections")

        self.assertIsInstance(result, QuestionOutput)
        self.assertEqual(result.key, "fever_pattern")
        self.assertEqual(result.question, "How long have you had the fever?")
        self.assertEqual(len(result.choices), 4)
        self.assertEqual(result.source, "category")

    def test_cardiac_category_asks_chest_pain_first(self):
        result = self.selector.get_next_question(ConversationState(), "cardiac")

        self.assertEqual(result.key, "chest_pain")
        self.assertEqual(result.source, "category")

    def test_category_from_state(self):
        state = ConversationState(category="digestive")
        result = self.selector.get_next_question(state)

        self.assertEqual(result.key, "diarrhea_type")

    def test_category_alias(self):
        result = self.selector.get_next_question(ConversationState(), "2")

        self.assertEqual(result.key, "cough_type")

    def test_category_skips_answered(self):
        state = ConversationState.from_tokens(answered=["fever_pattern", "headache_severity"])
        result = self.selector.get_next_question(state, "fever_infections")

        self.assertEqual(result.key, "chills_presence")

    def test_category_precedence_until_exhausted(self):
        """Every category question is asked before any other rung"""
        for category in self.catalog.categories.values():
            state = ConversationState(category=category.id)
            asked = []

            for _ in category.questions:
                result = self.selector.get_next_question(state)
                self.assertIsInstance(result, QuestionOutput, category.id)
                self.assertEqual(result.source, "category", category.id)
                asked.append(result.key)
                # Last choices keep confidence below the early-stop level
                self.mapper.apply_answer(state, result.key, len(result.choices))

            self.assertEqual(tuple(asked), category.questions)

            after = self.selector.get_next_question(state)
            if isinstance(after, QuestionOutput):
                self.assertNotEqual(after.source, "category")

    def test_unknown_category_is_ignored(self):
        """Unknown hint falls through to the fallback list"""
        result = self.selector.get_next_question(ConversationState(), "dermatology")

        self.assertEqual(result.key, "chest_pain")
        self.assertEqual(result.source, "fallback")

    # -------------------------------------------------------------------------
    # Condition and fallback rungs
    # -------------------------------------------------------------------------

    def test_no_category_uses_fallback_order(self):
        result = self.selector.get_next_question(ConversationState())

        self.assertEqual(result.key, "chest_pain")
        self.assertEqual(result.source, "fallback")

    def test_fallback_skips_answered(self):
        state = ConversationState.from_tokens(answered=["chest_pain", "fever_pattern"])
        result = self.selector.get_next_question(state)

        self.assertEqual(result.key, "cough_type")

    def test_condition_questions_when_top_candidate_qualifies(self):
        # Malaria at 60 -> its own question list
        state = ConversationState.from_tokens(present=["fever", "headache"])
        result = self.selector.get_next_question(state)

        self.assertEqual(result.key, "fever_pattern")
        self.assertEqual(result.source, "condition")

    def test_condition_questions_skip_answered(self):
        state = ConversationState.from_tokens(
            present=["fever", "headache"], answered=["fever_pattern"]
        )
        result = self.selector.get_next_question(state)

        self.assertEqual(result.key, "travel_history")
        self.assertEqual(result.source, "condition")

    def test_category_beats_condition(self):
        state = ConversationState.from_tokens(present=["fever", "headache"])
        result = self.selector.get_next_question(state, "cardiac")

        self.assertEqual(result.key, "chest_pain")
        self.assertEqual(result.source, "category")

    # -------------------------------------------------------------------------
    # Hard stops
    # -------------------------------------------------------------------------

    def test_seven_answered_completes(self):
        """7 answered keys -> complete, whatever the confidence"""
        state = ConversationState.from_tokens(answered=[
            "fever_pattern", "cough_type", "chest_pain", "diarrhea_type",
            "abdominal_pain", "fatigue_level", "weight_change",
        ])
        result = self.selector.get_next_question(state, "fever_infections")

        self.assertIsInstance(result, AssessmentComplete)
        self.assertTrue(result.completed)
        self.assertEqual(result.reason, "max_questions")
        self.assertEqual(result.message, ASSESSMENT_READY_MESSAGE)

    def test_high_confidence_after_two_answers(self):
        # Malaria: fever + headache + chills = 90
        state = ConversationState.from_tokens(
            present=["fever", "headache", "chills"],
            answered=["fever_pattern", "headache_severity"],
        )
        result = self.selector.get_next_question(state, "fever_infections")

        self.assertIsInstance(result, AssessmentComplete)
        self.assertEqual(result.reason, "high_confidence")

    def test_high_confidence_needs_two_answers(self):
        state = ConversationState.from_tokens(
            present=["fever", "headache", "chills"], answered=["fever_pattern"]
        )
        result = self.selector.get_next_question(state, "fever_infections")

        self.assertIsInstance(result, QuestionOutput)
        self.assertEqual(result.key, "headache_severity")

    def test_below_early_stop_confidence_continues(self):
        # Malaria 85 < 90
        state = ConversationState.from_tokens(
            present=["fever", "recent_travel", "mosquito_exposure"],
            answered=["fever_pattern", "travel_history"],
        )
        result = self.selector.get_next_question(state)

        self.assertIsInstance(result, QuestionOutput)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    def test_deterministic(self):
        state = ConversationState.from_tokens(present=["cough"], answered=["cough_type"])

        first = self.selector.get_next_question(state, "respiratory")
        for _ in range(5):
            self.assertEqual(self.selector.get_next_question(state, "respiratory"), first)

    def test_does_not_mutate_state(self):
        state = ConversationState.from_tokens(present=["fever"])
        before = state.to_json()

        self.selector.get_next_question(state, "fever_infections")

        self.assertEqual(state.to_json(), before)

    def test_terminates_within_seven_answers(self):
        """Any answer sequence completes within 7 answered questions"""
        hints = [None] + list(self.catalog.categories)
        for hint in hints:
            for pick in ("first", "last"):
                state = ConversationState(category=hint)
                for _ in range(20):
                    result = self.selector.get_next_question(state)
                    if isinstance(result, AssessmentComplete):
                        break
                    index = 1 if pick == "first" else len(result.choices)
                    self.mapper.apply_answer(state, result.key, index)
                else:
                    self.fail(f"No completion for category={hint}, pick={pick}")

                self.assertLessEqual(state.answered_count(), 7)


# =============================================================================
# PART 2: Temp-file catalogs
# =============================================================================

def _minimal_catalog_files(fallback_priority, last_resort, questions=None):
    """Write a small three-file catalog; returns the temp directory"""
    tmp_dir = tempfile.mkdtemp()

    conditions = {"conditions": [{
        "id": "flu",
        "name": "Flu",
        "symptoms": {"primary": ["fever", "cough"], "secondary": [], "severe": []},
        "risk_factors": [],
        "questions": ["q_fever"],
    }]}
    if questions is None:
        questions = [
            {"key": "q_fever", "question": "Fever?", "choices": [
                {"text": "Yes", "tokens": ["fever"]}, {"text": "No", "tokens": ["no_fever"]}]},
            {"key": "q_cough", "question": "Cough?", "choices": [
                {"text": "Yes", "tokens": ["cough"]}, {"text": "No", "tokens": ["no_cough"]}]},
            {"key": "q_travel", "question": "Travel?", "choices": [
                {"text": "Yes", "tokens": ["no_fever"]}, {"text": "No", "tokens": ["no_cough"]}]},
        ]
    questions_data = {"unscored_findings": ["no_fever", "no_cough"], "questions": questions}
    ruleset = {
        "categories": [{"id": "resp", "label": "Respiratory", "aliases": ["1"],
                        "questions": ["q_cough"]}],
        "fallback_priority": fallback_priority,
        "last_resort_question": last_resort,
        "stop_rules": {"max_answered": 7, "early_stop_confidence": 90,
                       "early_stop_min_answered": 2, "condition_question_confidence": 40},
        "scoring": {"primary_weight": 30, "secondary_weight": 15, "risk_factor_weight": 20,
                    "candidate_threshold": 50, "max_score": 100},
        "urgency_bands": [{"level": "routine", "min_confidence": 0,
                           "recommendation": "r", "action": "a"}],
        "fallback_result": {"condition_name": "General Medical Evaluation", "confidence": 30,
                            "urgency": "routine", "recommendations": ["r"], "actions": ["a"]},
    }

    for name, data in (("conditions.json", conditions), ("questions.json", questions_data),
                       ("ruleset.json", ruleset)):
        with open(os.path.join(tmp_dir, name), 'w') as f:
            json.dump(data, f)
    return tmp_dir


class TestCascadeWithTempCatalog(unittest.TestCase):

    def tearDown(self):
        for name in ("conditions.json", "questions.json", "ruleset.json"):
            path = os.path.join(self.tmp_dir, name)
            if os.path.exists(path):
                os.unlink(path)
        os.rmdir(self.tmp_dir)

    def test_last_resort_question(self):
        self.tmp_dir = _minimal_catalog_files(["q_fever", "q_cough"], "q_travel")
        selector = QuestionSelector(TriageCatalog.load(self.tmp_dir))

        state = ConversationState.from_tokens(answered=["q_fever", "q_cough"])
        result = selector.get_next_question(state)

        self.assertEqual(result.key, "q_travel")
        self.assertEqual(result.source, "last_resort")

    def test_exhausted(self):
        self.tmp_dir = _minimal_catalog_files(["q_fever", "q_cough"], "q_travel")
        selector = QuestionSelector(TriageCatalog.load(self.tmp_dir))

        state = ConversationState.from_tokens(answered=["q_fever", "q_cough", "q_travel"])
        result = selector.get_next_question(state)

        self.assertIsInstance(result, AssessmentComplete)
        self.assertEqual(result.reason, "exhausted")
        self.assertEqual(result.message, QUESTIONS_EXHAUSTED_MESSAGE)

    def test_temp_catalog_category_rung(self):
        self.tmp_dir = _minimal_catalog_files(["q_fever"], "q_travel")
        selector = QuestionSelector(TriageCatalog.load(self.tmp_dir))

        result = selector.get_next_question(ConversationState(), "Respiratory")

        self.assertEqual(result.key, "q_cough")

    def test_unknown_key_is_skipped_at_runtime(self):
        """A key that vanished after validation is skipped, not fatal"""
        self.tmp_dir = _minimal_catalog_files(["q_fever", "q_cough"], "q_travel")
        catalog = TriageCatalog.load(self.tmp_dir)
        catalog.fallback_priority = ("q_removed",) + catalog.fallback_priority
        selector = QuestionSelector(catalog)

        with self.assertLogs("symptom_triage.core.catalog", level="WARNING"):
            result = selector.get_next_question(ConversationState())

        self.assertEqual(result.key, "q_fever")


if __name__ == '__main__':
    unittest.main()
