"""
JSON Formatter - Structured triage output

Responsibilities:
- Transform a TriageResult into a JSON-serializable dict
- Add metadata (conversation_id, generated_at, schema_version)
- Save formatted output to disk

Design principles:
- Pure serialization (no business logic)
- No rescoring: the result is rendered exactly as given
- Only timestamp generation happens here
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from symptom_triage.contracts import ScoredCondition, TreatmentGuidance, TriageResult
from symptom_triage.core.conversation_state import ConversationState

logger = logging.getLogger(__name__)


class JSONFormatter:
    """Serialization layer for triage results."""

    def __init__(self, schema_version: str = "1.0.0"):
        self.schema_version = schema_version
        logger.info(f"JSON Formatter initialized (schema_version={schema_version})")

    def format_result(self, result: TriageResult, conversation_id: str,
                      state: Optional[ConversationState] = None,
                      treatment: Optional[TreatmentGuidance] = None) -> dict:
        """
        Transform a triage result to a JSON-ready dict

        Args:
            result: Output of ScoringEngine.score()
            conversation_id: Conversation identifier
            state: Optional conversation state, adds category and answer
                counts to the metadata and the observed tokens to the body
            treatment: Optional guideline treatment for the top condition
                (ScoringEngine.treatment_recommendations), null when omitted

        Returns:
            dict: schema_version, metadata, triage, findings

        Raises:
            ValueError: If result or conversation_id is invalid

        Example:
            >>> output = JSONFormatter().format_result(result, "abc123", state)
            >>> output['triage']['urgency_level']
            'emergency'
        """
        if not isinstance(result, TriageResult):
            raise ValueError(f"result must be TriageResult, got {type(result).__name__}")

        if not isinstance(conversation_id, str) or not conversation_id.strip():
            raise ValueError("conversation_id must be non-empty string")

        output = {
            "schema_version": self.schema_version,
            "metadata": self._generate_metadata(conversation_id, state),
            "triage": {
                "possible_conditions": [
                    self._format_condition(c) for c in result.possible_conditions
                ],
                "urgency_level": result.urgency_level.value,
                "recommendations": list(result.recommendations),
                "actions": list(result.actions),
                "treatment": self._format_treatment(treatment),
            },
            "findings": {
                "present": state.present_tokens() if state else [],
                "answered": state.answered_keys() if state else [],
            },
        }

        logger.info(
            f"Formatted triage for {conversation_id}: "
            f"{len(result.possible_conditions)} conditions, {result.urgency_level.value}"
        )
        return output

    @staticmethod
    def _format_condition(scored: ScoredCondition) -> dict:
        condition = scored.condition
        return {
            "condition_id": condition.id if condition else None,
            "name": scored.name,
            "confidence": scored.confidence,
            "matched_symptoms": list(scored.matched_symptoms),
            "matched_risk_factors": list(scored.matched_risk_factors),
            "priority": condition.priority if condition else None,
            "reference": condition.reference if condition else None,
        }

    @staticmethod
    def _format_treatment(treatment: Optional[TreatmentGuidance]) -> Optional[dict]:
        if treatment is None:
            return None
        return {
            "condition_id": treatment.condition_id,
            "condition": treatment.condition_name,
            "priority": treatment.priority,
            "reference": treatment.reference,
            "plans": {plan.name: dict(plan.guidance) for plan in treatment.plans},
            "precautions": list(treatment.precautions),
        }

    @staticmethod
    def _generate_metadata(conversation_id: str, state: Optional[ConversationState]) -> dict:
        # ISO 8601 with Z suffix
        timestamp = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')

        return {
            "conversation_id": conversation_id,
            "generated_at": timestamp,
            "category": state.category if state else None,
            "answered_count": state.answered_count() if state else 0,
        }

    @staticmethod
    def save_to_file(data_dict: dict, file_path: str) -> str:
        """
        Write an assessment payload as UTF-8 JSON, creating parent directories.

        Returns the absolute path written. Non-serializable values raise
        TypeError from json.
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(data_dict, f, indent=2, ensure_ascii=False)

        saved = str(path.absolute())
        logger.info(f"Assessment written to {saved}")
        return saved
