"""
Scoring Engine - Pattern-matching condition scorer

Responsibilities:
- Score every catalog condition against the conversation's present tokens
- Rank candidates that reach the candidate threshold
- Derive urgency, recommendations and actions from the top candidate
- Look up guideline treatment and precautions for a condition

Design principles:
- Pure and total: any well-formed ConversationState yields a TriageResult
- Deterministic: ties keep catalog declaration order (stable sort)
- Only 'present' markers count; 'answered' markers never score

Scoring (weights from ruleset.json):
    +30 per primary symptom present
    +15 per secondary symptom present
    +20 per risk factor present
    clamped to [0, 100]; candidates need >= 50
"""

import logging
from typing import List, Optional

from symptom_triage.contracts import (
    Condition,
    ScoredCondition,
    TreatmentGuidance,
    TriageResult,
    UrgencyBand,
)
from symptom_triage.core.catalog import TriageCatalog
from symptom_triage.core.conversation_state import ConversationState

logger = logging.getLogger(__name__)


class ScoringEngine:
    """Scores conditions and builds triage results. Holds no conversation state."""

    def __init__(self, catalog: TriageCatalog):
        self.catalog = catalog
        self.rules = catalog.scoring_rules

    # =========================================================================
    # Public API
    # =========================================================================

    def score_condition(self, condition: Condition, state: ConversationState) -> ScoredCondition:
        """
        Score a single condition (no threshold applied).

        Args:
            condition: Catalog condition
            state: Current conversation state

        Returns:
            ScoredCondition with clamped confidence and matched tokens
        """
        matched_primary = [s for s in condition.primary if state.is_present(s)]
        matched_secondary = [s for s in condition.secondary if state.is_present(s)]
        matched_risks = [r for r in condition.risk_factors if state.is_present(r)]

        raw = (
            len(matched_primary) * self.rules.primary_weight
            + len(matched_secondary) * self.rules.secondary_weight
            + len(matched_risks) * self.rules.risk_factor_weight
        )
        confidence = max(0, min(raw, self.rules.max_score))

        return ScoredCondition(
            name=condition.name,
            confidence=confidence,
            matched_symptoms=tuple(matched_primary + matched_secondary),
            matched_risk_factors=tuple(matched_risks),
            condition=condition,
        )

    def rank(self, state: ConversationState) -> List[ScoredCondition]:
        """
        Candidates at or above the threshold, highest confidence first.

        sorted() is stable, so equal scores keep declaration order.
        """
        threshold = self.rules.candidate_threshold
        candidates = []
        for condition in self.catalog.iter_conditions():
            scored = self.score_condition(condition, state)
            if scored.confidence >= threshold:
                candidates.append(scored)

        return sorted(candidates, key=lambda c: c.confidence, reverse=True)

    def top_confidence(self, state: ConversationState) -> int:
        """Confidence of the best real candidate, 0 when none qualifies."""
        ranked = self.rank(state)
        return ranked[0].confidence if ranked else 0

    def score(self, state: ConversationState) -> TriageResult:
        """
        Score the conversation and build the triage result.

        Empty or non-matching states yield the fallback result:
        a single 'General Medical Evaluation' entry at confidence 30, routine.
        """
        ranked = self.rank(state)

        if not ranked:
            fallback = self.catalog.fallback_result
            logger.debug("No condition reached the candidate threshold, using fallback result")
            return TriageResult(
                possible_conditions=(
                    ScoredCondition(name=fallback.condition_name, confidence=fallback.confidence),
                ),
                urgency_level=fallback.urgency,
                recommendations=fallback.recommendations,
                actions=fallback.actions,
            )

        top = ranked[0]
        band = self._band_for(top.confidence)

        recommendations = [band.recommendation]
        actions = [band.action]
        for advice in top.condition.specific_advice:
            recommendations.append(advice.recommendation)
            actions.append(advice.action)

        logger.debug(
            f"Top condition {top.condition.id} at {top.confidence} "
            f"({band.level.value}), {len(ranked)} candidates"
        )

        return TriageResult(
            possible_conditions=tuple(ranked),
            urgency_level=band.level,
            recommendations=tuple(recommendations),
            actions=tuple(actions),
        )

    def treatment_recommendations(self, condition_id: str,
                                  state: ConversationState) -> Optional[TreatmentGuidance]:
        """
        Guideline treatment for a condition plus precautions triggered by state.

        Returns None for unknown conditions and conditions without treatment
        data. Precautions follow the ruleset order, each added at most once.
        """
        condition = self.catalog.conditions.get(condition_id)
        if condition is None or not condition.treatment:
            logger.debug(f"No treatment guidance for '{condition_id}'")
            return None

        precautions = tuple(
            rule.text for rule in self.catalog.precaution_rules
            if any(state.is_present(token) for token in rule.tokens)
        )

        return TreatmentGuidance(
            condition_id=condition.id,
            condition_name=condition.name,
            priority=condition.priority,
            reference=condition.reference,
            plans=condition.treatment,
            precautions=precautions,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _band_for(self, confidence: int) -> UrgencyBand:
        # Bands are sorted highest threshold first; the last one starts at 0
        for band in self.catalog.urgency_bands:
            if confidence >= band.min_confidence:
                return band
        return self.catalog.urgency_bands[-1]
