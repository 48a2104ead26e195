"""
Semantic contracts for the symptom triage engine.

This module defines immutable data structures that serve as contracts
between modules. These are NOT validators - they define shape and
semantics without enforcing rules. Catalog consistency is checked once,
at load time, by TriageCatalog.

Design principles:
- Frozen dataclasses (immutable after creation)
- Tuples instead of lists so catalog records cannot be mutated at runtime
- No dependencies on other modules
- Definition layer only (no enforcement)

Contents:
- Catalog records: Condition, QuestionSpec, CategorySpec, StopRules,
  ScoringRules, UrgencyBand, FallbackResult, TreatmentPlan,
  PrecautionRule
- Selector output: QuestionOutput, AssessmentComplete
- Scoring output: ScoredCondition, TriageResult, TreatmentGuidance
- Treatment guidance: TreatmentPlan, PrecautionRule, TreatmentGuidance

Usage:
    from symptom_triage.contracts import QuestionOutput, TriageResult
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType, Optional, Tuple


SymptomToken = NewType("SymptomToken", str)
QuestionKey = NewType("QuestionKey", str)
CategoryId = NewType("CategoryId", str)

# Marker values stored against a token in ConversationState
PRESENT = "present"
ANSWERED = "answered"
VALID_MARKERS = frozenset({PRESENT, ANSWERED})


class UrgencyLevel(str, Enum):
    """
    Triage classification of the top-ranked condition.

    String-based so results serialize to JSON without conversion.
    """
    EMERGENCY = "emergency"
    URGENT = "urgent"
    ROUTINE = "routine"


# =============================================================================
# Catalog records
# =============================================================================

@dataclass(frozen=True)
class AdvicePair:
    """Condition-specific recommendation and action appended when it ranks first."""
    recommendation: str
    action: str


@dataclass(frozen=True)
class TreatmentPlan:
    """
    One named regimen from the treatment guideline (e.g. 'uncomplicated').

    guidance holds (field, text) pairs in guideline order, such as
    ('first_line', 'Artemether-Lumefantrine (AL)').
    """
    name: str
    guidance: Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class PrecautionRule:
    """Precaution added to treatment guidance when any of tokens is present."""
    tokens: Tuple[str, ...]
    text: str


@dataclass(frozen=True)
class Condition:
    """
    Candidate diagnosis with its symptom and risk profile.

    Attributes:
        id: Stable identifier (e.g. 'malaria')
        name: Display name (e.g. 'Malaria')
        category: Disease group ('communicable', 'non_communicable', ...)
        priority: Priority tier ('critical', 'high', 'medium')
        description: One-line description
        primary: Primary symptoms, +30 each when present
        secondary: Secondary symptoms, +15 each when present
        severe: Severe presentations. Reference data only, never scored.
        risk_factors: Risk factors, +20 each when present
        questions: Ordered question keys used to confirm the condition
        reference: Treatment guideline citation
        treatment: Guideline regimens, reference data surfaced with the
            assessment for the top condition
        specific_advice: Extra recommendation/action pairs for this condition
    """
    id: str
    name: str
    category: str
    priority: str
    description: str
    primary: Tuple[str, ...]
    secondary: Tuple[str, ...]
    severe: Tuple[str, ...]
    risk_factors: Tuple[str, ...]
    questions: Tuple[str, ...]
    reference: str
    specific_advice: Tuple[AdvicePair, ...] = ()
    treatment: Tuple[TreatmentPlan, ...] = ()


@dataclass(frozen=True)
class QuestionSpec:
    """
    Static question definition.

    choices and choice_tokens are aligned positionally:
    choice_tokens[i] holds the symptom tokens recorded when the patient
    picks choices[i]. Externally choices are numbered from 1.

    Example:
        >>> spec.choices
        ('Yes, recently', 'Yes, within month', 'No travel')
        >>> spec.choice_tokens[0]
        ('recent_travel',)
    """
    key: str
    question: str
    choices: Tuple[str, ...]
    choice_tokens: Tuple[Tuple[str, ...], ...]


@dataclass(frozen=True)
class CategorySpec:
    """Coarse symptom area chosen at conversation start."""
    id: str
    label: str
    aliases: Tuple[str, ...]
    questions: Tuple[str, ...]


@dataclass(frozen=True)
class StopRules:
    max_answered: int = 7
    early_stop_confidence: int = 90
    early_stop_min_answered: int = 2
    condition_question_confidence: int = 40


@dataclass(frozen=True)
class ScoringRules:
    primary_weight: int = 30
    secondary_weight: int = 15
    risk_factor_weight: int = 20
    candidate_threshold: int = 50
    max_score: int = 100


@dataclass(frozen=True)
class UrgencyBand:
    """Urgency assigned when the top candidate scores at least min_confidence."""
    level: UrgencyLevel
    min_confidence: int
    recommendation: str
    action: str


@dataclass(frozen=True)
class FallbackResult:
    """Generic result used when no condition reaches the candidate threshold."""
    condition_name: str
    confidence: int
    urgency: UrgencyLevel
    recommendations: Tuple[str, ...]
    actions: Tuple[str, ...]


# =============================================================================
# Selector output
# =============================================================================

@dataclass(frozen=True)
class QuestionOutput:
    """
    Immutable question returned by the Question Selector.

    Attributes:
        key: Question key, marked 'answered' once the patient replies
        question: Prompt text shown to the patient
        choices: Ordered answer choices (patient replies with 1..N)
        source: Cascade rung that produced the question.
            Values: 'category', 'condition', 'fallback', 'last_resort'
    """
    key: str
    question: str
    choices: Tuple[str, ...]
    source: str


@dataclass(frozen=True)
class AssessmentComplete:
    """
    Returned instead of a question when the assessment should stop.

    Attributes:
        reason: 'max_questions', 'high_confidence' or 'exhausted'
        message: Closing line shown before the assessment
    """
    reason: str
    message: str
    completed: bool = True


# =============================================================================
# Scoring output
# =============================================================================

@dataclass(frozen=True)
class ScoredCondition:
    """
    One ranked match. Recomputed on every scoring call, never persisted.

    condition is None for the generic fallback entry.
    """
    name: str
    confidence: int
    matched_symptoms: Tuple[str, ...] = ()
    matched_risk_factors: Tuple[str, ...] = ()
    condition: Optional[Condition] = None


@dataclass(frozen=True)
class TriageResult:
    """Ranked conditions plus the urgency and advice derived from the top one."""
    possible_conditions: Tuple[ScoredCondition, ...]
    urgency_level: UrgencyLevel
    recommendations: Tuple[str, ...]
    actions: Tuple[str, ...]

    @property
    def top_condition(self) -> Optional[ScoredCondition]:
        return self.possible_conditions[0] if self.possible_conditions else None


@dataclass(frozen=True)
class TreatmentGuidance:
    """
    Guideline treatment for one condition, with state-driven precautions.

    Informational only: the engine never prescribes.
    """
    condition_id: str
    condition_name: str
    priority: str
    reference: str
    plans: Tuple[TreatmentPlan, ...]
    precautions: Tuple[str, ...] = ()
