"""
Triage Catalog - Static knowledge base for the triage engine

Responsibilities:
- Load the Condition Catalog, Question Catalog and selection ruleset
- Convert raw JSON into frozen contract records
- Check cross-catalog consistency once, at load time
- Resolve category hints to canonical category ids

Design principles:
- Read-only after construction, safe to share across conversations
- Declaration order is preserved everywhere (it is the scoring tie-break)
- Fail fast: every consistency problem is collected and raised together

Files (under the data directory):
- conditions.json: conditions with symptom sets, risk factors, questions
- questions.json: question prompts, ordered choices, choice -> tokens
- ruleset.json: categories, fallback order, stop rules, scoring weights,
  urgency bands, fallback result
"""

import json
import logging
import threading
from dataclasses import fields
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from symptom_triage import config
from symptom_triage.contracts import (
    AdvicePair,
    CategorySpec,
    Condition,
    FallbackResult,
    PrecautionRule,
    QuestionSpec,
    ScoringRules,
    StopRules,
    TreatmentPlan,
    UrgencyBand,
    UrgencyLevel,
)

logger = logging.getLogger(__name__)

CONDITIONS_FILE = "conditions.json"
QUESTIONS_FILE = "questions.json"
RULESET_FILE = "ruleset.json"


class CatalogValidationError(ValueError):
    """Raised when catalog files reference each other inconsistently."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Catalog validation failed:\n  - " + "\n  - ".join(self.errors))


class TriageCatalog:
    """
    Typed, validated view over the three catalog files.

    Build from dicts (tests) or from a directory via TriageCatalog.load().
    """

    def __init__(self, conditions_data: dict, questions_data: dict, ruleset_data: dict):
        """
        Args:
            conditions_data: Parsed conditions.json
            questions_data: Parsed questions.json
            ruleset_data: Parsed ruleset.json

        Raises:
            CatalogValidationError: If the catalogs are inconsistent
        """
        errors: List[str] = []

        self.conditions: Dict[str, Condition] = self._parse_conditions(conditions_data, errors)
        self.questions: Dict[str, QuestionSpec] = self._parse_questions(questions_data, errors)
        self.unscored_findings: Set[str] = set(questions_data.get("unscored_findings", []))

        self.categories: Dict[str, CategorySpec] = self._parse_categories(ruleset_data, errors)
        self.fallback_priority: Tuple[str, ...] = tuple(ruleset_data.get("fallback_priority", []))
        self.last_resort_question: Optional[str] = ruleset_data.get("last_resort_question")
        self.stop_rules = self._parse_rules(StopRules, ruleset_data, "stop_rules", errors)
        self.scoring_rules = self._parse_rules(ScoringRules, ruleset_data, "scoring", errors)
        self.urgency_bands: Tuple[UrgencyBand, ...] = self._parse_urgency_bands(ruleset_data, errors)
        self.fallback_result: Optional[FallbackResult] = self._parse_fallback(ruleset_data, errors)
        self.precaution_rules: Tuple[PrecautionRule, ...] = self._parse_precautions(ruleset_data, errors)

        # alias (lowercase) -> category id
        self._category_lookup: Dict[str, str] = {}
        for category in self.categories.values():
            for name in (category.id, category.label) + category.aliases:
                normalized = name.strip().lower()
                owner = self._category_lookup.get(normalized)
                if owner is not None and owner != category.id:
                    errors.append(
                        f"Category alias '{name}' used by both '{owner}' and '{category.id}'"
                    )
                    continue
                self._category_lookup[normalized] = category.id

        errors.extend(self._check_consistency())

        if errors:
            raise CatalogValidationError(errors)

        unreachable = self.unreachable_tokens()
        if unreachable:
            logger.debug(
                f"{len(unreachable)} condition tokens have no question that records them: "
                f"{sorted(unreachable)}"
            )

        logger.info(
            f"Triage catalog loaded: {len(self.conditions)} conditions, "
            f"{len(self.questions)} questions, {len(self.categories)} categories"
        )

    @classmethod
    def load(cls, data_dir=None) -> "TriageCatalog":
        """
        Load and validate the catalog files from a directory.

        Args:
            data_dir: Directory with the three JSON files.
                Defaults to config.get_data_dir().

        Raises:
            FileNotFoundError: If a catalog file is missing
            CatalogValidationError: If the catalogs are inconsistent
        """
        base = Path(data_dir) if data_dir is not None else config.get_data_dir()

        loaded = []
        for filename in (CONDITIONS_FILE, QUESTIONS_FILE, RULESET_FILE):
            path = base / filename
            if not path.exists():
                raise FileNotFoundError(f"Catalog file not found: {path}")
            with open(path, 'r', encoding='utf-8') as f:
                loaded.append(json.load(f))

        logger.debug(f"Read catalog files from {base}")
        return cls(*loaded)

    # =========================================================================
    # Public API
    # =========================================================================

    def get_question(self, key: str) -> Optional[QuestionSpec]:
        """
        Look up a question by key.

        Returns None (and logs a warning) for unknown keys so selection
        can move on to the next key.
        """
        spec = self.questions.get(key)
        if spec is None:
            logger.warning(f"Unknown question key: {key}")
        return spec

    def get_condition(self, condition_id: str) -> Optional[Condition]:
        return self.conditions.get(condition_id)

    def resolve_category(self, hint: Optional[str]) -> Optional[str]:
        """
        Map a category hint to its canonical id.

        Accepts the id, the label or any alias, case-insensitively.
        Unknown or empty hints resolve to None (no category).
        """
        if hint is None:
            return None
        return self._category_lookup.get(str(hint).strip().lower())

    def category_questions(self, category_id: str) -> Tuple[str, ...]:
        category = self.categories.get(category_id)
        return category.questions if category else ()

    def iter_conditions(self):
        """Conditions in declaration order."""
        return iter(self.conditions.values())

    def scored_tokens(self) -> Set[str]:
        """Every token that contributes to some condition's score."""
        tokens = set()
        for condition in self.conditions.values():
            tokens.update(condition.primary, condition.secondary, condition.risk_factors)
        return tokens

    def referenced_tokens(self) -> Set[str]:
        """Scored tokens plus severe presentations (reference data, never scored)."""
        tokens = self.scored_tokens()
        for condition in self.conditions.values():
            tokens.update(condition.severe)
        return tokens

    def produced_tokens(self) -> Set[str]:
        """Every token some question choice records as present."""
        tokens = set()
        for spec in self.questions.values():
            for choice_tokens in spec.choice_tokens:
                tokens.update(choice_tokens)
        return tokens

    def unreachable_tokens(self) -> Set[str]:
        """
        Scored condition tokens that no question can produce.

        These stay in the vocabulary for callers that classify free text
        into tokens themselves.
        """
        return self.scored_tokens() - self.produced_tokens()

    # =========================================================================
    # Parsing
    # =========================================================================

    @staticmethod
    def _parse_conditions(data: dict, errors: List[str]) -> Dict[str, Condition]:
        conditions: Dict[str, Condition] = {}

        for i, raw in enumerate(data.get("conditions", [])):
            condition_id = raw.get("id")
            if not condition_id:
                errors.append(f"Condition at index {i} missing 'id'")
                continue
            if condition_id in conditions:
                errors.append(f"Duplicate condition id '{condition_id}'")
                continue

            symptoms = raw.get("symptoms", {})
            advice = tuple(
                AdvicePair(recommendation=a["recommendation"], action=a["action"])
                for a in raw.get("specific_advice", [])
            )
            conditions[condition_id] = Condition(
                id=condition_id,
                name=raw.get("name", condition_id),
                category=raw.get("category", ""),
                priority=raw.get("priority", ""),
                description=raw.get("description", ""),
                primary=tuple(symptoms.get("primary", [])),
                secondary=tuple(symptoms.get("secondary", [])),
                severe=tuple(symptoms.get("severe", [])),
                risk_factors=tuple(raw.get("risk_factors", [])),
                questions=tuple(raw.get("questions", [])),
                reference=raw.get("reference", ""),
                specific_advice=advice,
                treatment=TriageCatalog._parse_treatment(condition_id, raw, errors),
            )

        if not conditions:
            errors.append("Condition catalog is empty")
        return conditions

    @staticmethod
    def _parse_treatment(condition_id: str, raw: dict, errors: List[str]) -> Tuple[TreatmentPlan, ...]:
        plans = []
        for plan in raw.get("treatment", []):
            name = plan.get("name") if isinstance(plan, dict) else None
            guidance = plan.get("guidance") if isinstance(plan, dict) else None
            if not name or not isinstance(guidance, dict):
                errors.append(f"Condition '{condition_id}' has a treatment plan without name or guidance")
                continue
            plans.append(TreatmentPlan(
                name=name,
                guidance=tuple((field, str(text)) for field, text in guidance.items()),
            ))
        return tuple(plans)

    @staticmethod
    def _parse_questions(data: dict, errors: List[str]) -> Dict[str, QuestionSpec]:
        questions: Dict[str, QuestionSpec] = {}

        for i, raw in enumerate(data.get("questions", [])):
            key = raw.get("key")
            if not key:
                errors.append(f"Question at index {i} missing 'key'")
                continue
            if key in questions:
                errors.append(f"Duplicate question key '{key}'")
                continue

            choices = raw.get("choices", [])
            if not choices:
                errors.append(f"Question '{key}' has no choices")

            texts = []
            token_lists = []
            for j, choice in enumerate(choices):
                tokens = choice.get("tokens", [])
                if not tokens:
                    errors.append(f"Question '{key}' choice {j + 1} has no token mapping")
                texts.append(choice.get("text", ""))
                token_lists.append(tuple(tokens))

            questions[key] = QuestionSpec(
                key=key,
                question=raw.get("question", ""),
                choices=tuple(texts),
                choice_tokens=tuple(token_lists),
            )

        return questions

    @staticmethod
    def _parse_categories(data: dict, errors: List[str]) -> Dict[str, CategorySpec]:
        categories: Dict[str, CategorySpec] = {}

        for i, raw in enumerate(data.get("categories", [])):
            category_id = raw.get("id")
            if not category_id:
                errors.append(f"Category at index {i} missing 'id'")
                continue
            if category_id in categories:
                errors.append(f"Duplicate category id '{category_id}'")
                continue

            categories[category_id] = CategorySpec(
                id=category_id,
                label=raw.get("label", category_id),
                aliases=tuple(str(a) for a in raw.get("aliases", [])),
                questions=tuple(raw.get("questions", [])),
            )

        return categories

    @staticmethod
    def _parse_urgency_bands(data: dict, errors: List[str]) -> Tuple[UrgencyBand, ...]:
        bands = []
        for raw in data.get("urgency_bands", []):
            try:
                level = UrgencyLevel(raw.get("level"))
            except ValueError:
                errors.append(f"Unknown urgency level '{raw.get('level')}'")
                continue
            bands.append(UrgencyBand(
                level=level,
                min_confidence=int(raw.get("min_confidence", 0)),
                recommendation=raw.get("recommendation", ""),
                action=raw.get("action", ""),
            ))

        # Highest threshold first
        bands.sort(key=lambda b: b.min_confidence, reverse=True)
        if not bands or bands[-1].min_confidence > 0:
            errors.append("Urgency bands must include a band with min_confidence 0")
        return tuple(bands)

    @staticmethod
    def _parse_precautions(data: dict, errors: List[str]) -> Tuple[PrecautionRule, ...]:
        rules = []
        for i, raw in enumerate(data.get("treatment_precautions", [])):
            tokens = raw.get("tokens") if isinstance(raw, dict) else None
            text = raw.get("text") if isinstance(raw, dict) else None
            if not tokens or not text:
                errors.append(f"Treatment precaution at index {i} needs 'tokens' and 'text'")
                continue
            rules.append(PrecautionRule(tokens=tuple(tokens), text=text))
        return tuple(rules)

    @staticmethod
    def _parse_rules(rules_cls, data: dict, section: str, errors: List[str]):
        """Numeric rule block; unknown keys and non-integer values are errors."""
        raw = data.get(section, {})
        if not isinstance(raw, dict):
            errors.append(f"Ruleset '{section}' must be an object")
            return rules_cls()

        known = {f.name for f in fields(rules_cls)}
        values = {}
        for key, value in raw.items():
            if key not in known:
                errors.append(f"Unknown key '{key}' in ruleset '{section}'")
            elif isinstance(value, bool) or not isinstance(value, int):
                errors.append(f"Ruleset '{section}.{key}' must be an integer, got {value!r}")
            else:
                values[key] = value
        return rules_cls(**values)

    @staticmethod
    def _parse_fallback(data: dict, errors: List[str]) -> Optional[FallbackResult]:
        raw = data.get("fallback_result")
        if not raw:
            errors.append("Missing 'fallback_result' in ruleset")
            return None
        try:
            urgency = UrgencyLevel(raw.get("urgency", "routine"))
        except ValueError:
            errors.append(f"Unknown fallback urgency '{raw.get('urgency')}'")
            return None
        return FallbackResult(
            condition_name=raw.get("condition_name", ""),
            confidence=int(raw.get("confidence", 0)),
            urgency=urgency,
            recommendations=tuple(raw.get("recommendations", [])),
            actions=tuple(raw.get("actions", [])),
        )

    # =========================================================================
    # Consistency
    # =========================================================================

    def _check_consistency(self) -> List[str]:
        """
        Cross-catalog checks.

        Checks:
        - Category, fallback, last-resort and condition question keys exist
        - Every token a choice records is referenced by some condition or
          is declared in unscored_findings
        - unscored_findings does not shadow condition tokens
        - Treatment precautions only name tokens the catalogs know about
        """
        errors = []

        for category in self.categories.values():
            if not category.questions:
                errors.append(f"Category '{category.id}' has no questions")
            for key in category.questions:
                if key not in self.questions:
                    errors.append(f"Category '{category.id}' references unknown question '{key}'")

        for key in self.fallback_priority:
            if key not in self.questions:
                errors.append(f"Fallback priority references unknown question '{key}'")

        if self.last_resort_question and self.last_resort_question not in self.questions:
            errors.append(f"Last-resort question '{self.last_resort_question}' is not defined")

        for condition in self.conditions.values():
            for key in condition.questions:
                if key not in self.questions:
                    errors.append(f"Condition '{condition.id}' references unknown question '{key}'")

        referenced = self.referenced_tokens()
        for spec in self.questions.values():
            for choice, tokens in zip(spec.choices, spec.choice_tokens):
                for token in tokens:
                    if token not in referenced and token not in self.unscored_findings:
                        errors.append(
                            f"Question '{spec.key}' choice '{choice}' maps to token '{token}' "
                            f"that no condition references and is not an unscored finding"
                        )

        for token in sorted(self.unscored_findings & referenced):
            errors.append(f"Unscored finding '{token}' is referenced by a condition")

        for rule in self.precaution_rules:
            for token in rule.tokens:
                if token not in referenced and token not in self.unscored_findings:
                    errors.append(f"Treatment precaution '{rule.text}' uses unknown token '{token}'")

        return errors


_default_catalog: Optional[TriageCatalog] = None
_default_catalog_lock = threading.Lock()


def get_default_catalog() -> TriageCatalog:
    """Load the catalog from config.get_data_dir() once and reuse it."""
    global _default_catalog
    if _default_catalog is None:
        with _default_catalog_lock:
            # Another thread may have finished loading while we waited
            if _default_catalog is None:
                _default_catalog = TriageCatalog.load()
    return _default_catalog
