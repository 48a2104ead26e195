"""
Conversation State - Per-patient triage working state

Responsibilities:
- Store observed symptom tokens ("present")
- Store resolved question keys ("answered")
- Carry the category hint chosen at conversation start
- Serialize to and from plain JSON for external persistence

Design principles:
- Dumb container: no scoring, no question logic
- Owned by the caller, one instance per conversation
- Category hint is set once and never changes
- Each token holds a SET of markers

CRITICAL: Question keys and symptom tokens share one namespace
- 'chest_pain' is both a question key and a symptom token
- Answering the chest pain question can mark the symptom present AND the
  question answered; both facts must survive
- Never overwrite one marker with another:
    state.mark_present('chest_pain')
    state.mark_answered('chest_pain')
    state.markers_for('chest_pain')  # {'present', 'answered'}
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from symptom_triage.contracts import ANSWERED, PRESENT, VALID_MARKERS

logger = logging.getLogger(__name__)


class ConversationState:
    """Mutable triage state for a single conversation"""

    def __init__(self, category: Optional[str] = None,
                 markers: Optional[Dict[str, Any]] = None):
        """
        Initialize state

        Args:
            category: Optional category hint (immutable after creation)
            markers: Optional initial markers, token -> marker or iterable of markers

        Raises:
            ValueError: If a marker value is not 'present' or 'answered', or is
                not a string or list of strings
        """
        self._category = category
        # Insertion-ordered: token -> set of markers
        self._markers: Dict[str, Set[str]] = {}

        for token, values in (markers or {}).items():
            if isinstance(values, str):
                values = [values]
            if not isinstance(values, (list, tuple)) or not all(isinstance(m, str) for m in values):
                raise ValueError(
                    f"Markers for token {token!r} must be a string or list of strings, "
                    f"got {values!r}"
                )
            for marker in values:
                self._add_marker(token, marker)

    # ========================
    # Private Helpers
    # ========================

    def _add_marker(self, token: str, marker: str) -> None:
        if not isinstance(marker, str) or marker not in VALID_MARKERS:
            raise ValueError(
                f"Invalid marker '{marker}' for token '{token}'. "
                f"Expected one of: {sorted(VALID_MARKERS)}"
            )
        if not isinstance(token, str) or not token:
            raise ValueError(f"Token must be a non-empty string, got {token!r}")
        self._markers.setdefault(token, set()).add(marker)

    # ========================
    # Category
    # ========================

    @property
    def category(self) -> Optional[str]:
        """Category hint chosen at conversation start (read-only)"""
        return self._category

    # ========================
    # Mutation
    # ========================

    def mark_present(self, token: str) -> None:
        """Record an observed symptom or risk factor"""
        self._add_marker(token, PRESENT)

    def mark_answered(self, question_key: str) -> None:
        """Record that a question has been resolved"""
        self._add_marker(question_key, ANSWERED)

    # ========================
    # Queries
    # ========================

    def is_present(self, token: str) -> bool:
        return PRESENT in self._markers.get(token, ())

    def is_answered(self, question_key: str) -> bool:
        return ANSWERED in self._markers.get(question_key, ())

    def markers_for(self, token: str) -> Set[str]:
        """Copy of the markers recorded for token (empty set if none)"""
        return set(self._markers.get(token, ()))

    def answered_count(self) -> int:
        """Number of tokens marked 'answered'"""
        return sum(1 for markers in self._markers.values() if ANSWERED in markers)

    def answered_keys(self) -> List[str]:
        """Answered question keys in the order they were first recorded"""
        return [token for token, markers in self._markers.items() if ANSWERED in markers]

    def present_tokens(self) -> List[str]:
        """Present symptom tokens in the order they were first recorded"""
        return [token for token, markers in self._markers.items() if PRESENT in markers]

    def is_empty(self) -> bool:
        return not self._markers

    def __contains__(self, token: str) -> bool:
        return token in self._markers

    def __len__(self) -> int:
        return len(self._markers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConversationState):
            return NotImplemented
        return self._category == other._category and self._markers == other._markers

    def __repr__(self) -> str:
        return (
            f"ConversationState(category={self._category!r}, "
            f"present={self.present_tokens()}, answered={self.answered_keys()})"
        )

    # ========================
    # Copy / Serialization
    # ========================

    def copy(self) -> "ConversationState":
        """Independent copy (same category, same markers)"""
        clone = ConversationState(category=self._category)
        clone._markers = {token: set(markers) for token, markers in self._markers.items()}
        return clone

    def to_json(self) -> Dict[str, Any]:
        """
        Serialize to a JSON-safe dict.

        Marker sets become sorted lists; token order is preserved.

        Returns:
            dict: {'category': str | None, 'markers': {token: [markers]}}
        """
        return {
            'category': self._category,
            'markers': {token: sorted(markers) for token, markers in self._markers.items()},
        }

    @staticmethod
    def from_json(data: Dict[str, Any]) -> "ConversationState":
        """
        Restore from to_json() output.

        Args:
            data: Dict with optional 'category' and 'markers' keys

        Returns:
            ConversationState

        Raises:
            ValueError: If data is not a dict or contains invalid markers
        """
        if not isinstance(data, dict):
            raise ValueError(f"Conversation state must be dict, got {type(data).__name__}")

        markers = data.get('markers', {})
        if not isinstance(markers, dict):
            raise ValueError("Conversation state 'markers' must be a dict")

        category = data.get('category')
        if category is not None and not isinstance(category, str):
            raise ValueError("Conversation state 'category' must be a string or null")

        state = ConversationState(category=category, markers=markers)
        logger.debug(f"Restored conversation state with {len(state)} tokens")
        return state

    @classmethod
    def from_tokens(cls, present: Iterable[str] = (), answered: Iterable[str] = (),
                    category: Optional[str] = None) -> "ConversationState":
        """
        Build a state from token lists.

        Example:
            state = ConversationState.from_tokens(
                present=['fever', 'recent_travel'],
                answered=['fever_pattern'],
            )
        """
        state = cls(category=category)
        for token in present:
            state.mark_present(token)
        for key in answered:
            state.mark_answered(key)
        return state
