"""
Commands accepted by DialogueManager.handle() and the snapshot they carry.

The manager keeps nothing between turns: each command brings the
TriageSnapshot returned by the previous one.
"""

from dataclasses import dataclass
from typing import Dict, Any
import copy


@dataclass(frozen=True)
class TriageSnapshot:
    """
    Sealed conversation snapshot passed between turns.

    Only DialogueManager reads _data. Callers store it, send it over HTTP or
    persist it, and hand it back unchanged; the data is copied on the way in
    and on the way out.
    """
    _data: Dict[str, Any]

    @property
    def turn_count(self) -> int:
        """Turn number, exposed for persistence file naming."""
        return self._data.get('turn_count', 0)

    @property
    def conversation_id(self) -> str:
        return self._data.get('conversation_id', '')

    def to_json(self) -> dict:
        """Plain dict copy, safe to serialize or modify."""
        return copy.deepcopy(self._data)

    @staticmethod
    def from_json(data: dict) -> "TriageSnapshot":
        """
        Deserialize from JSON dict.

        Deep copies so no external reference can mutate the envelope.

        Raises:
            ValueError: If data is not a dict
        """
        if not isinstance(data, dict):
            raise ValueError(f"Snapshot must be dict, got {type(data).__name__}")
        return TriageSnapshot(_data=copy.deepcopy(data))


# Commands

@dataclass(frozen=True)
class StartTriage:
    """
    Begin a new conversation.

    message is the patient's first message. If it names a category
    ('2', 'respiratory', 'cough') the first question is asked right away,
    otherwise the category menu is shown.
    Returns: TurnResult with first prompt + initial snapshot.
    """
    message: str = ""


@dataclass(frozen=True)
class UserReply:
    """
    Process the patient's reply for the current turn.

    Requires the snapshot returned by the previous turn.
    Returns: TurnResult with next prompt + updated snapshot.
    """
    user_input: str
    state: TriageSnapshot


@dataclass(frozen=True)
class FinalizeTriage:
    """
    Produce the final assessment for the conversation.

    Valid once the conversation is complete, or early when at least one
    question has been answered.
    Returns: FinalAssessment.
    """
    state: TriageSnapshot


Command = StartTriage | UserReply | FinalizeTriage
