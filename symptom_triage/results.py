"""
Result types returned by DialogueManager.handle()

These are the ONLY return types from the command handler.
"""

from dataclasses import dataclass
from typing import Dict, Any

from symptom_triage.commands import TriageSnapshot


@dataclass(frozen=True)
class TurnResult:
    """
    Successful turn processing result.

    Returned by: StartTriage, UserReply

    Attributes:
        system_output: Text to send to the patient (question or message)
        state: Opaque snapshot envelope for the next turn
        debug: Debug information (selection source, applied tokens, etc.)
        turn_metadata: Turn-level metadata (turn_count, question_key, etc.)
        assessment_complete: Whether the conversation is finished
        assessment: Structured triage payload when complete, else None
    """
    system_output: str
    state: TriageSnapshot
    debug: Dict[str, Any]
    turn_metadata: Dict[str, Any]
    assessment_complete: bool
    assessment: Dict[str, Any] | None = None


@dataclass(frozen=True)
class FinalAssessment:
    """
    Final outputs for a conversation.

    Returned by: FinalizeTriage

    Attributes:
        conversation_id: Conversation identifier
        assessment_text: Formatted triage text
        assessment: Structured triage payload (JSONFormatter output)
        answered_count: Number of questions answered
    """
    conversation_id: str
    assessment_text: str
    assessment: Dict[str, Any]
    answered_count: int


@dataclass(frozen=True)
class IllegalCommand:
    """
    Command rejected by the manager (invalid lifecycle transition).

    Examples:
    - UserReply after the conversation ended
    - FinalizeTriage before any question was answered
    - Unknown command type

    Attributes:
        reason: Human-readable explanation
        command_type: Name of rejected command type
    """
    reason: str
    command_type: str
