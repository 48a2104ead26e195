"""
Dialogue Manager - Triage conversation orchestration (Functional Core)

Responsibilities:
- Category selection on the first turn
- Question-answer loop over numbered replies
- Re-prompting on invalid replies
- Final assessment (text + structured payload)

Design principles:
- Ephemeral per turn (no conversation state held between turns)
- Functional core with serialized snapshot in/out
- Thin orchestration layer (selection, scoring, mapping live in their modules)
- Invalid replies never mutate the conversation state

Snapshot structure (plain JSON, carried by the caller):
{
    'conversation_id': str,
    'turn_count': int,
    'category': str | None,
    'markers': {token: ['answered', 'present']},
    'pending_question': {'key': str, 'source': str} | None,
    'awaiting_category': bool,
    'complete': bool
}
"""

import logging
from typing import Optional, Dict, Any

from symptom_triage.commands import (
    Command,
    FinalizeTriage,
    StartTriage,
    TriageSnapshot,
    UserReply,
)
from symptom_triage.contracts import AssessmentComplete, QuestionOutput
from symptom_triage.core.answer_mapper import AnswerMapper, InvalidChoice
from symptom_triage.core.conversation_state import ConversationState
from symptom_triage.core.json_formatter import JSONFormatter
from symptom_triage.core.question_selector import QuestionSelector
from symptom_triage.core.scoring_engine import ScoringEngine
from symptom_triage.core.triage_formatter import TriageFormatter
from symptom_triage.results import FinalAssessment, IllegalCommand, TurnResult
from symptom_triage.utils import prompt_formatter
from symptom_triage.utils.helpers import generate_conversation_id

logger = logging.getLogger(__name__)


class DialogueManager:
    """
    Orchestrates a symptom triage conversation

    Functional core design:
    - Catalog and stateless modules cached, conversation state external
    - handle_turn() transforms snapshot deterministically
    - handle() is the command interface used by the web and console fronts
    """

    # Commands that trigger early exit
    EXIT_COMMANDS = {"quit", "exit", "stop"}

    def __init__(self, catalog, question_selector, scoring_engine, answer_mapper,
                 triage_formatter, json_formatter):
        """
        Initialize Dialogue Manager with stateless module instances

        Args:
            catalog: TriageCatalog (read-only, shared)
            question_selector: QuestionSelector instance
            scoring_engine: ScoringEngine instance
            answer_mapper: AnswerMapper instance
            triage_formatter: TriageFormatter instance
            json_formatter: JSONFormatter instance

        Raises:
            TypeError: If any required module is missing or wrong type
        """
        self._validate_modules(question_selector, scoring_engine, answer_mapper,
                               triage_formatter, json_formatter)

        self.catalog = catalog
        self.selector = question_selector
        self.scoring_engine = scoring_engine
        self.mapper = answer_mapper
        self.triage_formatter = triage_formatter
        self.json_formatter = json_formatter

        logger.info("Dialogue Manager initialized (functional core)")

    @classmethod
    def from_catalog(cls, catalog) -> "DialogueManager":
        """Wire the default module set around a catalog."""
        scoring_engine = ScoringEngine(catalog)
        return cls(
            catalog=catalog,
            question_selector=QuestionSelector(catalog, scoring_engine),
            scoring_engine=scoring_engine,
            answer_mapper=AnswerMapper(catalog),
            triage_formatter=TriageFormatter(),
            json_formatter=JSONFormatter(),
        )

    def _validate_modules(self, question_selector, scoring_engine, answer_mapper,
                          triage_formatter, json_formatter):
        """Validate module interfaces"""
        required = [
            (question_selector, 'question_selector', 'get_next_question'),
            (question_selector, 'question_selector', 'build_question'),
            (scoring_engine, 'scoring_engine', 'score'),
            (scoring_engine, 'scoring_engine', 'treatment_recommendations'),
            (answer_mapper, 'answer_mapper', 'apply_answer'),
            (triage_formatter, 'triage_formatter', 'format'),
            (json_formatter, 'json_formatter', 'format_result'),
        ]
        for module, name, method in required:
            if not callable(getattr(module, method, None)):
                raise TypeError(f"{name} must have callable {method}() method")

    # =========================================================================
    # Command interface
    # =========================================================================

    def handle(self, command: Command):
        """
        Process a command

        Returns:
            TurnResult for StartTriage / UserReply
            FinalAssessment for FinalizeTriage
            IllegalCommand for invalid lifecycle transitions
        """
        if isinstance(command, StartTriage):
            return self.handle_turn(command.message or "", None)

        if isinstance(command, UserReply):
            snapshot = command.state.to_json()
            if snapshot.get('complete'):
                return IllegalCommand(
                    reason="Conversation is already complete",
                    command_type=type(command).__name__,
                )
            return self.handle_turn(command.user_input, snapshot)

        if isinstance(command, FinalizeTriage):
            return self._finalize(command)

        return IllegalCommand(
            reason=f"Unknown command type: {type(command).__name__}",
            command_type=type(command).__name__,
        )

    # =========================================================================
    # Functional core
    # =========================================================================

    def handle_turn(
        self,
        user_input: str,
        state_snapshot: Optional[Dict[str, Any]] = None
    ) -> TurnResult:
        """
        Process a single turn of conversation

        Args:
            user_input: Patient's reply text
            state_snapshot: Snapshot from the previous TurnResult, None for first turn

        Returns:
            TurnResult with the next prompt and the updated snapshot

        Raises:
            ValueError: If the snapshot is malformed or the conversation is complete
        """
        user_input = user_input or ""

        if state_snapshot is None:
            conversation_id = generate_conversation_id(short=True)
            logger.info(f"Started conversation {conversation_id}")
            return self._process_category_selection(
                user_input, conversation_id, turn_count=1
            )

        conversation_id, turn_count, state, pending = self._restore(state_snapshot)
        if state_snapshot.get('complete'):
            raise ValueError(f"Conversation {conversation_id} is already complete")
        turn_count += 1

        if user_input.strip().lower() in self.EXIT_COMMANDS:
            logger.info(f"Conversation {conversation_id} ended by user")
            return self._build_turn_result(
                system_output="Conversation ended by user",
                conversation_id=conversation_id,
                turn_count=turn_count,
                state=state,
                pending=None,
                awaiting_category=False,
                complete=True,
                debug={'exit_command': True},
            )

        if state_snapshot.get('awaiting_category', False):
            return self._process_category_selection(user_input, conversation_id, turn_count)

        return self._process_answer(user_input, conversation_id, turn_count, state, pending)

    def _process_category_selection(self, user_input: str, conversation_id: str,
                                    turn_count: int) -> TurnResult:
        category_id = self.catalog.resolve_category(user_input)

        if category_id is None:
            if user_input.strip():
                logger.debug(f"Unrecognized category reply '{user_input}'")
            return self._build_turn_result(
                system_output=prompt_formatter.format_category_menu(self.catalog.categories.values()),
                conversation_id=conversation_id,
                turn_count=turn_count,
                state=ConversationState(),
                pending=None,
                awaiting_category=True,
                complete=False,
                debug={'category': None},
            )

        state = ConversationState(category=category_id)
        step = self.selector.get_next_question(state)
        label = self.catalog.categories[category_id].label
        logger.info(f"Conversation {conversation_id} category: {category_id}")

        if isinstance(step, AssessmentComplete):
            return self._complete(step, conversation_id, turn_count, state, {'category': category_id})

        return self._build_turn_result(
            system_output=prompt_formatter.format_category_selected(label, step),
            conversation_id=conversation_id,
            turn_count=turn_count,
            state=state,
            pending=step,
            awaiting_category=False,
            complete=False,
            debug={'category': category_id, 'source': step.source},
        )

    def _process_answer(self, user_input: str, conversation_id: str, turn_count: int,
                        state: ConversationState,
                        pending: Optional[QuestionOutput]) -> TurnResult:
        debug: Dict[str, Any] = {}

        if pending is not None:
            try:
                outcome = self.mapper.apply_answer(state, pending.key, user_input)
            except InvalidChoice as e:
                logger.warning(f"Invalid reply in {conversation_id}: {e}")
                return self._build_turn_result(
                    system_output=prompt_formatter.format_invalid_choice(pending),
                    conversation_id=conversation_id,
                    turn_count=turn_count,
                    state=state,
                    pending=pending,
                    awaiting_category=False,
                    complete=False,
                    debug={'invalid_reply': user_input, 'question_key': pending.key},
                )
            debug['answered'] = outcome.question_key
            debug['applied_tokens'] = list(outcome.tokens)

        step = self.selector.get_next_question(state)

        if isinstance(step, AssessmentComplete):
            return self._complete(step, conversation_id, turn_count, state, debug)

        debug['source'] = step.source
        return self._build_turn_result(
            system_output=prompt_formatter.format_question_prompt(step),
            conversation_id=conversation_id,
            turn_count=turn_count,
            state=state,
            pending=step,
            awaiting_category=False,
            complete=False,
            debug=debug,
        )

    def _complete(self, step: AssessmentComplete, conversation_id: str, turn_count: int,
                  state: ConversationState, debug: Dict[str, Any]) -> TurnResult:
        result = self.scoring_engine.score(state)
        assessment_text = self.triage_formatter.format(result)
        assessment = self.structured_assessment(result, conversation_id, state)

        logger.info(
            f"Conversation {conversation_id} complete ({step.reason}): "
            f"{result.urgency_level.value}"
        )

        debug = dict(debug, completion_reason=step.reason)
        return self._build_turn_result(
            system_output=prompt_formatter.format_assessment(step.message, assessment_text),
            conversation_id=conversation_id,
            turn_count=turn_count,
            state=state,
            pending=None,
            awaiting_category=False,
            complete=True,
            debug=debug,
            assessment=assessment,
        )

    def _finalize(self, command: FinalizeTriage):
        try:
            conversation_id, _, state, _ = self._restore(command.state.to_json())
        except ValueError as e:
            return IllegalCommand(reason=str(e), command_type=type(command).__name__)

        if state.answered_count() == 0:
            return IllegalCommand(
                reason="No questions answered yet",
                command_type=type(command).__name__,
            )

        result = self.scoring_engine.score(state)
        return FinalAssessment(
            conversation_id=conversation_id,
            assessment_text=self.triage_formatter.format(result),
            assessment=self.structured_assessment(result, conversation_id, state),
            answered_count=state.answered_count(),
        )

    def structured_assessment(self, result, conversation_id: str,
                               state: ConversationState) -> Dict[str, Any]:
        """JSON payload, with guideline treatment for the top real condition."""
        treatment = None
        top = result.top_condition
        if top is not None and top.condition is not None:
            treatment = self.scoring_engine.treatment_recommendations(top.condition.id, state)
        return self.json_formatter.format_result(result, conversation_id, state, treatment)

    # =========================================================================
    # Snapshot handling
    # =========================================================================

    def _restore(self, snapshot: Dict[str, Any]):
        """
        Unpack a snapshot

        Returns:
            tuple: (conversation_id, turn_count, state, pending QuestionOutput or None)

        Raises:
            ValueError: If snapshot is malformed
        """
        if not isinstance(snapshot, dict):
            raise ValueError(f"state_snapshot must be dict, got {type(snapshot).__name__}")

        conversation_id = snapshot.get('conversation_id')
        if not isinstance(conversation_id, str) or not conversation_id:
            raise ValueError("state_snapshot missing conversation_id")

        turn_count = snapshot.get('turn_count')
        if not isinstance(turn_count, int) or turn_count < 0:
            raise ValueError("state_snapshot missing or invalid turn_count")

        state = ConversationState.from_json(snapshot)

        pending = None
        pending_data = snapshot.get('pending_question')
        if pending_data is not None and not isinstance(pending_data, dict):
            raise ValueError("state_snapshot 'pending_question' must be an object or null")
        if pending_data:
            key = pending_data.get('key')
            source = pending_data.get('source', '')
            if not isinstance(key, str) or not isinstance(source, str):
                raise ValueError("state_snapshot 'pending_question' needs string key and source")
            pending = self.selector.build_question(key, source)
            if pending is None:
                raise ValueError(f"Unknown pending question: {key}")

        return conversation_id, turn_count, state, pending

    def _build_turn_result(
        self,
        system_output: str,
        conversation_id: str,
        turn_count: int,
        state: ConversationState,
        pending: Optional[QuestionOutput],
        awaiting_category: bool,
        complete: bool,
        debug: Dict[str, Any],
        assessment: Optional[Dict[str, Any]] = None
    ) -> TurnResult:
        snapshot = state.to_json()
        snapshot['conversation_id'] = conversation_id
        snapshot['turn_count'] = turn_count
        snapshot['pending_question'] = (
            {'key': pending.key, 'source': pending.source} if pending else None
        )
        snapshot['awaiting_category'] = awaiting_category
        snapshot['complete'] = complete

        return TurnResult(
            system_output=system_output,
            state=TriageSnapshot.from_json(snapshot),
            debug=debug,
            turn_metadata={
                'turn_count': turn_count,
                'conversation_id': conversation_id,
                'question_key': pending.key if pending else None,
                'answered_count': state.answered_count(),
            },
            assessment_complete=complete,
            assessment=assessment,
        )
