"""
Console Test Harness for the Symptom Triage DialogueManager

Simple console loop over handle_turn(), mirroring an SMS conversation.
"""

import logging
import sys
from pathlib import Path

from symptom_triage import config
from symptom_triage.core.catalog import TriageCatalog
from symptom_triage.core.dialogue_manager import DialogueManager
from symptom_triage.core.json_formatter import JSONFormatter
from symptom_triage.persistence import ConversationPersistence
from symptom_triage.utils.helpers import generate_output_filename

logger = logging.getLogger(__name__)


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def print_debug_info(turn_result):
    """Print debug information from TurnResult"""
    debug = turn_result.debug
    if not debug:
        return

    print("-" * 60)
    if 'applied_tokens' in debug:
        print(f"Recorded tokens: {debug['applied_tokens']}")
    if 'source' in debug:
        print(f"Next question from: {debug['source']}")
    if 'invalid_reply' in debug:
        print(f"Rejected reply: {debug['invalid_reply']!r}")
    if 'completion_reason' in debug:
        print(f"Completion reason: {debug['completion_reason']}")
    print("-" * 60)


def main():
    """Run console conversation"""
    config.configure_logging()

    print_separator()
    print("SYMPTOM TRIAGE - CONSOLE TEST")
    print_separator()

    try:
        catalog = TriageCatalog.load()
        dm = DialogueManager.from_catalog(catalog)
        persistence = ConversationPersistence(str(config.get_output_dir()))
    except (OSError, ValueError) as e:
        print(f"\nFailed to initialize: {e}")
        return 1

    print("Type 'quit', 'exit', or 'stop' to end early\n")

    # State is external - we hold it in this loop
    state_snapshot = None

    while True:
        try:
            prompt = "Category" if state_snapshot is None else ""
            user_input = input(f"{prompt}> ").strip()

            turn_result = dm.handle_turn(user_input=user_input, state_snapshot=state_snapshot)

            state_snapshot = turn_result.state.to_json()
            persistence.save_turn(turn_result.state.conversation_id, turn_result.state)

            print(f"\nSystem: {turn_result.system_output}\n")

            metadata = turn_result.turn_metadata
            print(f"[Turn {metadata['turn_count']}, answered {metadata['answered_count']}]")
            print_debug_info(turn_result)

            if turn_result.assessment_complete:
                print_separator()
                print("CONVERSATION COMPLETE")
                print_separator()

                if turn_result.assessment is not None:
                    conversation_id = metadata['conversation_id']
                    output_path = Path(config.get_output_dir()) / generate_output_filename(conversation_id)
                    saved = JSONFormatter.save_to_file(turn_result.assessment, str(output_path))
                    print(f"\nAssessment saved: {saved}")
                break

        except (KeyboardInterrupt, EOFError):
            print("\n\nConversation interrupted by user")
            break

        except ValueError as e:
            logger.error(f"Turn failed: {e}")
            print(f"\nERROR: {e}")
            break

    print_separator()
    print("Console test complete")
    print_separator()
    return 0


if __name__ == '__main__':
    sys.exit(main())
