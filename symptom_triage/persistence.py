"""
Per-turn conversation snapshots on disk.

Each turn of a triage conversation is written once and never rewritten, so the
directory doubles as an audit trail. The newest file is always a complete
snapshot, which lets the HTTP front resume a conversation from its id alone.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from symptom_triage.commands import TriageSnapshot

logger = logging.getLogger(__name__)


class ConversationPersistence:
    """
    Stores TriageSnapshots as numbered JSON files.

    Layout:
        <base_dir>/CONV-<id>/CONV-<id>_TURN-001.json
        <base_dir>/CONV-<id>/CONV-<id>_TURN-002.json

    Files are opened in exclusive-create mode; a second write for the same
    turn number fails instead of replacing the first.
    """

    PREFIX = "CONV"

    def __init__(self, base_dir: str = "outputs/conversations"):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Conversation files under {self.base_dir}")

    def _conversation_dir(self, conversation_id: str) -> Path:
        if not conversation_id or any(sep in conversation_id for sep in ('/', '\\', '..')):
            raise ValueError(f"Invalid conversation id: {conversation_id!r}")
        return self.base_dir / f"{self.PREFIX}-{conversation_id}"

    def _turn_path(self, conversation_id: str, turn_count: int) -> Path:
        name = f"{self.PREFIX}-{conversation_id}_TURN-{turn_count:03d}.json"
        return self._conversation_dir(conversation_id) / name

    def _turn_files(self, conversation_id: str) -> List[Path]:
        conv_dir = self._conversation_dir(conversation_id)
        if not conv_dir.is_dir():
            return []
        # Zero-padded turn numbers sort by name
        return sorted(conv_dir.glob(f"{self.PREFIX}-{conversation_id}_TURN-*.json"))

    @staticmethod
    def _read(path: Path) -> TriageSnapshot:
        with open(path, 'r', encoding='utf-8') as f:
            return TriageSnapshot.from_json(json.load(f))

    def save_turn(self, conversation_id: str, state: TriageSnapshot) -> str:
        """
        Write the snapshot for state.turn_count.

        Returns:
            str: Absolute path of the new file

        Raises:
            FileExistsError: The turn was already saved (double submit or a
                stale snapshot replayed by the client)
            ValueError: conversation_id is empty or contains a path separator
        """
        path = self._turn_path(conversation_id, state.turn_count)
        path.parent.mkdir(exist_ok=True)

        try:
            with open(path, 'x', encoding='utf-8') as f:
                json.dump(state.to_json(), f, indent=2, ensure_ascii=False)
        except FileExistsError:
            logger.warning(f"Turn {state.turn_count} of {conversation_id} already saved")
            raise FileExistsError(
                f"Turn {state.turn_count} already saved for {conversation_id}: {path}"
            ) from None

        logger.info(f"Saved turn {state.turn_count} for {conversation_id}")
        return str(path.absolute())

    def load_turn(self, conversation_id: str, turn_count: int) -> Optional[TriageSnapshot]:
        """Snapshot of one specific turn, or None if it was never saved."""
        path = self._turn_path(conversation_id, turn_count)
        if not path.exists():
            return None
        return self._read(path)

    def load_latest_turn(self, conversation_id: str) -> Optional[TriageSnapshot]:
        """Most recent snapshot, or None for an unknown conversation."""
        turn_files = self._turn_files(conversation_id)
        if not turn_files:
            logger.warning(f"No saved turns for {conversation_id}")
            return None

        logger.debug(f"Resuming {conversation_id} from {turn_files[-1].name}")
        return self._read(turn_files[-1])

    def conversation_exists(self, conversation_id: str) -> bool:
        return bool(self._turn_files(conversation_id))

    def get_turn_count(self, conversation_id: str) -> int:
        """Number of saved turns (0 for an unknown conversation)."""
        return len(self._turn_files(conversation_id))
