"""
Identifiers and output file names for triage conversations.
"""

import uuid
from datetime import datetime


def generate_conversation_id(short=True):
    """
    New conversation identifier.

    The short form (8 hex characters) is what SMS users see and what the
    persistence layer uses for directory names; pass short=False for a full
    32-character hex id.

        >>> len(generate_conversation_id())
        8
    """
    conversation_id = uuid.uuid4().hex
    if short:
        return conversation_id[:8]
    return conversation_id


def generate_output_filename(conversation_id, prefix="triage", extension="json"):
    """
    File name for a finished assessment, e.g.
    'triage_20250301_091500_a3f7e2b9.json'
    """
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{stamp}_{conversation_id}.{extension}"
