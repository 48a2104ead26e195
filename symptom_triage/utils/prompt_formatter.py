"""
Prompt Formatter - SMS/chat text for questions and menus

Stateless formatting only. Patients reply with a number, so every
prompt lists its choices as (1) ... (N).
"""

from symptom_triage.contracts import QuestionOutput

CHOICE_INSTRUCTION = "Please reply with the number of your choice:"

CATEGORY_INTRO = (
    "To help me assess your situation, I need to ask you a few specific questions "
    "about your symptoms. Please answer as accurately as possible."
)

EMERGENCY_ADVICE = (
    "If your condition worsens or you need immediate help, please contact emergency "
    "services or go to the nearest hospital."
)

FOLLOW_UP_OPTIONS = (
    "For follow-up care:\n"
    "- Reply 'consultation' to schedule a general consultation\n"
    "- Reply 'appointment' to view available appointment slots\n"
    "- Reply 'exit' to opt out of this conversation"
)


def format_choices(choices) -> str:
    return "\n".join(f"({i}) {choice}" for i, choice in enumerate(choices, start=1))


def format_question_prompt(question: QuestionOutput) -> str:
    """
    Question text followed by numbered choices.

    Example:
        How long have you had the fever?

        Please reply with the number of your choice:
        (1) Less than 3 days
        (2) 3-7 days
    """
    if not question.choices:
        return question.question
    return f"{question.question}\n\n{CHOICE_INSTRUCTION}\n{format_choices(question.choices)}"


def format_category_menu(categories) -> str:
    """
    Menu of symptom categories.

    Args:
        categories: Iterable of CategorySpec in display order
    """
    labels = [category.label for category in categories]
    return (
        "What kind of symptoms are you experiencing?\n\n"
        f"{CHOICE_INSTRUCTION}\n{format_choices(labels)}"
    )


def format_category_selected(label: str, question: QuestionOutput) -> str:
    return f"You selected: {label}.\n\n{CATEGORY_INTRO}\n\n{format_question_prompt(question)}"


def format_invalid_choice(question: QuestionOutput) -> str:
    """Re-prompt after a reply that is not a valid choice number."""
    return (
        f"Sorry, I didn't understand that. Please reply with a number from 1 to "
        f"{len(question.choices)}.\n\n{format_question_prompt(question)}"
    )


def format_assessment(message: str, assessment_text: str) -> str:
    """Closing message, assessment, emergency advice and follow-up options."""
    return f"{message}\n\n{assessment_text}\n\n{EMERGENCY_ADVICE}\n\n{FOLLOW_UP_OPTIONS}"
