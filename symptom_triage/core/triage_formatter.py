"""
Triage Formatter - Human-readable assessment text

Pure formatting of a TriageResult. No scoring or urgency logic lives here,
so the structured result can also be rendered elsewhere (JSON, UI).
"""

from symptom_triage.contracts import TriageResult

DISCLAIMER = (
    "Disclaimer: This assessment is for information only and is not a medical "
    "diagnosis. Please consult a qualified healthcare professional."
)


class TriageFormatter:
    """Formats a TriageResult as SMS/chat text."""

    bullet = "• "

    def format(self, result: TriageResult) -> str:
        """
        Format the result.

        Example output:
            Based on your symptoms, you may be experiencing:

            1. Malaria (85% likelihood)

            Urgency Level: EMERGENCY

            Recommendations:
            • Seek immediate medical attention
            ...
        """
        lines = ["Based on your symptoms, you may be experiencing:", ""]

        for rank, scored in enumerate(result.possible_conditions, start=1):
            lines.append(f"{rank}. {scored.name} ({round(scored.confidence)}% likelihood)")

        lines.append("")
        lines.append(f"Urgency Level: {result.urgency_level.value.upper()}")

        if result.recommendations:
            lines.append("")
            lines.append("Recommendations:")
            lines.extend(self.bullet + rec for rec in result.recommendations)

        if result.actions:
            lines.append("")
            lines.append("Actions:")
            lines.extend(self.bullet + action for action in result.actions)

        lines.append("")
        lines.append(DISCLAIMER)

        return "\n".join(lines)
