"""Claude-backed training program generator.

Consumes a job's input snapshot and returns the program as a dict; the
worker validates the shape against TrainingProgram.
"""

from typing import Any

from app.config import settings
from app.services.ai.base import BaseGenerator, parse_json_object

_OPTIONAL_FIELDS = (
    ("session_minutes", "Session length (minutes)"),
    ("experience_level", "Experience level"),
    ("sport_details", "Sport details"),
    ("exercise_preferences", "Exercise preferences"),
    ("injuries", "Injuries / limitations"),
    ("squat_1rm", "Squat 1RM"),
    ("bench_1rm", "Bench press 1RM"),
    ("deadlift_1rm", "Deadlift 1RM"),
    ("overhead_press_1rm", "Overhead press 1RM"),
    ("strength_assessment", "1RM source"),
)


class ProgramGenerator(BaseGenerator[dict[str, Any], dict[str, Any]]):
    """Generates a periodized training program from onboarding answers."""

    max_tokens: int = 8000

    def __init__(self, api_key: str | None = None, model: str | None = None):
        super().__init__(api_key=api_key, model=model or settings.program_model)

    def get_system_prompt(self) -> str:
        return """You are an evidence-based strength and conditioning coach.

TASK: Design a training program for the athlete described by the user.

OUTPUT: Reply with ONE JSON object and nothing else, shaped as:
{
  "program_name": str,
  "duration_weeks": int,
  "weekly_schedule": [
    {"day": str, "focus": str,
     "exercises": [{"name": str, "sets": int, "reps": str,
                    "rest_seconds": int, "rpe": number, "notes": str}]}
  ],
  "progression": str,
  "coach_notes": str
}
The weekly_schedule must contain exactly one entry per training day."""

    def format_input(self, input_data: dict[str, Any]) -> str:
        unit = input_data.get("weight_unit", "kg")
        lines = [
            f"Goal: {input_data['goal']}",
            f"Training days per week: {input_data['days']}",
            f"Weight unit: {unit}",
        ]

        equipment = input_data.get("equipment") or []
        lines.append(f"Equipment: {', '.join(equipment) if equipment else 'not specified'}")

        for key, label in _OPTIONAL_FIELDS:
            value = input_data.get(key)
            if value is not None:
                lines.append(f"{label}: {value}")

        if input_data.get("is_free_trial"):
            lines.append("Scope: free trial, keep the program to 4 weeks")

        return "\n".join(lines)

    def parse_output(self, response_text: str) -> dict[str, Any]:
        return parse_json_object(response_text)
