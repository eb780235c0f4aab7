"""Claude-backed coach recommendation generator."""

from typing import Any

from app.config import settings
from app.core.exceptions import GenerationError
from app.schemas.coach import CoachRecommendation
from app.services.ai.base import BaseGenerator, parse_json_object

_TREND_LINES = (
    ("workout_sessions_change", "Workout sessions", ""),
    ("run_sessions_change", "Run sessions", ""),
    ("avg_workout_duration_change", "Average workout length", " min"),
)


class CoachRecommendationGenerator(BaseGenerator[dict[str, Any], dict[str, Any]]):
    """Turns a weekly activity context into a short coaching recommendation."""

    max_tokens: int = 800

    def __init__(self, api_key: str | None = None, model: str | None = None):
        super().__init__(api_key=api_key, model=model or settings.coach_model)

    def get_system_prompt(self) -> str:
        return """You are a supportive, data-driven fitness coach.

TASK: Based on the athlete's recent training activity, give one focused recommendation for the coming days.

STYLE:
- Reference the numbers you were given
- Be specific and actionable
- No medical advice

OUTPUT: Reply with ONE JSON object and nothing else:
{"headline": str, "summary": str, "action_items": [str], "focus_area": str}"""

    def format_input(self, input_data: dict[str, Any]) -> str:
        lines = [
            f"Period: {input_data.get('period', 'current')}",
            f"Goal: {input_data.get('fitness_goal') or 'General fitness'}",
            f"Experience: {input_data.get('experience_level') or 'Not specified'}",
            f"Workout sessions: {input_data.get('workout_sessions', 0)}",
            f"Run sessions: {input_data.get('run_sessions', 0)}",
            f"Workout days this week: {input_data.get('workout_days_this_week', 0)}",
            f"Workout days last week: {input_data.get('workout_days_last_week', 0)}",
        ]
        if input_data.get("avg_workout_minutes") is not None:
            lines.append(f"Average workout length: {input_data['avg_workout_minutes']} min")
        if input_data.get("focus_muscle_groups"):
            lines.append(f"Focus muscle groups: {', '.join(input_data['focus_muscle_groups'])}")
        for field, label, unit in _TREND_LINES:
            if input_data.get(field) is not None:
                lines.append(f"{label} vs last week: {input_data[field]:+g}{unit}")
        return "\n".join(lines)

    def parse_output(self, response_text: str) -> dict[str, Any]:
        data = parse_json_object(response_text)
        try:
            return CoachRecommendation.model_validate(data).model_dump()
        except ValueError as e:
            raise GenerationError(
                "Recommendation did not match the expected shape", code="invalid_output"
            ) from e
