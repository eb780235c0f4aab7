"""Claude-backed generators consumed by the job pipeline and the coach cache.

Quick start:
    from app.services.ai import ProgramGenerator

    program = await ProgramGenerator().generate({"goal": "strength", "days": 4})
"""

from .base import BaseGenerator, parse_json_object
from .coach_generator import CoachRecommendationGenerator
from .program_generator import ProgramGenerator

__all__ = [
    "BaseGenerator",
    "parse_json_object",
    "CoachRecommendationGenerator",
    "ProgramGenerator",
]
