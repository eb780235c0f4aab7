from app.domain.generation_job_operations import generation_job_ops
from app.domain.recommendation_cache_operations import recommendation_cache_ops

__all__ = [
    "generation_job_ops",
    "recommendation_cache_ops",
]
