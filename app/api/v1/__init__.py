from app.api.v1 import coach, internal, programs

__all__ = [
    "programs",
    "coach",
    "internal",
]
