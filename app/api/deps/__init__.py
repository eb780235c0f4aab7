"""API dependencies - re-exports from submodules."""

from .auth import (
    CurrentUser,
    DbSession,
    Principal,
    RlsSession,
    get_current_user,
    get_db_with_rls,
    get_jwks,
    get_signing_key,
    principal_from_claims,
    security,
)
from .pipeline import PipelineDep, get_pipeline

__all__ = [
    # Auth
    "security",
    "get_jwks",
    "get_signing_key",
    "get_current_user",
    "get_db_with_rls",
    "principal_from_claims",
    "Principal",
    "DbSession",
    "CurrentUser",
    "RlsSession",
    # Pipeline
    "get_pipeline",
    "PipelineDep",
]
