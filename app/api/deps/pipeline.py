"""Pipeline dependency for route handlers."""

from typing import Annotated

from fastapi import Depends

from app.services.pipeline import Pipeline, get_pipeline

PipelineDep = Annotated[Pipeline, Depends(get_pipeline)]
