from fastapi import APIRouter

from app.api.v1 import coach, internal, programs

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(programs.router)
api_router.include_router(coach.router)
api_router.include_router(internal.router)
