from fastapi import APIRouter

from precast.api.v1.endpoints import maintenance, projects

api_router = APIRouter()
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["maintenance"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
