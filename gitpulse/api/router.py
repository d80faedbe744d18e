from fastapi import APIRouter

from gitpulse.api.v1 import activities, auth, orgs, teams

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth.router)
api_router.include_router(orgs.router)
api_router.include_router(activities.router)
api_router.include_router(teams.router)
