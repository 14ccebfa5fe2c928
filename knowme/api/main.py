from fastapi import APIRouter

from .endpoints.auth import router as auth_router
from .endpoints.deck import router as deck_router
from .endpoints.groups import router as groups_router
from .endpoints.health import router as health_router
from .endpoints.profiles import router as profiles_router
from .endpoints.ranking import router as ranking_router

api_router = APIRouter()


@api_router.get("/")
async def root():
    return {"message": "KnowMe API is running"}


api_router.include_router(health_router)
api_router.include_router(auth_router)
api_router.include_router(profiles_router)
api_router.include_router(groups_router)
api_router.include_router(deck_router)
api_router.include_router(ranking_router)
