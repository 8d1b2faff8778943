from fastapi import APIRouter

from activations.presentation.routers.v1.activations import router as activations_router
from activations.presentation.routes.health import router as health_router

api = APIRouter()
api.include_router(health_router)

# Add all v1 routers here
routers = (activations_router,)
for router in routers:
    api.include_router(router, prefix="/v1")
