from fastapi import APIRouter

from ghttpping.api.v1 import network

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(network.router, prefix="/network", tags=["Network"])
