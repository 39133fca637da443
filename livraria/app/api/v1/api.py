from fastapi import APIRouter

from livraria.app.api.v1.endpoints import customers, inventory, pos, sales, sessions

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
api_router.include_router(pos.router, prefix="/pos", tags=["pos"])
api_router.include_router(sales.router, prefix="/sales", tags=["sales"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(customers.router, prefix="/customers", tags=["customers"])
