from fastapi import APIRouter

from .routes.health import router as health_router
from .routes.dashboard import router as dashboard_router
from .routes.deposits import router as deposits_router
from .routes.withdrawals import router as withdrawals_router
from .routes.trade_pnl import router as trade_pnl_router
from .routes.wallets import router as wallets_router
from .routes.trade_rules import router as trade_rules_router


api_v1_router = APIRouter()
api_v1_router.include_router(health_router, tags=["health"])
api_v1_router.include_router(dashboard_router, tags=["dashboard"])
api_v1_router.include_router(deposits_router, tags=["deposits"])
api_v1_router.include_router(withdrawals_router, tags=["withdrawals"])
api_v1_router.include_router(trade_pnl_router, tags=["trade-pnl"])
api_v1_router.include_router(wallets_router, tags=["wallets"])
api_v1_router.include_router(trade_rules_router, tags=["trade-rules"])
