"""
API Routes
"""
from fastapi import APIRouter

from app.api.routes.settlements import router as settlements_router
from app.api.routes.fare_quotes import router as fare_quotes_router
from app.api.routes.fare_rates import router as fare_rates_router

router = APIRouter()

router.include_router(settlements_router, prefix="/settlements", tags=["Settlements"])
router.include_router(fare_quotes_router, prefix="/fare-quotes", tags=["Fare Quotes"])
router.include_router(fare_rates_router, prefix="/fare-rates", tags=["Fare Rates"])
