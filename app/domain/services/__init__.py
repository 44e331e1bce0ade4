"""
Domain Services
"""
from app.domain.services.settlement_service import SettlementService
from app.domain.services.fare_quote_service import FareQuoteService
from app.domain.services.fare_rate_service import FareRateService

__all__ = [
    "SettlementService",
    "FareQuoteService",
    "FareRateService",
]
