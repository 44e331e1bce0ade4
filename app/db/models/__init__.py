"""
Database Models
"""
from app.db.models.user import User
from app.db.models.driver import Driver
from app.db.models.loading_point import LoadingPoint
from app.db.models.trip import Trip
from app.db.models.charter_request import CharterRequest, CharterDestination
from app.db.models.fare_rate import FareRate
from app.db.models.settlement import Settlement, SettlementItem
from app.db.models.audit_log import AuditLog

__all__ = [
    "User",
    "Driver",
    "LoadingPoint",
    "Trip",
    "CharterRequest",
    "CharterDestination",
    "FareRate",
    "Settlement",
    "SettlementItem",
    "AuditLog",
]
