"""
Fare Quote API Routes

요율 누락 시 422 + {"error": {...missingRegions, centerName, vehicleType}, "data": 잠정 견적}
"""
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import get_current_user
from app.db.database import get_db
from app.db.models.user import User
from app.domain.services.fare_quote_service import FareQuoteService

router = APIRouter()


class FareQuoteRequest(BaseModel):
    center_id: int | None = None
    vehicle_type: str | None = Field(None, max_length=50)
    regions: list[str] = Field(default_factory=list)
    stop_count: int = Field(..., ge=1)
    extra_adjustment: Decimal = Decimal("0")
    negotiated_fare: Decimal | None = None


@router.post(
    "",
    summary="용차 견적 계산",
    description=(
        "기본료(요청 지역 중 최고가) + 착지 추가비 × (착지-1) + 지역 추가비 × (지역-1) + 조정액. "
        "요율이 누락되면 422와 함께 등록된 요율만으로 계산한 잠정 견적을 돌려준다."
    ),
)
async def compute_fare_quote(
    data: FareQuoteRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = FareQuoteService(db)
    quote = await service.compute_quote(
        center_id=data.center_id,
        vehicle_type=data.vehicle_type,
        regions=data.regions,
        stop_count=data.stop_count,
        extra_adjustment=data.extra_adjustment,
        negotiated_fare=data.negotiated_fare,
    )
    return quote.to_dict()
