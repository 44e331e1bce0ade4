"""
Fare Rate API Routes
"""
from decimal import Decimal

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import get_current_user, require_editor
from app.core.money import decimal_to_str
from app.db.database import get_db
from app.db.models.fare_rate import FareRate, FareType
from app.db.models.user import User
from app.domain.services.fare_rate_service import FareRateService

router = APIRouter()


class RegisterFareRateRequest(BaseModel):
    center_id: int
    vehicle_type: str = Field(..., min_length=1, max_length=50)
    fare_type: FareType
    region: str | None = Field(None, max_length=100)
    base_fare: Decimal | None = None
    extra_stop_fee: Decimal | None = None
    extra_region_fee: Decimal | None = None


class FareRateResponse(BaseModel):
    id: int
    center_id: int
    vehicle_type: str
    fare_type: FareType
    region: str | None = None
    base_fare: str | None = None
    extra_stop_fee: str | None = None
    extra_region_fee: str | None = None
    is_active: bool


def _money_or_none(value: Decimal | None) -> str | None:
    return decimal_to_str(value) if value is not None else None


def _to_response(rate: FareRate) -> FareRateResponse:
    return FareRateResponse(
        id=rate.id,
        center_id=rate.center_id,
        vehicle_type=rate.vehicle_type,
        fare_type=rate.fare_type,
        region=rate.region,
        base_fare=_money_or_none(rate.base_fare),
        extra_stop_fee=_money_or_none(rate.extra_stop_fee),
        extra_region_fee=_money_or_none(rate.extra_region_fee),
        is_active=bool(rate.is_active),
    )


@router.get("", response_model=list[FareRateResponse], summary="요율 목록")
async def list_fare_rates(
    center_id: int | None = None,
    vehicle_type: str | None = None,
    include_inactive: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[FareRateResponse]:
    service = FareRateService(db)
    rates = await service.list_rates(center_id, vehicle_type, include_inactive)
    return [_to_response(rate) for rate in rates]


@router.post(
    "",
    response_model=FareRateResponse,
    summary="요율 등록 (같은 키면 갱신)",
)
async def register_fare_rate(
    data: RegisterFareRateRequest,
    response: Response,
    current_user: User = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
) -> FareRateResponse:
    service = FareRateService(db)
    rate, created = await service.register_rate(
        center_id=data.center_id,
        vehicle_type=data.vehicle_type,
        fare_type=data.fare_type,
        region=data.region,
        base_fare=data.base_fare,
        extra_stop_fee=data.extra_stop_fee,
        extra_region_fee=data.extra_region_fee,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return _to_response(rate)


@router.delete("/{rate_id}", response_model=FareRateResponse, summary="요율 비활성화")
async def deactivate_fare_rate(
    rate_id: int,
    current_user: User = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
) -> FareRateResponse:
    service = FareRateService(db)
    return _to_response(await service.deactivate_rate(rate_id))
