"""
Fare Rate Service - 요율 등록 / 조회 / 비활성화

고유 키 (센터, 차종, 지역, 요율종류)당 1건. 같은 키로 다시 등록하면 기존 행을 갱신한다.
STOP_FEE는 region이 NULL이라 DB 고유 제약으로 막히지 않으므로 여기서 조회 후 갱신한다.
"""
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ErrorCode,
    MissingParameterError,
    NotFoundException,
    ValidationException,
)
from app.core.logging import get_logger
from app.core.validation import AmountValidator, FareRateKey
from app.db.models.fare_rate import FareRate, FareType
from app.db.repositories import FareRateRepository

logger = get_logger(__name__)


class FareRateService:
    """센터 요율표 관리"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = FareRateRepository(db)

    @staticmethod
    def _check_amount(value: Decimal | None, field: str) -> Decimal:
        if value is None:
            raise MissingParameterError(field)
        is_valid, error = AmountValidator.validate(value)
        if not is_valid:
            raise ValidationException(error, field=field)
        return value

    async def register_rate(
        self,
        center_id: int,
        vehicle_type: str,
        fare_type: FareType,
        region: str | None = None,
        base_fare: Decimal | None = None,
        extra_stop_fee: Decimal | None = None,
        extra_region_fee: Decimal | None = None,
    ) -> tuple[FareRate, bool]:
        """
        요율 등록 (upsert).

        BASIC: region + base_fare 필수.
        STOP_FEE: region 없음, extra_stop_fee + extra_region_fee 필수.

        Returns:
            (요율, 새로 생성 여부)
        """
        center = await self.repository.find_center(center_id)
        if center is None:
            raise NotFoundException("Center", center_id, ErrorCode.CENTER_NOT_FOUND)

        vehicle_type = FareRateKey.vehicle_type(vehicle_type)
        if not vehicle_type:
            raise MissingParameterError("vehicle_type")

        if fare_type == FareType.BASIC:
            region = FareRateKey.region(region)
            if not region:
                raise MissingParameterError("region")
            values = {
                "base_fare": self._check_amount(base_fare, "base_fare"),
                "extra_stop_fee": None,
                "extra_region_fee": None,
            }
        else:
            if region:
                raise ValidationException("STOP_FEE 요율은 지역을 지정하지 않습니다", field="region")
            region = None
            values = {
                "base_fare": None,
                "extra_stop_fee": self._check_amount(extra_stop_fee, "extra_stop_fee"),
                "extra_region_fee": self._check_amount(extra_region_fee, "extra_region_fee"),
            }

        rate = await self.repository.find_row_by_key(center_id, vehicle_type, region, fare_type)
        created = rate is None
        if created:
            rate = FareRate(
                center_id=center_id,
                vehicle_type=vehicle_type,
                region=region,
                fare_type=fare_type,
            )
        for key, value in values.items():
            setattr(rate, key, value)
        rate.is_active = True

        rate = await self.repository.save(rate, "register_fare_rate")

        logger.info(
            "Fare rate registered",
            extra_data={
                "fare_rate_id": rate.id,
                "center_id": center_id,
                "vehicle_type": vehicle_type,
                "region": region,
                "fare_type": fare_type.value,
                "created": created,
            }
        )
        return rate, created

    async def list_rates(
        self,
        center_id: int | None = None,
        vehicle_type: str | None = None,
        include_inactive: bool = False,
    ) -> list[FareRate]:
        if vehicle_type is not None:
            vehicle_type = FareRateKey.vehicle_type(vehicle_type) or None
        return await self.repository.list_rates(center_id, vehicle_type, include_inactive)

    async def deactivate_rate(self, rate_id: int) -> FareRate:
        """요율 비활성화: 이후 견적 계산에서 제외된다"""
        rate = await self.repository.find_row_by_id(rate_id)
        if rate is None:
            raise NotFoundException("FareRate", rate_id, ErrorCode.FARE_RATE_NOT_FOUND)

        rate.is_active = False
        rate = await self.repository.save(rate, "deactivate_fare_rate")
        logger.info("Fare rate deactivated", extra_data={"fare_rate_id": rate_id})
        return rate
