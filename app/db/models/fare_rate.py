"""
Fare Rate Model - 센터별 요율

BASIC: (센터, 차종, 지역)별 기본료
STOP_FEE: (센터, 차종)별 착지 추가비/지역 추가비: 지역 무관
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, Numeric, ForeignKey, Boolean, UniqueConstraint

from app.db.database import Base


class FareType(str, enum.Enum):
    BASIC = "BASIC"
    STOP_FEE = "STOP_FEE"


class FareRate(Base):
    """등록된 요율 1건"""

    __tablename__ = "fare_rates"

    id = Column(Integer, primary_key=True, index=True)
    center_id = Column(Integer, ForeignKey("loading_points.id"), nullable=False, index=True)
    vehicle_type = Column(String(50), nullable=False, index=True)
    region = Column(String(100), nullable=True)  # STOP_FEE는 NULL
    fare_type = Column(SQLEnum(FareType), nullable=False)

    base_fare = Column(Numeric(18, 4), nullable=True)
    extra_stop_fee = Column(Numeric(18, 4), nullable=True)
    extra_region_fee = Column(Numeric(18, 4), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 주의: PostgreSQL은 NULL region을 서로 다른 값으로 취급하므로
    # STOP_FEE 중복은 FareRateService에서 조회 후 upsert로 막는다.
    __table_args__ = (
        UniqueConstraint('center_id', 'vehicle_type', 'region', 'fare_type', name='uq_center_vehicle_region_type'),
    )
