"""
Trip Model - 노선 운행 기록

배차 시점에 생성되고 배차 수정/취소 흐름에서만 변경된다.
정산 계산기는 이 테이블을 읽기만 한다.
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, Numeric, ForeignKey, Text, Boolean

from app.db.database import Base


class TripStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"  # 예정: 정산 제외
    COMPLETED = "COMPLETED"  # 정상운행
    ABSENCE = "ABSENCE"  # 결행: 기본 10% 공제
    SUBSTITUTE = "SUBSTITUTE"  # 대차: 기본 5% 공제


class Trip(Base):
    """기사 1명의 하루 운행 1건"""

    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(DateTime, nullable=False, index=True)

    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, nullable=True)
    route_name = Column(String(200), nullable=True)  # 비어 있으면 커스텀 노선

    status = Column(SQLEnum(TripStatus), default=TripStatus.SCHEDULED, nullable=False, index=True)

    driver_fare = Column(Numeric(18, 4), nullable=False)
    billing_fare = Column(Numeric(18, 4), nullable=False)
    deduction_amount = Column(Numeric(18, 4), nullable=True)  # 없으면 기본 공제율 적용
    absence_reason = Column(String(500), nullable=True)

    substitute_driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    substitute_fare = Column(Numeric(18, 4), nullable=True)
    extra_fare = Column(Numeric(18, 4), nullable=True)
    is_negotiated = Column(Boolean, default=False, nullable=False)

    remarks = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
