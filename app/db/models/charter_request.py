"""
Charter Request Model - 용차 요청

고정 노선이 아닌 건별 배차. 요금은 센터 요율표(기본료 + 착지/지역 추가비)로 구성된다.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, Text, Boolean, UniqueConstraint

from app.db.database import Base


class CharterRequest(Base):
    """용차 요청 1건"""

    __tablename__ = "charter_requests"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(DateTime, nullable=False, index=True)

    center_id = Column(Integer, ForeignKey("loading_points.id"), nullable=False, index=True)
    vehicle_type = Column(String(50), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True, index=True)

    # 요금 구성
    base_fare = Column(Numeric(18, 4), nullable=False, default=0)
    region_fare = Column(Numeric(18, 4), nullable=False, default=0)
    stop_fare = Column(Numeric(18, 4), nullable=False, default=0)
    extra_fare = Column(Numeric(18, 4), nullable=True)  # 대기/회송/수작업 등
    total_fare = Column(Numeric(18, 4), nullable=False)  # 청구 금액
    driver_fare = Column(Numeric(18, 4), nullable=False)  # 기사 지급 금액

    is_negotiated = Column(Boolean, default=False, nullable=False)
    negotiated_fare = Column(Numeric(18, 4), nullable=True)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CharterDestination(Base):
    """용차 목적지 (방문 순서 포함)"""

    __tablename__ = "charter_destinations"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("charter_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    region = Column(String(100), nullable=False)
    order = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint('request_id', 'order', name='uq_charter_destination_order'),
    )
