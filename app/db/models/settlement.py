"""
Settlement Models - 월별 기사 정산 + 정산 항목

기사 1명 × 월 1개의 정산만 존재한다 (uq_settlement_driver_month).
정산 항목은 정산에 종속되며 재계산 시 함께 삭제/재생성된다.
"""
import enum
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, Enum as SQLEnum, Numeric, ForeignKey, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.database import Base


class SettlementStatus(str, enum.Enum):
    DRAFT = "DRAFT"  # 임시저장
    CONFIRMED = "CONFIRMED"  # 확정
    PAID = "PAID"  # 지급완료


class SettlementSource(str, enum.Enum):
    """정산을 만든 계산 경로"""
    TRIP = "TRIP"
    CHARTER = "CHARTER"


class SettlementItemType(str, enum.Enum):
    TRIP = "TRIP"
    DEDUCTION = "DEDUCTION"
    ADDITION = "ADDITION"


class Settlement(Base):
    """기사 월 정산"""

    __tablename__ = "settlements"

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    year_month = Column(String(7), nullable=False, index=True)  # "YYYY-MM"

    status = Column(SQLEnum(SettlementStatus), default=SettlementStatus.DRAFT, nullable=False, index=True)
    source = Column(SQLEnum(SettlementSource), default=SettlementSource.TRIP, nullable=False)

    total_trips = Column(Integer, nullable=False, default=0)
    # 원천 금액 scale 4 x 공제율(5%, 10%) -> 최대 소수 여섯째 자리
    total_base_fare = Column(Numeric(20, 6), nullable=False, default=0)
    total_deductions = Column(Numeric(20, 6), nullable=False, default=0)
    total_additions = Column(Numeric(20, 6), nullable=False, default=0)
    final_amount = Column(Numeric(20, 6), nullable=False, default=0)

    remarks = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    confirmed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    driver = relationship("Driver", lazy="selectin")
    items = relationship(
        "SettlementItem",
        back_populates="settlement",
        cascade="all, delete-orphan",
        order_by="SettlementItem.id",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint('driver_id', 'year_month', name='uq_settlement_driver_month'),
    )


class SettlementItem(Base):
    """정산 항목: 운행 지급액(양수), 공제(음수), 추가(양수 또는 0)"""

    __tablename__ = "settlement_items"

    id = Column(Integer, primary_key=True, index=True)
    settlement_id = Column(
        Integer, ForeignKey("settlements.id", ondelete="CASCADE"), nullable=False, index=True
    )

    type = Column(SQLEnum(SettlementItemType), nullable=False)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(20, 6), nullable=False)
    date = Column(DateTime, nullable=False)

    # 원천 기록 역참조 (둘 중 하나만 채워진다)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="SET NULL"), nullable=True)
    charter_id = Column(Integer, ForeignKey("charter_requests.id", ondelete="SET NULL"), nullable=True)

    settlement = relationship("Settlement", back_populates="items")
