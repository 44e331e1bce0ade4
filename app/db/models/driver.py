"""
Driver Model - 기사 (정산 대상)
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean

from app.db.database import Base


class Driver(Base):
    """용차/노선 기사"""

    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    phone = Column(String(20), nullable=False, index=True)

    # 세금계산서/엑셀 내보내기용 사업자 정보
    business_name = Column(String(200), nullable=True)
    business_number = Column(String(20), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
