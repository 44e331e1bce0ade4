"""
Loading Point Model - 상차지(센터)
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean

from app.db.database import Base


class LoadingPoint(Base):
    """상차지: 요율표와 용차 요청의 기준이 되는 센터"""

    __tablename__ = "loading_points"

    id = Column(Integer, primary_key=True, index=True)
    center_name = Column(String(100), nullable=False, index=True)
    loading_point_name = Column(String(100), nullable=True)
    address = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
