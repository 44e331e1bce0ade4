"""
Audit Log Model: 정산 상태 변경 감사 로그

"누가, 어떤 정산을, 어떤 상태에서 무엇으로, 왜" 바꿨는지 남기는 변경 불가 기록.
비상 잠금 해제는 is_emergency=True로 표시되며 상태 변경과 같은 커밋에 기록된다.
"""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey, String, Enum as SQLEnum, Text, Boolean
from sqlalchemy.types import JSON

from app.db.database import Base


class AuditActionType(str, enum.Enum):
    """감사 로그에 기록되는 작업 유형"""
    SETTLEMENT_CREATED = "settlement_created"
    SETTLEMENT_UPDATED = "settlement_updated"
    SETTLEMENT_CONFIRMED = "settlement_confirmed"
    SETTLEMENT_PAID = "settlement_paid"
    SETTLEMENT_DELETED = "settlement_deleted"
    SETTLEMENT_EMERGENCY_UNLOCK = "settlement_emergency_unlock"


class AuditLog(Base):
    """감사 로그: 변경 불가 기록"""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    actor_name = Column(String(100), nullable=True)
    action = Column(SQLEnum(AuditActionType), nullable=False, index=True)

    entity_type = Column(String(50), nullable=False, default="Settlement")
    # 삭제된 정산도 추적해야 하므로 FK를 두지 않는다
    entity_id = Column(Integer, nullable=False, index=True)

    prior_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=True)
    reason = Column(Text, nullable=True)
    is_emergency = Column(Boolean, default=False, nullable=False, index=True)

    # 변경 상세 (이전 확정자/확정 시각 등)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
