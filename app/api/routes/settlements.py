"""
Settlement API Routes

금액 필드는 모두 문자열(Decimal)로 직렬화한다: JSON 숫자로 보내면 정밀도가 깨진다.
"""
from datetime import datetime
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import get_current_user, require_editor
from app.core.money import decimal_to_str
from app.core.validation import sanitized_text_validator
from app.db.database import get_db
from app.db.models.settlement import Settlement, SettlementSource, SettlementStatus
from app.db.models.user import User
from app.domain.services.export_service import generate_settlements_excel
from app.domain.services.settlement_service import SettlementService

router = APIRouter()


# ==================== Schemas ====================

class SettlementTarget(BaseModel):
    """정산 대상 (기사 + 월). 형식 검증은 서비스에서 한다."""
    driver_id: int | None = None
    year_month: str | None = None
    source: SettlementSource = SettlementSource.TRIP


class CreateSettlementRequest(SettlementTarget):
    remarks: str | None = Field(None, max_length=1000)

    @field_validator("remarks")
    @classmethod
    def clean_remarks(cls, v: str | None) -> str | None:
        return sanitized_text_validator(v)


class BulkCreateRequest(BaseModel):
    year_month: str | None = None
    driver_ids: list[int] | None = None
    source: SettlementSource = SettlementSource.TRIP


class UpdateSettlementRequest(BaseModel):
    remarks: str | None = Field(None, max_length=1000)
    recalculate: bool = False


class ConfirmSettlementRequest(BaseModel):
    remarks: str | None = Field(None, max_length=1000)


class EmergencyUnlockRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class SettlementItemResponse(BaseModel):
    id: int
    type: str
    description: str
    amount: str
    date: datetime
    trip_id: int | None = None
    charter_id: int | None = None


class SettlementResponse(BaseModel):
    id: int
    driver_id: int
    driver_name: str | None = None
    year_month: str
    status: SettlementStatus
    source: SettlementSource
    total_trips: int
    total_base_fare: str
    total_deductions: str
    total_additions: str
    final_amount: str
    remarks: str | None = None
    created_by: int | None = None
    confirmed_by: int | None = None
    confirmed_at: datetime | None = None
    paid_at: datetime | None = None
    created_at: datetime | None = None
    items: list[SettlementItemResponse] = []


class SettlementListResponse(BaseModel):
    items: list[SettlementResponse]
    total: int
    page: int
    page_size: int


def _to_response(settlement: Settlement, include_items: bool = True) -> SettlementResponse:
    items = []
    if include_items:
        items = [
            SettlementItemResponse(
                id=item.id,
                type=item.type.value,
                description=item.description,
                amount=decimal_to_str(item.amount),
                date=item.date,
                trip_id=item.trip_id,
                charter_id=item.charter_id,
            )
            for item in settlement.items
        ]
    return SettlementResponse(
        id=settlement.id,
        driver_id=settlement.driver_id,
        driver_name=settlement.driver.name if settlement.driver else None,
        year_month=settlement.year_month,
        status=settlement.status,
        source=settlement.source,
        total_trips=settlement.total_trips,
        total_base_fare=decimal_to_str(settlement.total_base_fare),
        total_deductions=decimal_to_str(settlement.total_deductions),
        total_additions=decimal_to_str(settlement.total_additions),
        final_amount=decimal_to_str(settlement.final_amount),
        remarks=settlement.remarks,
        created_by=settlement.created_by,
        confirmed_by=settlement.confirmed_by,
        confirmed_at=settlement.confirmed_at,
        paid_at=settlement.paid_at,
        created_at=settlement.created_at,
        items=items,
    )


# ==================== Routes ====================
# 고정 경로(/preview, /bulk, /export)는 /{settlement_id}보다 먼저 선언한다

@router.post(
    "/preview",
    summary="정산 미리보기",
    description="저장하지 않고 계산 결과와 경고(이미 확정됨, 비활성 기사, 미래 월)를 돌려준다.",
)
async def preview_settlement(
    data: SettlementTarget,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = SettlementService(db)
    preview = await service.preview_settlement(data.driver_id, data.year_month, data.source)
    return preview.to_dict()


@router.post(
    "",
    response_model=SettlementResponse,
    status_code=status.HTTP_201_CREATED,
    summary="정산 생성 (임시저장)",
)
async def create_settlement(
    data: CreateSettlementRequest,
    current_user: User = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
) -> SettlementResponse:
    service = SettlementService(db)
    settlement = await service.create_settlement(
        data.driver_id, data.year_month, actor=current_user, source=data.source, remarks=data.remarks
    )
    return _to_response(settlement)


@router.post(
    "/bulk",
    summary="정산 일괄 생성",
    description="driver_ids가 없으면 활성 기사 전체. 기사별 실패는 failed 목록으로 돌려준다.",
)
async def bulk_create_settlements(
    data: BulkCreateRequest,
    current_user: User = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
):
    service = SettlementService(db)
    outcome = await service.bulk_create_settlements(
        data.year_month, data.driver_ids, actor=current_user, source=data.source
    )
    return outcome.to_dict()


@router.get(
    "",
    response_model=SettlementListResponse,
    summary="정산 목록",
)
async def list_settlements(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    year_month: str | None = None,
    status_filter: SettlementStatus | None = Query(None, alias="status"),
    driver_id: int | None = None,
    search: str | None = None,
    sort_by: str = Query("created_at", pattern="^(created_at|year_month|final_amount|status)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SettlementListResponse:
    service = SettlementService(db)
    settlements, total = await service.list_settlements(
        page=page,
        page_size=page_size,
        year_month=year_month,
        status=status_filter,
        driver_id=driver_id,
        search=search,
        sort_by=sort_by,
        descending=order == "desc",
    )
    return SettlementListResponse(
        items=[_to_response(s, include_items=False) for s in settlements],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/export",
    summary="월 정산 엑셀 내보내기",
)
async def export_settlements(
    year_month: str | None = None,
    driver_ids: list[int] | None = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    service = SettlementService(db)
    settlements = await service.list_for_export(year_month, driver_ids)
    content = generate_settlements_excel(year_month, settlements)

    filename = quote(f"정산_{year_month}.xlsx")
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{filename}"},
    )


@router.get("/{settlement_id}", response_model=SettlementResponse, summary="정산 상세")
async def get_settlement(
    settlement_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SettlementResponse:
    service = SettlementService(db)
    return _to_response(await service.get_settlement(settlement_id))


@router.patch("/{settlement_id}", response_model=SettlementResponse, summary="정산 수정 (임시저장만)")
async def update_settlement(
    settlement_id: int,
    data: UpdateSettlementRequest,
    current_user: User = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
) -> SettlementResponse:
    service = SettlementService(db)
    settlement = await service.update_settlement(
        settlement_id, remarks=data.remarks, recalculate=data.recalculate, actor=current_user
    )
    return _to_response(settlement)


@router.delete(
    "/{settlement_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="정산 삭제 (임시저장만)",
)
async def delete_settlement(
    settlement_id: int,
    current_user: User = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
) -> Response:
    service = SettlementService(db)
    await service.delete_settlement(settlement_id, actor=current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{settlement_id}/confirm",
    response_model=SettlementResponse,
    summary="정산 확정",
    description="최신 운행 기록으로 재계산한 뒤 확정한다.",
)
async def confirm_settlement(
    settlement_id: int,
    data: ConfirmSettlementRequest | None = None,
    current_user: User = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
) -> SettlementResponse:
    service = SettlementService(db)
    settlement = await service.confirm_settlement(
        settlement_id, actor=current_user, remarks=data.remarks if data else None
    )
    return _to_response(settlement)


@router.post("/{settlement_id}/paid", response_model=SettlementResponse, summary="지급 완료 처리")
async def mark_settlement_paid(
    settlement_id: int,
    current_user: User = Depends(require_editor),
    db: AsyncSession = Depends(get_db),
) -> SettlementResponse:
    service = SettlementService(db)
    return _to_response(await service.mark_paid(settlement_id, actor=current_user))


@router.post(
    "/{settlement_id}/emergency-unlock",
    response_model=SettlementResponse,
    summary="비상 잠금 해제 (관리자)",
    description="확정된 정산을 임시저장으로 되돌린다. 사유 필수, 감사로그에 비상 조치로 기록된다.",
)
async def emergency_unlock(
    settlement_id: int,
    data: EmergencyUnlockRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SettlementResponse:
    service = SettlementService(db)
    settlement = await service.emergency_unlock(settlement_id, current_user.id, data.reason)
    return _to_response(settlement)
