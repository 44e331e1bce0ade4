"""
정산 내보내기 - Excel (openpyxl)

월 정산 목록을 요약 시트 + 항목 시트로 구성된 XLSX로 만든다.
금액은 Decimal을 원 단위로 반올림(ROUND_HALF_UP)해 표시용 숫자로 기록한다.
"""
import io
from datetime import datetime
from typing import Any, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from app.core.logging import log_sync_operation
from app.core.money import round_won, sum_money
from app.core.validation import YearMonthValidator
from app.db.models.settlement import Settlement, SettlementStatus


# ==================== 서식 상수 ====================

_HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
_HEADER_FONT = Font(name="Malgun Gothic", bold=True, color="FFFFFF", size=11)
_TITLE_FONT = Font(name="Malgun Gothic", bold=True, size=14)
_SUBTITLE_FONT = Font(name="Malgun Gothic", bold=False, size=10, color="666666")
_TOTAL_FONT = Font(name="Malgun Gothic", bold=True, size=11)
_TOTAL_FILL = PatternFill(start_color="D9E2F3", end_color="D9E2F3", fill_type="solid")
_WON_FORMAT = '#,##0"원"'

_THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

_TEXT_ALIGN = Alignment(horizontal="left", vertical="center", wrap_text=True)
_NUMBER_ALIGN = Alignment(horizontal="right", vertical="center")

STATUS_LABELS = {
    SettlementStatus.DRAFT: "임시저장",
    SettlementStatus.CONFIRMED: "확정",
    SettlementStatus.PAID: "지급완료",
}

ITEM_TYPE_LABELS = {
    "TRIP": "운행",
    "DEDUCTION": "공제",
    "ADDITION": "추가",
}

SUMMARY_HEADERS = [
    "기사명", "전화번호", "사업상호", "사업자번호", "정산월", "총운행수",
    "기본요금", "공제액", "추가액", "최종정산액", "상태", "생성일", "확정일", "지급일",
]
_SUMMARY_MONEY_COLUMNS = (7, 8, 9, 10)

ITEM_HEADERS = ["기사명", "일자", "구분", "내용", "금액"]


def _auto_fit_columns(ws: Any) -> None:
    """내용 길이에 맞춰 열 너비 조정 (10 ~ 40)"""
    for col_cells in ws.columns:
        max_length = 0
        col_letter = get_column_letter(col_cells[0].column)
        for cell in col_cells:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        ws.column_dimensions[col_letter].width = min(max(max_length + 4, 10), 40)


def _style_row(ws: Any, row: int, col_count: int, font: Font | None = None, fill: PatternFill | None = None) -> None:
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        if font is not None:
            cell.font = font
        if fill is not None:
            cell.fill = fill
        cell.alignment = _TEXT_ALIGN
        cell.border = _THIN_BORDER


def _write_headers(ws: Any, row: int, headers: list[str]) -> None:
    for col, header in enumerate(headers, 1):
        ws.cell(row=row, column=col, value=header)
    _style_row(ws, row, len(headers), font=_HEADER_FONT, fill=_HEADER_FILL)


def _write_won(ws: Any, row: int, column: int, amount: Any) -> None:
    cell = ws.cell(row=row, column=column, value=int(round_won(amount)))
    cell.number_format = _WON_FORMAT
    cell.alignment = _NUMBER_ALIGN


def _date_text(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else ""


# 셀 값이 이 문자로 시작하면 Excel이 수식으로 해석한다 (Formula Injection)
_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def _sanitize_text(value: str | None) -> str:
    """수식으로 해석될 수 있는 텍스트 앞에 작은따옴표(')를 붙인다"""
    if not value:
        return ""
    if value[0] in _FORMULA_PREFIXES:
        return f"'{value}"
    return value


@log_sync_operation("export_settlements_excel")
def generate_settlements_excel(year_month: str, settlements: Sequence[Settlement]) -> bytes:
    """
    월 정산 엑셀 생성.

    Args:
        year_month: 정산 월 ("YYYY-MM")
        settlements: driver/items가 로드된 정산 목록

    Returns:
        bytes: XLSX 파일 내용
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "정산요약"

    ws.cell(row=1, column=1, value=f"{YearMonthValidator.format_korean(year_month)} 기사 정산").font = _TITLE_FONT
    ws.cell(
        row=2, column=1,
        value=f"정산 {len(settlements)}건 | 생성: {datetime.now().strftime('%Y-%m-%d %H:%M')}",
    ).font = _SUBTITLE_FONT

    header_row = 4
    _write_headers(ws, header_row, SUMMARY_HEADERS)

    row = header_row
    for settlement in settlements:
        row += 1
        driver = settlement.driver
        values = [
            _sanitize_text(driver.name if driver else ""),
            _sanitize_text(driver.phone if driver else ""),
            _sanitize_text(driver.business_name if driver else ""),
            _sanitize_text(driver.business_number if driver else ""),
            settlement.year_month,
            settlement.total_trips,
        ]
        for col, value in enumerate(values, 1):
            ws.cell(row=row, column=col, value=value)
        _style_row(ws, row, len(SUMMARY_HEADERS))

        amounts = (
            settlement.total_base_fare,
            settlement.total_deductions,
            settlement.total_additions,
            settlement.final_amount,
        )
        for col, amount in zip(_SUMMARY_MONEY_COLUMNS, amounts):
            _write_won(ws, row, col, amount)

        ws.cell(row=row, column=11, value=STATUS_LABELS.get(settlement.status, str(settlement.status)))
        ws.cell(row=row, column=12, value=_date_text(settlement.created_at))
        ws.cell(row=row, column=13, value=_date_text(settlement.confirmed_at))
        ws.cell(row=row, column=14, value=_date_text(settlement.paid_at))

    # 합계 행: 반올림 전 Decimal을 합산한 뒤 한 번만 반올림
    total_row = row + 1
    ws.cell(row=total_row, column=1, value="합계")
    ws.cell(row=total_row, column=6, value=sum(s.total_trips for s in settlements))
    _style_row(ws, total_row, len(SUMMARY_HEADERS), font=_TOTAL_FONT, fill=_TOTAL_FILL)
    totals = (
        sum_money(s.total_base_fare for s in settlements),
        sum_money(s.total_deductions for s in settlements),
        sum_money(s.total_additions for s in settlements),
        sum_money(s.final_amount for s in settlements),
    )
    for col, amount in zip(_SUMMARY_MONEY_COLUMNS, totals):
        _write_won(ws, total_row, col, amount)

    _auto_fit_columns(ws)

    # 항목 시트
    ws_items = wb.create_sheet("정산항목")
    _write_headers(ws_items, 1, ITEM_HEADERS)
    item_row = 1
    for settlement in settlements:
        driver_name = _sanitize_text(settlement.driver.name if settlement.driver else "")
        for item in sorted(settlement.items, key=lambda i: (i.date, i.id)):
            item_row += 1
            type_value = item.type.value if hasattr(item.type, "value") else str(item.type)
            ws_items.cell(row=item_row, column=1, value=driver_name)
            ws_items.cell(row=item_row, column=2, value=_date_text(item.date))
            ws_items.cell(row=item_row, column=3, value=ITEM_TYPE_LABELS.get(type_value, type_value))
            ws_items.cell(row=item_row, column=4, value=_sanitize_text(item.description))
            _style_row(ws_items, item_row, len(ITEM_HEADERS))
            _write_won(ws_items, item_row, 5, item.amount)
    _auto_fit_columns(ws_items)

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output.getvalue()
