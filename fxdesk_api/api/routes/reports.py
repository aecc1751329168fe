from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import Optional, Sequence
from uuid import UUID

import pandas as pd
from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from fxdesk_api.core.deps import ADMIN_ROLES, get_tenant_session, require_roles
from fxdesk_api.db.models.currencies import Denomination
from fxdesk_api.db.models.orders import Order
from fxdesk_api.db.models.repositories import OrgRepository
from fxdesk_api.db.models.sessions import FloatStack
from fxdesk_api.services.sessions import CxSessionService

# PUBLIC_INTERFACE
router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
    dependencies=[Depends(require_roles(*ADMIN_ROLES))],
)

ORDER_COLUMNS = [
    "id",
    "status",
    "inbound_ticker",
    "inbound_sum",
    "outbound_ticker",
    "outbound_sum",
    "fx_rate",
    "final_rate",
    "margin",
    "fee",
    "network_fee",
    "customer_id",
    "session_id",
    "open_at",
    "close_at",
]

FLOAT_COLUMNS = [
    "repository",
    "ticker",
    "denomination",
    "denominated_value",
    "open_count",
    "midday_count",
    "close_count",
    "value",
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _csv_response(df: pd.DataFrame, filename_base: str) -> StreamingResponse:
    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    buffer.seek(0)
    headers = {"Content-Disposition": f'attachment; filename="{filename_base}.csv"'}
    return StreamingResponse(buffer, media_type="text/csv", headers=headers)


def _pdf_bytes(df: pd.DataFrame, title: str) -> io.BytesIO:
    from reportlab.lib import colors
    from reportlab.lib.pagesizes import landscape, letter
    from reportlab.lib.styles import getSampleStyleSheet
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Table, TableStyle

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=landscape(letter), leftMargin=18, rightMargin=18, topMargin=18, bottomMargin=18
    )
    stamp = datetime.now(tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    heading = Paragraph(f"{title} ({stamp})", getSampleStyleSheet()["Title"])

    table = Table([list(df.columns)] + df.astype(str).values.tolist(), repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ]
        )
    )
    doc.build([heading, table])
    buffer.seek(0)
    return buffer


def _naive_utc(df: pd.DataFrame) -> pd.DataFrame:
    """Copy of `df` with timezone-aware datetime columns converted to naive UTC; Excel cannot store offsets."""
    df = df.copy()
    for column in df.columns:
        series = df[column]
        if isinstance(series.dtype, pd.DatetimeTZDtype):
            df[column] = series.dt.tz_convert(None)
        elif series.dtype == object and any(
            isinstance(value, datetime) and value.tzinfo is not None for value in series
        ):
            df[column] = pd.to_datetime(series, utc=True).dt.tz_convert(None)
    return df


# PUBLIC_INTERFACE
def export_dataframe(df: pd.DataFrame, filename_base: str, export_format: str) -> StreamingResponse:
    """
    Stream a DataFrame as a file download.

    Formats: csv (default and fallback), xlsx (openpyxl), pdf (reportlab table).
    """
    export_format = (export_format or "csv").lower()

    if export_format in ("xlsx", "excel"):
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            _naive_utc(df).to_excel(writer, index=False, sheet_name="Report")
        buffer.seek(0)
        headers = {"Content-Disposition": f'attachment; filename="{filename_base}.xlsx"'}
        return StreamingResponse(buffer, media_type=XLSX_MEDIA_TYPE, headers=headers)

    if export_format == "pdf":
        buffer = _pdf_bytes(df, filename_base.replace("_", " ").title())
        headers = {"Content-Disposition": f'attachment; filename="{filename_base}.pdf"'}
        return StreamingResponse(buffer, media_type="application/pdf", headers=headers)

    return _csv_response(df, filename_base)


# PUBLIC_INTERFACE
def float_rows(rows: Sequence[tuple]) -> list:
    """Turn (stack, repository name, denomination name) rows into report dicts with the close value."""
    data = []
    for stack, repository_name, denomination_name in rows:
        close_count = float(stack.close_count or 0)
        denominated_value = float(stack.denominated_value or 0)
        data.append(
            {
                "repository": repository_name,
                "ticker": stack.ticker,
                "denomination": denomination_name,
                "denominated_value": denominated_value,
                "open_count": float(stack.open_count or 0),
                "midday_count": float(stack.midday_count or 0),
                "close_count": close_count,
                "value": close_count * denominated_value,
            }
        )
    return data


async def _fetch_all(session: AsyncSession, stmt: Select) -> Sequence:
    res = await session.execute(stmt)
    return list(res.all())


# PUBLIC_INTERFACE
@router.get(
    "/orders",
    summary="Orders report",
    description="Exports orders, newest first, optionally for one session and/or status.",
    response_description="File stream (CSV/XLSX/PDF)",
)
async def orders_report(
    session: AsyncSession = Depends(get_tenant_session),
    session_id: Optional[UUID] = Query(None, description="Filter by session"),
    status: Optional[str] = Query(None, description="Filter by order status"),
    format: str = Query("csv", description="Export format: csv | xlsx | pdf"),
):
    stmt = select(Order).order_by(Order.created_at.desc())
    if session_id:
        stmt = stmt.where(Order.session_id == session_id)
    if status:
        stmt = stmt.where(Order.status == status)

    orders = list(await session.scalars(stmt))
    data = [{column: getattr(order, column) for column in ORDER_COLUMNS} for order in orders]
    for row in data:
        for key in ("id", "customer_id", "session_id"):
            row[key] = str(row[key]) if row[key] else None

    df = pd.DataFrame(data, columns=ORDER_COLUMNS)
    return export_dataframe(df, "orders", format)


# PUBLIC_INTERFACE
@router.get(
    "/sessions/{session_id}/float",
    summary="Session float report",
    description="Per float stack counts, with value = close_count × denominated_value.",
    response_description="File stream (CSV/XLSX/PDF)",
)
async def session_float_report(
    session_id: UUID = Path(..., description="Session ID"),
    session: AsyncSession = Depends(get_tenant_session),
    format: str = Query("csv", description="Export format: csv | xlsx | pdf"),
):
    await CxSessionService(session).get(session_id)
    stmt = (
        select(FloatStack, OrgRepository.name, Denomination.name)
        .join(OrgRepository, OrgRepository.id == FloatStack.repository_id)
        .join(Denomination, Denomination.id == FloatStack.denomination_id)
        .where(FloatStack.session_id == session_id)
        .order_by(OrgRepository.display_order, OrgRepository.name, FloatStack.ticker, Denomination.value.desc())
    )
    rows = await _fetch_all(session, stmt)
    df = pd.DataFrame(float_rows(rows), columns=FLOAT_COLUMNS)
    return export_dataframe(df, f"session_{session_id}_float", format)
