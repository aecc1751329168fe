import asyncio
import io
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pandas as pd
from starlette.websockets import WebSocketState

from fxdesk_api.api.routes.reports import FLOAT_COLUMNS, export_dataframe, float_rows
from fxdesk_api.schemas.realtime import SessionStatusEvent
from fxdesk_api.services.realtime import BroadcastManager


def _stack(**values):
    fields = dict(ticker="USD", open_count=10, midday_count=0, close_count=4, denominated_value=20)
    fields.update(values)
    return SimpleNamespace(**fields)


def test_float_rows_value_is_close_count_times_denomination():
    rows = float_rows([(_stack(), "Till 1", "$20"), (_stack(close_count=None, denominated_value=5), "Vault", "$5")])
    assert rows[0]["value"] == 80
    assert rows[0]["repository"] == "Till 1"
    assert rows[1]["close_count"] == 0
    assert rows[1]["value"] == 0
    assert list(rows[0]) == FLOAT_COLUMNS


def _body(response):
    async def _read():
        chunks = []
        async for chunk in response.body_iterator:
            chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode())
        return b"".join(chunks)

    return asyncio.run(_read())


def test_csv_export():
    df = pd.DataFrame(float_rows([(_stack(), "Till 1", "$20")]), columns=FLOAT_COLUMNS)
    response = export_dataframe(df, "float", "csv")
    assert response.media_type == "text/csv"
    assert response.headers["content-disposition"] == 'attachment; filename="float.csv"'
    body = _body(response).decode()
    assert body.splitlines()[0] == ",".join(FLOAT_COLUMNS)
    assert "Till 1,USD,$20" in body


def test_unknown_format_falls_back_to_csv():
    response = export_dataframe(pd.DataFrame({"a": [1]}), "x", "docx")
    assert response.media_type == "text/csv"


def test_xlsx_and_pdf_exports():
    df = pd.DataFrame({"ticker": ["USD"], "value": [80.0]})
    xlsx = export_dataframe(df, "orders", "XLSX")
    assert xlsx.headers["content-disposition"].endswith('orders.xlsx"')
    assert _body(xlsx)[:2] == b"PK"

    pdf = export_dataframe(df, "orders", "pdf")
    assert pdf.media_type == "application/pdf"
    assert _body(pdf).startswith(b"%PDF")


def test_xlsx_export_accepts_timezone_aware_datetimes():
    opened = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
    df = pd.DataFrame(
        [
            {"id": "a", "open_at": opened, "close_at": None},
            {"id": "b", "open_at": opened, "close_at": opened + timedelta(hours=2)},
        ],
        columns=["id", "open_at", "close_at"],
    )
    xlsx = export_dataframe(df, "orders", "xlsx")
    sheet = pd.read_excel(io.BytesIO(_body(xlsx)), engine="openpyxl")
    assert list(sheet.columns) == ["id", "open_at", "close_at"]
    assert sheet.loc[0, "open_at"] == pd.Timestamp("2024-03-01 09:30")
    assert sheet.loc[1, "close_at"] == pd.Timestamp("2024-03-01 11:30")
    assert pd.isna(sheet.loc[0, "close_at"])
    assert df["open_at"].dt.tz is not None


class FakeSocket:
    def __init__(self, fail=False):
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED
        self.sent = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(message)


def test_session_status_is_published_to_the_organization_topic():
    manager = BroadcastManager()
    org_id, other_org = uuid.uuid4(), uuid.uuid4()
    listener, bystander, broken = FakeSocket(), FakeSocket(), FakeSocket(fail=True)
    event = SessionStatusEvent(session_id=uuid.uuid4(), status="FLOAT_OPEN_START", action="start float open")

    async def _run():
        await manager.connect(manager.session_topic(org_id), listener)
        await manager.connect(manager.session_topic(org_id), broken)
        await manager.connect(manager.session_topic(other_org), bystander)
        await manager.publish_session_status(org_id, event)

    asyncio.run(_run())

    assert len(listener.sent) == 1
    envelope = listener.sent[0]
    assert envelope["type"] == "session.status"
    assert envelope["payload"]["status"] == "FLOAT_OPEN_START"
    assert envelope["channel"] == str(event.session_id)
    assert bystander.sent == []
    assert manager.subscriber_count(manager.session_topic(org_id)) == 1
