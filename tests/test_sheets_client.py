from __future__ import annotations

import pytest

from deal_post_agent.clients.sheets_client import SheetsClient, column_letter


class _FakeRequest:
    def __init__(self, payload: dict):
        self.payload = payload

    def execute(self, num_retries: int = 0):
        return self.payload


class _FakeValues:
    def __init__(self, rows: list[list[str]]):
        self.rows = rows
        self.ranges: list[str] = []
        self.batch_bodies: list[dict] = []

    def get(self, spreadsheetId=None, range=None):  # noqa: A002
        self.ranges.append(range)
        if range and range.endswith("!1:1"):
            return _FakeRequest({"values": self.rows[:1]})
        return _FakeRequest({"values": self.rows})

    def batchUpdate(self, spreadsheetId=None, body=None):
        self.batch_bodies.append(body or {})
        return _FakeRequest({"totalUpdatedCells": len((body or {}).get("data", []))})


class _FakeSpreadsheets:
    def __init__(self, values: _FakeValues):
        self._values = values

    def values(self):
        return self._values


class _FakeSheetsService:
    def __init__(self, rows: list[list[str]]):
        self.values_api = _FakeValues(rows)

    def spreadsheets(self):
        return _FakeSpreadsheets(self.values_api)


def _client(rows: list[list[str]]) -> tuple[SheetsClient, _FakeSheetsService]:
    client = SheetsClient(spreadsheet_id="sheet-123", credentials_json="{}")
    service = _FakeSheetsService(rows)
    client._service = service
    return client, service


HEADER = ["url", "price", "checkup", "Runtime", "posted_to"]


def test_column_letter() -> None:
    assert column_letter(0) == "A"
    assert column_letter(25) == "Z"
    assert column_letter(26) == "AA"
    assert column_letter(27) == "AB"
    assert column_letter(701) == "ZZ"
    assert column_letter(702) == "AAA"
    with pytest.raises(ValueError):
        column_letter(-1)


def test_fetch_rows_maps_header_and_row_numbers() -> None:
    client, service = _client(
        [
            HEADER,
            ["https://a/1", "30000", "0"],
            ["https://a/2", "25", "1", "2026-10-01 09:00:00", "band"],
        ]
    )

    rows = client.fetch_rows()

    assert service.values_api.ranges == ["data"]
    assert rows[0] == {
        "rowNumber": 2,
        "url": "https://a/1",
        "price": "30000",
        "checkup": "0",
        "Runtime": "",
        "posted_to": "",
    }
    assert rows[1]["rowNumber"] == 3
    assert rows[1]["posted_to"] == "band"


def test_fetch_rows_without_data_rows() -> None:
    client, _ = _client([HEADER])
    assert client.fetch_rows() == []
    assert client.fetch_pending_rows() == []


def test_fetch_pending_rows_filters_and_sorts_newest_first() -> None:
    client, _ = _client(
        [
            HEADER,
            ["https://a/old", "1", "0", "2026-09-01 10:00:00"],
            ["https://a/done", "1", "1", "2026-10-10 10:00:00"],
            ["https://a/new", "1", "0", "2026-10-12T08:30:00"],
            ["https://a/undated", "1", "0", "not a date"],
            ["https://a/mid", "1", "0", "2026. 09. 15 12:00:00"],
        ]
    )

    pending = client.fetch_pending_rows()

    assert [row["url"] for row in pending] == [
        "https://a/new",
        "https://a/mid",
        "https://a/old",
        "https://a/undated",
    ]


def test_update_row_builds_a1_ranges_and_skips_unknown_columns() -> None:
    client, service = _client([HEADER])

    response = client.update_row(5, {"checkup": "1", "posted_to": "cafe", "missing": "x"})

    assert response == {"totalUpdatedCells": 2}
    body = service.values_api.batch_bodies[0]
    assert body["valueInputOption"] == "USER_ENTERED"
    assert body["data"] == [
        {"range": "data!C5", "values": [["1"]]},
        {"range": "data!E5", "values": [["cafe"]]},
    ]


def test_update_row_handles_columns_past_z() -> None:
    header = [f"col{index}" for index in range(30)]
    client, service = _client([header])

    client.update_row(2, {"col27": "v"})

    assert service.values_api.batch_bodies[0]["data"][0]["range"] == "data!AB2"


def test_update_row_validation() -> None:
    client, service = _client([HEADER])
    with pytest.raises(ValueError, match="Missing rowNumber or newValues"):
        client.update_row(0, {"checkup": "1"})
    with pytest.raises(ValueError, match="Missing rowNumber or newValues"):
        client.update_row(3, {})
    with pytest.raises(ValueError, match="No valid columns"):
        client.update_row(3, {"unknown": "1"})
    with pytest.raises(ValueError, match="newValues must be an object"):
        client.update_row(3, ["checkup", "1"])
    with pytest.raises(ValueError, match="Invalid rowNumber"):
        client.update_row("abc", {"checkup": "1"})
    with pytest.raises(ValueError, match="data row"):
        client.update_row(1, {"checkup": "1"})
    assert service.values_api.batch_bodies == []


def test_update_row_without_header_row() -> None:
    client, _ = _client([])
    with pytest.raises(RuntimeError, match="Could not read sheet headers"):
        client.update_row(2, {"checkup": "1"})


def test_missing_configuration_errors() -> None:
    with pytest.raises(RuntimeError, match="SHEET_ID"):
        SheetsClient(spreadsheet_id="").fetch_rows()
    with pytest.raises(RuntimeError, match="GOOGLE_CREDENTIALS"):
        SheetsClient(spreadsheet_id="sheet-123").fetch_rows()
    with pytest.raises(RuntimeError, match="not valid service-account JSON"):
        SheetsClient(spreadsheet_id="sheet-123", credentials_json="{oops").fetch_rows()
    with pytest.raises(RuntimeError, match="not found"):
        SheetsClient(spreadsheet_id="sheet-123", credentials_path="/nonexistent/secret.json").fetch_rows()
