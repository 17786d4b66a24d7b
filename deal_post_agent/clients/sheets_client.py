from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httplib2
from google.oauth2 import service_account
try:
    from google_auth_httplib2 import AuthorizedHttp
except Exception:  # pragma: no cover
    AuthorizedHttp = None
from googleapiclient.discovery import build

from deal_post_agent.config import AgentConfig


_RUNTIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y. %m. %d %H:%M:%S",
    "%Y. %m. %d",
)


def column_letter(index: int) -> str:
    """0-based column index to A1 letters (0 -> A, 25 -> Z, 26 -> AA)."""
    if index < 0:
        raise ValueError(f"Column index must be non-negative: {index}")
    letters = ""
    number = index + 1
    while number:
        number, remainder = divmod(number - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def _runtime_timestamp(raw: Any) -> float:
    value = str(raw or "").strip()
    if not value:
        return 0.0
    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _RUNTIME_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


class SheetsClient:
    """Work queue stored in a Google spreadsheet (Sheets API v4 values)."""

    SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
    HTTP_TIMEOUT_SEC = 30
    API_RETRIES = 3
    PENDING_FLAG_COLUMN = "checkup"
    PENDING_FLAG_VALUE = "0"
    RUNTIME_COLUMN = "Runtime"

    def __init__(
        self,
        spreadsheet_id: str,
        sheet_name: str = "data",
        credentials_json: str = "",
        credentials_path: str = "",
    ) -> None:
        self.spreadsheet_id = str(spreadsheet_id or "").strip()
        self.sheet_name = str(sheet_name or "").strip() or "data"
        self.credentials_json = str(credentials_json or "").strip()
        self.credentials_path = str(credentials_path or "").strip()
        self._service = None

    @classmethod
    def from_config(cls, config: AgentConfig) -> "SheetsClient":
        return cls(
            spreadsheet_id=config.sheet_id,
            sheet_name=config.sheet_name,
            credentials_json=config.google_credentials_json,
            credentials_path=config.google_credentials_path,
        )

    def _build_credentials(self) -> service_account.Credentials:
        if self.credentials_json:
            try:
                info = json.loads(self.credentials_json)
            except json.JSONDecodeError as exc:
                raise RuntimeError(
                    "GOOGLE_CREDENTIALS is not valid service-account JSON."
                ) from exc
            return service_account.Credentials.from_service_account_info(
                info,
                scopes=self.SCOPES,
            )
        if self.credentials_path:
            path = Path(self.credentials_path)
            if not path.exists():
                raise RuntimeError(
                    f"Google credentials file not found: {self.credentials_path}"
                )
            return service_account.Credentials.from_service_account_file(
                str(path),
                scopes=self.SCOPES,
            )
        raise RuntimeError(
            "GOOGLE_CREDENTIALS environment variable not set "
            "(or provide GOOGLE_CREDENTIALS_PATH)."
        )

    def _get_service(self):
        if self._service is not None:
            return self._service
        if not self.spreadsheet_id:
            raise RuntimeError("SHEET_ID environment variable not set.")

        credentials = self._build_credentials()
        http = None
        if AuthorizedHttp is not None:
            http = AuthorizedHttp(
                credentials,
                http=httplib2.Http(timeout=self.HTTP_TIMEOUT_SEC),
            )
        if http is not None:
            self._service = build("sheets", "v4", http=http, cache_discovery=False)
        else:
            self._service = build(
                "sheets",
                "v4",
                credentials=credentials,
                cache_discovery=False,
            )
        return self._service

    def _get_values(self, range_name: str) -> list[list[Any]]:
        service = self._get_service()
        response = (
            service.spreadsheets()
            .values()
            .get(spreadsheetId=self.spreadsheet_id, range=range_name)
            .execute(num_retries=self.API_RETRIES)
        )
        values = response.get("values") or []
        return [row if isinstance(row, list) else [] for row in values]

    def fetch_rows(self) -> list[dict[str, Any]]:
        rows = self._get_values(self.sheet_name)
        if len(rows) < 2:
            return []

        header = [str(cell) for cell in rows[0]]
        records: list[dict[str, Any]] = []
        # Row numbers are 1-based and the header occupies row 1.
        for offset, row in enumerate(rows[1:], start=2):
            record: dict[str, Any] = {"rowNumber": offset}
            for index, key in enumerate(header):
                value = row[index] if index < len(row) else None
                record[key] = "" if value is None else value
            records.append(record)
        return records

    def fetch_pending_rows(self) -> list[dict[str, Any]]:
        pending = [
            row
            for row in self.fetch_rows()
            if str(row.get(self.PENDING_FLAG_COLUMN, "")) == self.PENDING_FLAG_VALUE
        ]
        pending.sort(key=lambda row: _runtime_timestamp(row.get(self.RUNTIME_COLUMN)), reverse=True)
        return pending

    def fetch_header(self) -> list[str]:
        rows = self._get_values(f"{self.sheet_name}!1:1")
        if not rows or not rows[0]:
            raise RuntimeError("Could not read sheet headers")
        return [str(cell) for cell in rows[0]]

    def update_row(self, row_number: int, new_values: dict[str, Any]) -> dict[str, Any]:
        if not row_number or not new_values:
            raise ValueError("Missing rowNumber or newValues")
        if not isinstance(new_values, dict):
            raise ValueError("newValues must be an object keyed by column header")
        try:
            row_number = int(row_number)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid rowNumber: {row_number!r}") from exc
        if row_number < 2:
            raise ValueError(f"rowNumber must point at a data row (>= 2), got {row_number}")

        header = self.fetch_header()
        updates = []
        for key, value in new_values.items():
            if key not in header:
                continue
            column = column_letter(header.index(key))
            updates.append(
                {
                    "range": f"{self.sheet_name}!{column}{row_number}",
                    "values": [[value]],
                }
            )
        if not updates:
            raise ValueError("No valid columns to update")

        service = self._get_service()
        return (
            service.spreadsheets()
            .values()
            .batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={"valueInputOption": "USER_ENTERED", "data": updates},
            )
            .execute(num_retries=self.API_RETRIES)
        )
