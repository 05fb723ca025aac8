"""Google Sheets access for the purchasing spreadsheet.

This module provides:
1. The `TabularStore` protocol the transition engine depends on
2. `SheetsClient`, its implementation over the Sheets API v4
3. Whole-column reads and writes so a batch touches each column once
"""
import os
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


class SheetsError(Exception):
    """Raised when the spreadsheet cannot be read or written."""
    pass


def _is_transient(error: BaseException) -> bool:
    """Rate limits, server errors and dropped connections are worth retrying."""
    from googleapiclient.errors import HttpError

    if isinstance(error, HttpError):
        status = getattr(error.resp, "status", None)
        return status == 429 or (isinstance(status, int) and status >= 500)
    return isinstance(error, (ConnectionError, TimeoutError))


def column_letter(index: int) -> str:
    """Convert a 1-based column index to A1 notation letters (1 -> A, 27 -> AA)."""
    if index < 1:
        raise ValueError(f"Column index must be >= 1 (got {index})")
    letters = ""
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def _pad(values: List[Any], length: int, fill: Any = "") -> List[Any]:
    return list(values) + [fill] * (length - len(values))


class TabularStore(Protocol):
    """Range-level operations on the purchasing spreadsheet."""

    def get_last_row(self, sheet: str) -> int: ...

    def get_rows(self, sheet: str, start_row: int, num_rows: int, num_cols: int) -> List[List[Any]]: ...

    def get_column(self, sheet: str, column: int, start_row: int, num_rows: int) -> List[Any]: ...

    def set_column(self, sheet: str, column: int, start_row: int, values: Sequence[Any]) -> None: ...

    def get_named_range_rows(self, name: str) -> List[List[Any]]: ...

    def get_named_range_values(self, name: str) -> List[str]: ...

    def get_sheet_values(self, sheet: str) -> List[List[Any]]: ...

    def append_row(self, sheet: str, row: Sequence[Any]) -> None: ...

    def get_sheet_url(self, sheet: str) -> str: ...

    def get_tab_color(self, sheet: str) -> Optional[str]: ...

    def clear_sheet_protections(self) -> int: ...

    def protect_sheet(self, sheet: str, editors: Sequence[str]) -> None: ...


def flatten_named_range(rows: List[List[Any]]) -> List[str]:
    """First column of each row, as strings, with blanks dropped."""
    values = []
    for row in rows:
        value = row[0] if row else ""
        if value is None or str(value) == "":
            continue
        values.append(str(value))
    return values


class SheetsClient:
    """Google Sheets API client for the purchasing spreadsheet."""

    SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

    def __init__(
        self,
        spreadsheet_id: str,
        credentials_file: str = "credentials.json",
        token_file: str = "token.json",
    ):
        self.spreadsheet_id = spreadsheet_id
        self.credentials_file = credentials_file
        self.token_file = token_file
        self._service = None
        self._metadata: Optional[Dict[str, Any]] = None

    def _get_service(self):
        """Get or create the Sheets API service."""
        if self._service is not None:
            return self._service

        from google.oauth2.credentials import Credentials
        from google.auth.transport.requests import Request
        from google_auth_oauthlib.flow import InstalledAppFlow
        from googleapiclient.discovery import build

        creds = None

        if os.path.exists(self.token_file):
            creds = Credentials.from_authorized_user_file(self.token_file, self.SCOPES)

        if not creds or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                creds.refresh(Request())
            else:
                flow = InstalledAppFlow.from_client_secrets_file(
                    self.credentials_file, self.SCOPES
                )
                creds = flow.run_local_server(port=0)

            with open(self.token_file, "w") as token:
                token.write(creds.to_json())

        self._service = build("sheets", "v4", credentials=creds)
        return self._service

    @staticmethod
    def _a1(sheet: str, range_notation: str = "") -> str:
        """Get full range notation with sheet name."""
        if range_notation:
            return f"'{sheet}'!{range_notation}"
        return f"'{sheet}'"

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _execute(self, request) -> Dict[str, Any]:
        return request.execute()

    def _call(self, request, action: str, retry_transient: bool = True) -> Dict[str, Any]:
        # Appends and batch updates pass retry_transient=False: they are not idempotent.
        from googleapiclient.errors import HttpError

        try:
            if retry_transient:
                return self._execute(request)
            return request.execute()
        except (HttpError, ConnectionError, TimeoutError) as e:
            raise SheetsError(f"{action} failed: {e}") from e

    def _get_values(self, range_name: str) -> List[List[Any]]:
        request = self._get_service().spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=range_name,
        )
        return self._call(request, f"Read {range_name}").get("values", [])

    def _get_metadata(self) -> Dict[str, Any]:
        if self._metadata is None:
            request = self._get_service().spreadsheets().get(
                spreadsheetId=self.spreadsheet_id,
                fields="spreadsheetUrl,sheets(properties(sheetId,title,tabColor))",
            )
            self._metadata = self._call(request, "Read spreadsheet metadata")
        return self._metadata

    def _sheet_properties(self, sheet: str) -> Dict[str, Any]:
        for entry in self._get_metadata().get("sheets", []):
            props = entry.get("properties", {})
            if props.get("title") == sheet:
                return props
        raise SheetsError(f"Sheet not found: {sheet}")

    def get_last_row(self, sheet: str) -> int:
        """Number of the last row holding any data."""
        return len(self._get_values(self._a1(sheet)))

    def get_rows(self, sheet: str, start_row: int, num_rows: int, num_cols: int) -> List[List[Any]]:
        """Read a block of rows, padded to `num_rows` x `num_cols`."""
        if num_rows <= 0:
            return []
        end_row = start_row + num_rows - 1
        rows = self._get_values(self._a1(sheet, f"A{start_row}:{column_letter(num_cols)}{end_row}"))
        rows = [_pad(row, num_cols) for row in rows]
        while len(rows) < num_rows:
            rows.append([""] * num_cols)
        return rows[:num_rows]

    def get_column(self, sheet: str, column: int, start_row: int, num_rows: int) -> List[Any]:
        """Read `num_rows` cells of one column starting at `start_row`."""
        if num_rows <= 0:
            return []
        letter = column_letter(column)
        end_row = start_row + num_rows - 1
        rows = self._get_values(self._a1(sheet, f"{letter}{start_row}:{letter}{end_row}"))
        return _pad([row[0] if row else "" for row in rows], num_rows)

    def set_column(self, sheet: str, column: int, start_row: int, values: Sequence[Any]) -> None:
        """Write a whole column block in one request."""
        if not values:
            return
        letter = column_letter(column)
        end_row = start_row + len(values) - 1
        range_name = self._a1(sheet, f"{letter}{start_row}:{letter}{end_row}")
        request = self._get_service().spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=range_name,
            valueInputOption="USER_ENTERED",
            body={"values": [[v] for v in values]},
        )
        self._call(request, f"Write {range_name}")
        logger.debug(f"Wrote {len(values)} cells to {range_name}")

    def get_named_range_rows(self, name: str) -> List[List[Any]]:
        return self._get_values(name)

    def get_named_range_values(self, name: str) -> List[str]:
        """Non-empty values in the named range, flattened into one list."""
        return flatten_named_range(self.get_named_range_rows(name))

    def get_sheet_values(self, sheet: str) -> List[List[Any]]:
        return self._get_values(self._a1(sheet))

    def append_row(self, sheet: str, row: Sequence[Any]) -> None:
        request = self._get_service().spreadsheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=self._a1(sheet, "A:A"),
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [list(row)]},
        )
        self._call(request, f"Append to {sheet}", retry_transient=False)
        logger.info(f"Appended row to {sheet}")

    def get_sheet_url(self, sheet: str) -> str:
        props = self._sheet_properties(sheet)
        return f"{self._get_metadata().get('spreadsheetUrl', '')}#gid={props.get('sheetId', 0)}"

    def get_tab_color(self, sheet: str) -> Optional[str]:
        color = self._sheet_properties(sheet).get("tabColor")
        if not color:
            return None
        channels = [round(color.get(k, 0) * 255) for k in ("red", "green", "blue")]
        return "#" + "".join(f"{c:02x}" for c in channels)

    def clear_sheet_protections(self) -> int:
        """Remove every whole-sheet protection. Returns the number removed."""
        request = self._get_service().spreadsheets().get(
            spreadsheetId=self.spreadsheet_id,
            fields="sheets(protectedRanges(protectedRangeId,range))",
        )
        result = self._call(request, "Read protections")

        requests = []
        for entry in result.get("sheets", []):
            for protected in entry.get("protectedRanges", []):
                bounds = protected.get("range", {})
                # Only whole-sheet protections carry no row/column bounds
                if set(bounds) <= {"sheetId"}:
                    requests.append({
                        "deleteProtectedRange": {"protectedRangeId": protected["protectedRangeId"]}
                    })

        if requests:
            self._batch_update(requests, "Remove protections")
        return len(requests)

    def protect_sheet(self, sheet: str, editors: Sequence[str]) -> None:
        sheet_id = self._sheet_properties(sheet).get("sheetId", 0)
        self._batch_update([{
            "addProtectedRange": {
                "protectedRange": {
                    "range": {"sheetId": sheet_id},
                    "description": "Purchasing officers only",
                    "editors": {"users": list(editors)},
                }
            }
        }], f"Protect {sheet}")

    def _batch_update(self, requests: List[Dict[str, Any]], action: str) -> None:
        request = self._get_service().spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={"requests": requests},
        )
        self._call(request, action, retry_transient=False)


def create_client_from_config(config) -> SheetsClient:
    """Create SheetsClient from AppConfig."""
    return SheetsClient(
        spreadsheet_id=config.sheets.spreadsheet_id,
        credentials_file=config.sheets.credentials_file,
        token_file=config.sheets.token_file,
    )
