"""
Google Sheets Document Store

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Non-technical users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for a personal ledger)
- Limited query capabilities (we filter in Python)
- No native transactions. A commit reads every worksheet the batch touches,
  applies the batch in memory, and writes all of those worksheets back in a
  single spreadsheets.batchUpdate request (grid resize and cell writes
  together; the API applies all requests or none). Writes are serialized
  per process.

Each collection lives in its own worksheet with one document per row.
Cells are typed through COLUMN_SPECS; an empty cell is an absent field.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger.config import get_settings
from ledger.services.storage.interface import (
    ACCOUNTS,
    AUDIT_EVENTS,
    RECURRING_TRANSACTIONS,
    TRANSACTIONS,
    ConnectionError,
    DocumentStore,
    StorageError,
    WriteBatch,
    apply_operations,
)


# Column specs per collection: (field, cell type)
ACCOUNT_COLUMNS = [
    ("id", "str"),
    ("owner_id", "str"),
    ("name", "str"),
    ("account_type", "str"),
    ("parent_category", "str"),
    ("sub_category", "str"),
    ("opening_balance", "decimal"),
    ("current_balance", "decimal"),
    ("is_active", "bool"),
    ("icon", "str"),
    ("color", "str"),
    ("created_at", "datetime"),
    ("updated_at", "datetime"),
]

TRANSACTION_COLUMNS = [
    ("id", "str"),
    ("owner_id", "str"),
    ("date", "datetime"),
    ("amount", "decimal"),
    ("debit_account_id", "str"),
    ("credit_account_id", "str"),
    ("note", "str"),
    ("tags", "json"),
    ("created_at", "datetime"),
    ("updated_at", "datetime"),
]

RECURRING_COLUMNS = [
    ("id", "str"),
    ("owner_id", "str"),
    ("amount", "decimal"),
    ("debit_account_id", "str"),
    ("credit_account_id", "str"),
    ("note", "str"),
    ("frequency", "str"),
    ("day_of_recurrence", "int"),
    ("start_date", "date"),
    ("end_date", "date"),
    ("next_occurrence", "date"),
    ("is_active", "bool"),
    ("notify_before_days", "int"),
    ("last_created_date", "date"),
    ("created_at", "datetime"),
    ("updated_at", "datetime"),
]

AUDIT_COLUMNS = [
    ("id", "str"),
    ("timestamp", "datetime"),
    ("event_type", "str"),
    ("severity", "str"),
    ("owner_id", "str"),
    ("entity_type", "str"),
    ("entity_id", "str"),
    ("description", "str"),
    ("details", "json"),
    ("error_code", "str"),
    ("error_message", "str"),
]

COLUMN_SPECS = {
    ACCOUNTS: ACCOUNT_COLUMNS,
    TRANSACTIONS: TRANSACTION_COLUMNS,
    RECURRING_TRANSACTIONS: RECURRING_COLUMNS,
    AUDIT_EVENTS: AUDIT_COLUMNS,
}


def encode_cell(value: Any, kind: str) -> str:
    """Convert a document value to its cell text."""
    if value is None:
        return ""
    if kind == "bool":
        return "TRUE" if value else "FALSE"
    if kind == "json":
        return json.dumps(value, default=str)
    if kind in ("datetime", "date"):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def decode_cell(text: str, kind: str) -> Any:
    """Convert cell text back to a document value. Empty means absent."""
    if text is None or text == "":
        return None
    try:
        if kind == "decimal":
            return Decimal(text)
        if kind == "int":
            return int(text)
        if kind == "bool":
            return text.strip().upper() == "TRUE"
        if kind == "json":
            return json.loads(text)
        if kind == "datetime":
            return datetime.fromisoformat(text)
        if kind == "date":
            return date.fromisoformat(text)
    except (InvalidOperation, ValueError) as e:
        raise StorageError(f"Malformed {kind} cell: {text!r} ({e})")
    return text


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def sheet_name(self, collection: str) -> str:
        return {
            ACCOUNTS: self._settings.accounts_sheet_name,
            TRANSACTIONS: self._settings.transactions_sheet_name,
            RECURRING_TRANSACTIONS: self._settings.recurring_sheet_name,
            AUDIT_EVENTS: self._settings.audit_sheet_name,
        }[collection]

    def get_worksheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet for a collection."""
        spreadsheet = self.get_spreadsheet()
        title = self.sheet_name(collection)
        columns = COLUMN_SPECS[collection]
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row([name for name, _ in columns])
        return sheet


class GoogleSheetsDocumentStore(DocumentStore):
    """
    Google Sheets implementation of the document store.

    Documents are stored one per row, columns fixed per collection.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()

    def _row_to_document(self, collection: str, row: list) -> dict[str, Any]:
        """Convert a spreadsheet row to a document (absent fields dropped)."""
        document = {}
        for index, (field, kind) in enumerate(COLUMN_SPECS[collection]):
            text = row[index] if index < len(row) else ""
            value = decode_cell(text, kind)
            if value is not None:
                document[field] = value
        return document

    def _document_to_row(self, collection: str, doc_id: str, document: dict) -> list:
        """Convert a document to a spreadsheet row."""
        values = {**document, "id": doc_id}
        return [
            encode_cell(values.get(field), kind)
            for field, kind in COLUMN_SPECS[collection]
        ]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_rows(self, collection: str) -> list[list[str]]:
        """All data rows of a collection's worksheet (header excluded)."""
        sheet = self._client.get_worksheet(collection)
        return sheet.get_all_values()[1:]

    def _load(self, collection: str) -> dict[str, dict[str, Any]]:
        documents = {}
        for row in self._read_rows(collection):
            if not row or not row[0]:  # Skip empty rows
                continue
            document = self._row_to_document(collection, row)
            doc_id = document.pop("id")
            documents[doc_id] = document
        return documents

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Retrieve a document by its ID."""
        try:
            document = self._load(collection).get(doc_id)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {collection}: {e}")
        if document is None:
            return None
        return {"id": doc_id, **document}

    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """List documents matching every equality filter."""
        filters = filters or {}
        try:
            documents = self._load(collection)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {collection}: {e}")

        return [
            {"id": doc_id, **document}
            for doc_id, document in documents.items()
            if all(document.get(key) == value for key, value in filters.items())
        ]

    async def commit(self, batch: WriteBatch) -> None:
        """
        Apply a batch by rewriting every touched worksheet in one request.

        The new contents are computed completely before anything is sent,
        so a rejected batch never reaches the spreadsheet. Growing a
        worksheet is part of the same request as the cell writes.
        Worksheets missing entirely are created (with headers) on first
        access, before the batch.
        """
        operations = batch.operations
        if not operations:
            return

        async with self._lock:
            collections = sorted({op.collection for op in operations})
            try:
                staged = {name: self._load(name) for name in collections}
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to read worksheets: {e}")

            previous_sizes = {name: len(docs) for name, docs in staged.items()}
            apply_operations(staged, operations)

            try:
                requests = []
                for name in collections:
                    sheet = self._client.get_worksheet(name)
                    columns = COLUMN_SPECS[name]
                    rows = [[field for field, _ in columns]]
                    rows.extend(
                        self._document_to_row(name, doc_id, document)
                        for doc_id, document in staged[name].items()
                    )
                    # Blank out rows left over from deleted documents
                    leftover = previous_sizes[name] + 1 - len(rows)
                    rows.extend([[""] * len(columns) for _ in range(max(leftover, 0))])

                    if sheet.row_count < len(rows):
                        requests.append(_resize_request(sheet.id, len(rows)))
                    requests.append(_write_request(sheet.id, rows))

                self._client.get_spreadsheet().batch_update({"requests": requests})
            except Exception as e:
                raise StorageError(f"Failed to write batch: {e}")


def _resize_request(sheet_id: int, row_count: int) -> dict:
    return {
        "updateSheetProperties": {
            "properties": {
                "sheetId": sheet_id,
                "gridProperties": {"rowCount": row_count},
            },
            "fields": "gridProperties.rowCount",
        }
    }


def _write_request(sheet_id: int, rows: list[list[str]]) -> dict:
    """Overwrite cells from A1 with raw text (no formula or number parsing)."""
    return {
        "updateCells": {
            "start": {"sheetId": sheet_id, "rowIndex": 0, "columnIndex": 0},
            "rows": [
                {"values": [{"userEnteredValue": {"stringValue": cell}} for cell in row]}
                for row in rows
            ],
            "fields": "userEnteredValue",
        }
    }
