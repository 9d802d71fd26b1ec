"""
Google Sheets Data Store

DESIGN DECISION: Google Sheets is used as the initial storage backend because:
1. Non-technical users can view their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

Each table lives in its own worksheet; the first row holds column names.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- Limited query capabilities (we filter, embed and sort in Python)
- No server-side procedures (only locally registered ones can be called)

The implementation follows the abstract interface, so we can swap
to a hosted database later without changing the ledger.
"""

import asyncio
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from card_ledger.config import get_settings
from card_ledger.services.storage.interface import (
    ConnectionError,
    DataAccessError,
    DataStoreInterface,
    TableQuery,
)
from card_ledger.services.storage.memory import Procedure, evaluate_query


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
                    "https://www.googleapis.com/auth/spreadsheets.readonly",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}",
                    cause=e,
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}", cause=e) from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}",
                    cause=e,
                ) from e
        return self._spreadsheet

    def get_table_sheet(self, table: str) -> gspread.Worksheet:
        """Get the worksheet holding a table."""
        spreadsheet = self.get_spreadsheet()
        try:
            return spreadsheet.worksheet(table)
        except gspread.WorksheetNotFound as e:
            raise DataAccessError(f"Unknown table: {table}", cause=e) from e


def _normalize_cell(value: Any) -> Any:
    """Sheets renders booleans as TRUE/FALSE and blanks as empty strings."""
    if isinstance(value, str):
        if value == "TRUE":
            return True
        if value == "FALSE":
            return False
        if value == "":
            return None
    return value


class GoogleSheetsDataStore(DataStoreInterface):
    """
    Google Sheets implementation of the data store.

    Rows are read as strings (never numericised, so money stays
    Decimal-safe) and evaluated with the in-memory query engine.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        procedures: Optional[dict[str, Procedure]] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._procedures: dict[str, Procedure] = dict(procedures or {})

    def register_procedure(self, name: str, procedure: Procedure) -> None:
        """Make a local computation callable through `call`."""
        self._procedures[name] = procedure

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(DataAccessError),
        reraise=True,
    )
    def _load_table(self, table: str) -> list[dict]:
        sheet = self._client.get_table_sheet(table)
        records = sheet.get_all_records(numericise_ignore=["all"])
        return [
            {key: _normalize_cell(value) for key, value in record.items()}
            for record in records
        ]

    def _load_tables(self, request: TableQuery) -> dict[str, list[dict]]:
        names = {request.table, *(embed.table for embed in request.embeds)}
        return {name: self._load_table(name) for name in names}

    async def query(self, request: TableQuery) -> list[dict]:
        """Load the tables a query touches and evaluate it locally."""
        try:
            tables = await asyncio.to_thread(self._load_tables, request)
        except DataAccessError:
            raise
        except Exception as e:
            raise DataAccessError(f"Failed to read {request.table}: {e}", cause=e) from e

        return evaluate_query(tables, request)

    async def call(self, procedure: str, params: dict[str, Any]) -> list[dict]:
        """Invoke a locally registered procedure."""
        if procedure not in self._procedures:
            raise DataAccessError(
                f"Procedure {procedure} is not available on the Google Sheets backend"
            )

        try:
            result = self._procedures[procedure](dict(params))
            if asyncio.iscoroutine(result):
                result = await result
        except DataAccessError:
            raise
        except Exception as e:
            raise DataAccessError(f"Procedure {procedure} failed: {e}", cause=e) from e

        return [dict(row) for row in (result or [])]
