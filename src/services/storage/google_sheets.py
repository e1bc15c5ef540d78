"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. A household can read and correct its budget directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for household use)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)

Category maps and settings are stored as JSON in a single cell so a
template or month stays one row.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import get_settings
from src.models.audit import AuditEvent, AuditEventType, AuditSeverity
from src.models.budget import (
    AdjustmentType,
    BudgetAdjustment,
    CategoryConfig,
    GlobalBudgetSettings,
    MonthlyBudget,
    PersonalBudget,
)
from src.services.storage.interface import (
    AdjustmentStorageInterface,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    SnapshotStorageInterface,
    StaleSnapshotWriteError,
    StorageError,
    TemplateStorageInterface,
)


logger = structlog.get_logger(__name__)


# Column mappings for PersonalBudgets sheet
TEMPLATE_COLUMNS = [
    "id",
    "owner_id",
    "version",
    "name",
    "is_active",
    "created_at",
    "updated_at",
    "notes",
    "categories_json",
    "global_settings_json",
]

# Column mappings for MonthlyBudgets sheet
SNAPSHOT_COLUMNS = [
    "id",
    "owner_id",
    "personal_budget_id",
    "year",
    "month",
    "adjustment_count",
    "is_locked",
    "created_at",
    "updated_at",
    "notes",
    "categories_json",
    "original_categories_json",
    "global_settings_json",
]

# Column mappings for BudgetAdjustments sheet
ADJUSTMENT_COLUMNS = [
    "id",
    "owner_id",
    "category_name",
    "current_limit",
    "new_limit",
    "adjustment_type",
    "adjustment_amount",
    "effective_year",
    "effective_month",
    "reason",
    "is_applied",
    "created_at",
    "applied_at",
    "created_by",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Lookup errors are final; everything else from the API may be transient.
sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((NotFoundError, DuplicateError)),
    reraise=True,
)


def _cell_getter(row: list):
    """Handle missing columns gracefully."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _categories_to_json(categories: dict[str, CategoryConfig]) -> str:
    return json.dumps(
        {name: config.model_dump(mode="json") for name, config in categories.items()}
    )


def _categories_from_json(raw: str) -> dict[str, CategoryConfig]:
    if not raw:
        return {}
    return {
        name: CategoryConfig.model_validate(data)
        for name, data in json.loads(raw).items()
    }


def _settings_from_json(raw: str) -> GlobalBudgetSettings:
    if not raw:
        return GlobalBudgetSettings()
    return GlobalBudgetSettings.model_validate_json(raw)


def _rewrite_row(sheet: gspread.Worksheet, row_number: int, values: list) -> None:
    """Overwrite a whole row, one cell at a time."""
    for col_idx, value in enumerate(values, start=1):
        sheet.update_cell(row_number, col_idx, value)


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
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

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
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("creating_worksheet", title=title)
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_personal_budgets_sheet(self) -> gspread.Worksheet:
        """Get or create the PersonalBudgets worksheet."""
        return self._get_or_create_sheet(
            self._settings.personal_budgets_sheet_name,
            TEMPLATE_COLUMNS,
        )

    def get_monthly_budgets_sheet(self) -> gspread.Worksheet:
        """Get or create the MonthlyBudgets worksheet."""
        return self._get_or_create_sheet(
            self._settings.monthly_budgets_sheet_name,
            SNAPSHOT_COLUMNS,
        )

    def get_adjustments_sheet(self) -> gspread.Worksheet:
        """Get or create the BudgetAdjustments worksheet."""
        return self._get_or_create_sheet(
            self._settings.adjustments_sheet_name,
            ADJUSTMENT_COLUMNS,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsTemplateStorage(TemplateStorageInterface):
    """
    Google Sheets implementation of personal budget storage.

    One template version per row. Older versions stay in the sheet
    with is_active=False.
    """

    IS_ACTIVE_COL = TEMPLATE_COLUMNS.index("is_active") + 1
    UPDATED_AT_COL = TEMPLATE_COLUMNS.index("updated_at") + 1

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _template_to_row(self, template: PersonalBudget) -> list:
        """Convert a PersonalBudget to a spreadsheet row."""
        return [
            str(template.id),
            template.owner_id,
            str(template.version),
            template.name,
            str(template.is_active),
            template.created_at.isoformat(),
            template.updated_at.isoformat(),
            template.notes or "",
            _categories_to_json(template.categories),
            template.global_settings.model_dump_json(),
        ]

    def _row_to_template(self, row: list) -> PersonalBudget:
        """Convert a spreadsheet row to a PersonalBudget."""
        safe_get = _cell_getter(row)
        return PersonalBudget(
            id=UUID(safe_get(0)),
            owner_id=safe_get(1),
            version=int(safe_get(2, "1")),
            name=safe_get(3) or "My Budget",
            is_active=safe_get(4).lower() == "true",
            created_at=datetime.fromisoformat(safe_get(5)),
            updated_at=datetime.fromisoformat(safe_get(6)),
            notes=safe_get(7) or None,
            categories=_categories_from_json(safe_get(8)),
            global_settings=_settings_from_json(safe_get(9)),
        )

    def _owned_rows(self, sheet: gspread.Worksheet, owner_id: str) -> list[tuple[int, PersonalBudget]]:
        """All parseable rows for an owner, with their sheet row numbers."""
        owned = []
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if not row or len(row) < 2 or row[1] != owner_id:
                continue
            try:
                owned.append((idx, self._row_to_template(row)))
            except ValueError as e:
                logger.warning("skipping_malformed_row", sheet="templates", row=idx, error=str(e))
        return owned

    async def get_active_template(self, owner_id: str) -> Optional[PersonalBudget]:
        try:
            sheet = self._client.get_personal_budgets_sheet()
            for _, template in self._owned_rows(sheet, owner_id):
                if template.is_active:
                    return template
            return None
        except Exception as e:
            raise StorageError(f"Failed to get personal budget: {e}") from e

    async def get_template_by_id(
        self,
        owner_id: str,
        template_id: UUID,
    ) -> Optional[PersonalBudget]:
        try:
            sheet = self._client.get_personal_budgets_sheet()
            for _, template in self._owned_rows(sheet, owner_id):
                if template.id == template_id:
                    return template
            return None
        except Exception as e:
            raise StorageError(f"Failed to get personal budget: {e}") from e

    async def list_template_versions(self, owner_id: str) -> list[PersonalBudget]:
        try:
            sheet = self._client.get_personal_budgets_sheet()
            templates = [t for _, t in self._owned_rows(sheet, owner_id)]
            templates.sort(key=lambda t: t.version, reverse=True)
            return templates
        except Exception as e:
            raise StorageError(f"Failed to list personal budgets: {e}") from e

    @sheets_retry
    async def save_template(
        self,
        owner_id: str,
        name: str,
        categories: dict[str, CategoryConfig],
        global_settings: GlobalBudgetSettings,
        notes: Optional[str] = None,
    ) -> PersonalBudget:
        try:
            sheet = self._client.get_personal_budgets_sheet()
            owned = self._owned_rows(sheet, owner_id)
            now = datetime.utcnow()

            # Deactivate the predecessor before the new version lands
            for idx, template in owned:
                if template.is_active:
                    sheet.update_cell(idx, self.IS_ACTIVE_COL, "False")
                    sheet.update_cell(idx, self.UPDATED_AT_COL, now.isoformat())

            template = PersonalBudget(
                owner_id=owner_id,
                version=max((t.version for _, t in owned), default=0) + 1,
                name=name,
                categories=categories,
                global_settings=global_settings,
                is_active=True,
                notes=notes,
            )
            sheet.append_row(self._template_to_row(template), value_input_option="RAW")
            return template
        except Exception as e:
            raise StorageError(f"Failed to save personal budget: {e}") from e

    async def set_active_template(
        self,
        owner_id: str,
        template_id: UUID,
    ) -> PersonalBudget:
        try:
            sheet = self._client.get_personal_budgets_sheet()
            owned = self._owned_rows(sheet, owner_id)

            target = next((t for _, t in owned if t.id == template_id), None)
            if target is None:
                raise NotFoundError(f"Personal budget not found: {template_id}")

            now = datetime.utcnow()
            for idx, template in owned:
                should_be_active = template.id == template_id
                if template.is_active != should_be_active:
                    sheet.update_cell(idx, self.IS_ACTIVE_COL, str(should_be_active))
                    sheet.update_cell(idx, self.UPDATED_AT_COL, now.isoformat())

            return target.model_copy(update={"is_active": True, "updated_at": now})
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to activate personal budget: {e}") from e

    async def update_template_metadata(
        self,
        owner_id: str,
        template_id: UUID,
        name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PersonalBudget:
        try:
            sheet = self._client.get_personal_budgets_sheet()
            for idx, template in self._owned_rows(sheet, owner_id):
                if template.id != template_id:
                    continue

                updates = {"updated_at": datetime.utcnow()}
                if name is not None:
                    updates["name"] = name
                if notes is not None:
                    updates["notes"] = notes
                template = template.model_copy(update=updates)
                _rewrite_row(sheet, idx, self._template_to_row(template))
                return template

            raise NotFoundError(f"Personal budget not found: {template_id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update personal budget: {e}") from e


class GoogleSheetsSnapshotStorage(SnapshotStorageInterface):
    """
    Google Sheets implementation of monthly budget storage.

    One month per row. The row for a (owner, year, month) is written
    once at creation and then updated in place.
    """

    IS_LOCKED_COL = SNAPSHOT_COLUMNS.index("is_locked") + 1
    UPDATED_AT_COL = SNAPSHOT_COLUMNS.index("updated_at") + 1

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _snapshot_to_row(self, snapshot: MonthlyBudget) -> list:
        """Convert a MonthlyBudget to a spreadsheet row."""
        return [
            str(snapshot.id),
            snapshot.owner_id,
            str(snapshot.personal_budget_id) if snapshot.personal_budget_id else "",
            str(snapshot.year),
            str(snapshot.month),
            str(snapshot.adjustment_count),
            str(snapshot.is_locked),
            snapshot.created_at.isoformat(),
            snapshot.updated_at.isoformat(),
            snapshot.notes or "",
            _categories_to_json(snapshot.categories),
            _categories_to_json(snapshot.original_categories),
            snapshot.global_settings.model_dump_json(),
        ]

    def _row_to_snapshot(self, row: list) -> MonthlyBudget:
        """Convert a spreadsheet row to a MonthlyBudget."""
        safe_get = _cell_getter(row)
        return MonthlyBudget(
            id=UUID(safe_get(0)),
            owner_id=safe_get(1),
            personal_budget_id=UUID(safe_get(2)) if safe_get(2) else None,
            year=int(safe_get(3)),
            month=int(safe_get(4)),
            adjustment_count=int(safe_get(5, "0")),
            is_locked=safe_get(6).lower() == "true",
            created_at=datetime.fromisoformat(safe_get(7)),
            updated_at=datetime.fromisoformat(safe_get(8)),
            notes=safe_get(9) or None,
            categories=_categories_from_json(safe_get(10)),
            original_categories=_categories_from_json(safe_get(11)),
            global_settings=_settings_from_json(safe_get(12)),
        )

    def _rows(self, sheet: gspread.Worksheet) -> list[tuple[int, MonthlyBudget]]:
        snapshots = []
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if not row or not row[0]:
                continue
            try:
                snapshots.append((idx, self._row_to_snapshot(row)))
            except ValueError as e:
                logger.warning("skipping_malformed_row", sheet="snapshots", row=idx, error=str(e))
        return snapshots

    def _find(
        self,
        sheet: gspread.Worksheet,
        owner_id: str,
        year: int,
        month: int,
    ) -> Optional[tuple[int, MonthlyBudget]]:
        for idx, snapshot in self._rows(sheet):
            if (
                snapshot.owner_id == owner_id
                and snapshot.year == year
                and snapshot.month == month
            ):
                return idx, snapshot
        return None

    async def get_snapshot(
        self,
        owner_id: str,
        year: int,
        month: int,
    ) -> Optional[MonthlyBudget]:
        try:
            sheet = self._client.get_monthly_budgets_sheet()
            found = self._find(sheet, owner_id, year, month)
            return found[1] if found else None
        except Exception as e:
            raise StorageError(f"Failed to get monthly budget: {e}") from e

    async def get_snapshot_by_id(self, snapshot_id: UUID) -> Optional[MonthlyBudget]:
        try:
            sheet = self._client.get_monthly_budgets_sheet()
            for _, snapshot in self._rows(sheet):
                if snapshot.id == snapshot_id:
                    return snapshot
            return None
        except Exception as e:
            raise StorageError(f"Failed to get monthly budget: {e}") from e

    @sheets_retry
    async def insert_snapshot(self, snapshot: MonthlyBudget) -> MonthlyBudget:
        try:
            sheet = self._client.get_monthly_budgets_sheet()
            if self._find(sheet, snapshot.owner_id, snapshot.year, snapshot.month):
                raise DuplicateError(
                    f"Monthly budget already exists for {snapshot.year}-{snapshot.month:02d}"
                )
            sheet.append_row(self._snapshot_to_row(snapshot), value_input_option="RAW")
            return snapshot
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save monthly budget: {e}") from e

    async def save_snapshot_adjustment(
        self,
        snapshot_id: UUID,
        category_name: str,
        new_limit: Decimal,
    ) -> MonthlyBudget:
        try:
            sheet = self._client.get_monthly_budgets_sheet()
            for idx, snapshot in self._rows(sheet):
                if snapshot.id != snapshot_id:
                    continue

                if category_name not in snapshot.categories:
                    raise NotFoundError(
                        f"Category not in monthly budget: {category_name}"
                    )
                categories = dict(snapshot.categories)
                categories[category_name] = categories[category_name].with_limit(new_limit)
                snapshot = snapshot.model_copy(update={
                    "categories": categories,
                    "adjustment_count": snapshot.adjustment_count + 1,
                    "updated_at": datetime.utcnow(),
                })
                _rewrite_row(sheet, idx, self._snapshot_to_row(snapshot))
                return snapshot

            raise StaleSnapshotWriteError(snapshot_id)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update monthly budget: {e}") from e

    async def set_locked(
        self,
        owner_id: str,
        year: int,
        month: int,
        locked: bool,
    ) -> MonthlyBudget:
        try:
            sheet = self._client.get_monthly_budgets_sheet()
            found = self._find(sheet, owner_id, year, month)
            if found is None:
                raise NotFoundError(f"Monthly budget not found for {year}-{month:02d}")

            idx, snapshot = found
            now = datetime.utcnow()
            sheet.update_cell(idx, self.IS_LOCKED_COL, str(locked))
            sheet.update_cell(idx, self.UPDATED_AT_COL, now.isoformat())
            return snapshot.model_copy(update={"is_locked": locked, "updated_at": now})
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to lock monthly budget: {e}") from e

    async def list_snapshots(
        self,
        owner_id: str,
        year: Optional[int] = None,
        limit: int = 12,
    ) -> list[MonthlyBudget]:
        try:
            sheet = self._client.get_monthly_budgets_sheet()
            snapshots = [
                s for _, s in self._rows(sheet)
                if s.owner_id == owner_id and (year is None or s.year == year)
            ]
            # Newest month first
            snapshots.sort(key=lambda s: (s.year, s.month), reverse=True)
            return snapshots[:limit]
        except Exception as e:
            raise StorageError(f"Failed to list monthly budgets: {e}") from e


class GoogleSheetsAdjustmentStorage(AdjustmentStorageInterface):
    """
    Google Sheets implementation of scheduled adjustment storage.

    Pending rows are deleted on cancel. Applied rows are kept as history.
    """

    IS_APPLIED_COL = ADJUSTMENT_COLUMNS.index("is_applied") + 1
    APPLIED_AT_COL = ADJUSTMENT_COLUMNS.index("applied_at") + 1

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _adjustment_to_row(self, adjustment: BudgetAdjustment) -> list:
        """Convert a BudgetAdjustment to a spreadsheet row."""
        return [
            str(adjustment.id),
            adjustment.owner_id,
            adjustment.category_name,
            str(adjustment.current_limit),
            str(adjustment.new_limit),
            adjustment.adjustment_type.value,
            str(adjustment.adjustment_amount),
            str(adjustment.effective_year),
            str(adjustment.effective_month),
            adjustment.reason or "",
            str(adjustment.is_applied),
            adjustment.created_at.isoformat(),
            adjustment.applied_at.isoformat() if adjustment.applied_at else "",
            adjustment.created_by or "",
        ]

    def _row_to_adjustment(self, row: list) -> BudgetAdjustment:
        """Convert a spreadsheet row to a BudgetAdjustment."""
        safe_get = _cell_getter(row)
        return BudgetAdjustment(
            id=UUID(safe_get(0)),
            owner_id=safe_get(1),
            category_name=safe_get(2),
            current_limit=Decimal(safe_get(3, "0")),
            new_limit=Decimal(safe_get(4, "0")),
            adjustment_type=AdjustmentType(safe_get(5)),
            adjustment_amount=Decimal(safe_get(6, "0")),
            effective_year=int(safe_get(7)),
            effective_month=int(safe_get(8)),
            reason=safe_get(9) or None,
            is_applied=safe_get(10).lower() == "true",
            created_at=datetime.fromisoformat(safe_get(11)),
            applied_at=datetime.fromisoformat(safe_get(12)) if safe_get(12) else None,
            created_by=safe_get(13) or None,
        )

    def _owned_rows(self, sheet: gspread.Worksheet, owner_id: str) -> list[tuple[int, BudgetAdjustment]]:
        owned = []
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if not row or len(row) < 2 or row[1] != owner_id:
                continue
            try:
                owned.append((idx, self._row_to_adjustment(row)))
            except (ValueError, ArithmeticError) as e:
                logger.warning("skipping_malformed_row", sheet="adjustments", row=idx, error=str(e))
        return owned

    async def list_pending(
        self,
        owner_id: str,
        year: int,
        month: int,
    ) -> list[BudgetAdjustment]:
        try:
            sheet = self._client.get_adjustments_sheet()
            pending = [
                a for _, a in self._owned_rows(sheet, owner_id)
                if not a.is_applied and a.targets(year, month)
            ]
            pending.sort(key=lambda a: a.category_name)
            return pending
        except Exception as e:
            raise StorageError(f"Failed to list adjustments: {e}") from e

    async def list_all_pending(self, owner_id: str) -> list[BudgetAdjustment]:
        try:
            sheet = self._client.get_adjustments_sheet()
            pending = [a for _, a in self._owned_rows(sheet, owner_id) if not a.is_applied]
            pending.sort(key=lambda a: (a.effective_year, a.effective_month, a.category_name))
            return pending
        except Exception as e:
            raise StorageError(f"Failed to list adjustments: {e}") from e

    async def list_applied(
        self,
        owner_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> list[BudgetAdjustment]:
        try:
            sheet = self._client.get_adjustments_sheet()
            applied = [
                a for _, a in self._owned_rows(sheet, owner_id)
                if a.is_applied
                and (year is None or a.effective_year == year)
                and (month is None or a.effective_month == month)
            ]
            applied.sort(key=lambda a: a.category_name)
            return applied
        except Exception as e:
            raise StorageError(f"Failed to list adjustments: {e}") from e

    @sheets_retry
    async def insert(self, adjustment: BudgetAdjustment) -> BudgetAdjustment:
        try:
            sheet = self._client.get_adjustments_sheet()
            sheet.append_row(self._adjustment_to_row(adjustment), value_input_option="RAW")
            return adjustment
        except Exception as e:
            raise StorageError(f"Failed to save adjustment: {e}") from e

    async def delete(self, owner_id: str, adjustment_id: UUID) -> bool:
        try:
            sheet = self._client.get_adjustments_sheet()
            for idx, adjustment in self._owned_rows(sheet, owner_id):
                if adjustment.id == adjustment_id and not adjustment.is_applied:
                    sheet.delete_rows(idx)
                    return True
            return False
        except Exception as e:
            raise StorageError(f"Failed to delete adjustment: {e}") from e

    async def mark_applied(self, adjustment: BudgetAdjustment) -> BudgetAdjustment:
        try:
            sheet = self._client.get_adjustments_sheet()
            for idx, stored in self._owned_rows(sheet, adjustment.owner_id):
                if stored.id != adjustment.id:
                    continue
                applied_at = adjustment.applied_at or datetime.utcnow()
                sheet.update_cell(idx, self.IS_APPLIED_COL, "True")
                sheet.update_cell(idx, self.APPLIED_AT_COL, applied_at.isoformat())
                return stored.model_copy(update={"is_applied": True, "applied_at": applied_at})

            raise NotFoundError(f"Adjustment not found: {adjustment.id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to mark adjustment applied: {e}") from e

    @sheets_retry
    async def restore_pending(self, adjustment: BudgetAdjustment) -> BudgetAdjustment:
        try:
            sheet = self._client.get_adjustments_sheet()
            for idx, stored in self._owned_rows(sheet, adjustment.owner_id):
                if stored.id != adjustment.id:
                    continue
                sheet.update_cell(idx, self.IS_APPLIED_COL, "False")
                sheet.update_cell(idx, self.APPLIED_AT_COL, "")
                return stored.model_copy(update={"is_applied": False, "applied_at": None})

            raise NotFoundError(f"Adjustment not found: {adjustment.id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to restore pending adjustment: {e}") from e


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _event_to_row(self, event: AuditEvent) -> list:
        """Convert an AuditEvent to a spreadsheet row."""
        return event.to_sheets_row()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _cell_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            owner_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _events(self, rows: list[list]) -> list[AuditEvent]:
        events = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("skipping_malformed_row", sheet="audit", error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append(self, row: list) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(row, value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._append(self._event_to_row(event))
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_write_failed",
                event_type=event.event_type.value,
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            sheet = self._client.get_audit_sheet()
            rows = [
                row for row in sheet.get_all_values()[1:]
                if len(row) > 7 and row[7] == str(correlation_id)
            ]
            events = self._events(rows)
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            sheet = self._client.get_audit_sheet()
            rows = [
                row for row in sheet.get_all_values()[1:]
                if len(row) > 6 and row[5] == entity_type and row[6] == str(entity_id)
            ]
            events = self._events(rows)
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            events = self._events(sheet.get_all_values()[1:])
            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
