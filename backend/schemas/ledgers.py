from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
import ledger_settings
from models.ledgers import AccountType, SyncMethod

# Requests
class SyncAccountRequest(BaseModel):
    customer_id: Optional[int] = None
    supplier_id: Optional[int] = None
    year: Optional[int] = None
    notes: Optional[str] = None
    adjustment_amount: Optional[Decimal] = None
    assigned_user_id: Optional[str] = None

class BatchSyncRequest(BaseModel):
    year: Optional[int] = None
    max_workers: Optional[int] = Field(default=None, ge=1, le=ledger_settings.BATCH_WORKER_LIMIT)

class ManualAdjustmentRequest(BaseModel):
    adjustment_amount: Decimal
    notes: Optional[str] = None

# Period rows
class LedgerPeriod(BaseModel):
    id: int
    customer_id: Optional[int] = None
    supplier_id: Optional[int] = None
    year: int
    start_date: date
    end_date: date
    opening_balance: Decimal
    increase_amount: Decimal
    payment_amount: Decimal
    return_amount: Decimal
    adjustment_amount: Decimal
    closing_balance: Decimal
    notes: Optional[str] = None
    is_locked: bool
    tenant_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PartnerLedger(BaseModel):
    id: int
    customer_id: Optional[int] = None
    supplier_id: Optional[int] = None
    current_balance: Decimal
    assigned_user_id: Optional[str] = None
    balance_updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Sync results
class FullSyncResult(BaseModel):
    account_type: AccountType
    account_id: int
    year: int
    start_year: int
    end_year: int
    final_balance: Decimal
    years_synced: List[int]
    locked_years: List[int] = []

class SnapshotSyncResult(BaseModel):
    period: LedgerPeriod
    status: str
    method: SyncMethod

# Batch
class BatchFailure(BaseModel):
    account_type: AccountType
    account_id: int
    error: str

class BatchSyncSummary(BaseModel):
    year: int
    mode: str
    total_checked: int
    success: int
    failed: int
    skipped: int = 0
    cancelled: bool = False
    duration_seconds: float
    errors: List[BatchFailure]

# Integrity audit
class Discrepancy(BaseModel):
    type: str
    account_type: AccountType
    account_id: int
    name: Optional[str] = None
    reason: str
    details: str
    severity: str

class IntegrityReport(BaseModel):
    year: int
    total_checked: int
    discrepancy_count: int
    discrepancies: List[Discrepancy]

# Read views
class LedgerSummary(BaseModel):
    opening: Decimal = Decimal(0)
    increase: Decimal = Decimal(0)
    payment: Decimal = Decimal(0)
    returns: Decimal = Decimal(0)
    adjustment: Decimal = Decimal(0)
    closing: Decimal = Decimal(0)

class LedgerListItem(BaseModel):
    period_id: int
    account_type: AccountType
    account_id: int
    code: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    assigned_user_id: Optional[str] = None
    year: int
    opening_balance: Decimal
    increase_amount: Decimal
    payment_amount: Decimal
    return_amount: Decimal
    adjustment_amount: Decimal
    closing_balance: Decimal
    status: str
    is_locked: bool
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None

class LedgerList(BaseModel):
    year: int
    total: int
    skip: int
    limit: int
    summary: LedgerSummary
    items: List[LedgerListItem]

class PartnerInfo(BaseModel):
    id: int
    code: Optional[str] = None
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

    class Config:
        from_attributes = True

class MovementEntry(BaseModel):
    id: int
    date: date
    reference: Optional[str] = None
    amount: Decimal
    notes: Optional[str] = None

class LedgerFinancials(BaseModel):
    opening: Decimal
    increase: Decimal
    payment: Decimal
    returns: Decimal
    adjustment: Decimal
    closing: Decimal
    status: str

class LedgerHistory(BaseModel):
    orders: List[MovementEntry]
    payments: List[MovementEntry]
    returns: List[MovementEntry]

class LedgerDetail(BaseModel):
    account_type: AccountType
    year: int
    info: PartnerInfo
    ledger: Optional[PartnerLedger] = None
    period: Optional[LedgerPeriod] = None
    has_data: bool
    financials: LedgerFinancials
    history: LedgerHistory
