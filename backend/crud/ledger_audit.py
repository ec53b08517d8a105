import logging
from io import BytesIO
from typing import List

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlalchemy.orm import Session

from crud.ledger_sources import get_active_accounts
from crud.ledger_store import get_periods_for_year, validate_year
from models.business_partners import BusinessPartner
from models.ledgers import AccountType, LedgerPeriod
from schemas.ledgers import Discrepancy, IntegrityReport
from utils.ledger_math import compute_closing_balance, to_decimal, within_tolerance

logger = logging.getLogger(__name__)

INTERNAL_MATH_ERROR = "INTERNAL_MATH_ERROR"
CROSS_PERIOD_ERROR = "CROSS_PERIOD_ERROR"
MISSING_DATA = "MISSING_DATA"

SEVERITY = {
    INTERNAL_MATH_ERROR: "CRITICAL",
    CROSS_PERIOD_ERROR: "HIGH",
    MISSING_DATA: "MEDIUM",
}


def _prior_closings(db: Session, tenant_id: str, year: int) -> dict:
    rows = db.query(LedgerPeriod.customer_id, LedgerPeriod.supplier_id, LedgerPeriod.closing_balance).filter(
        LedgerPeriod.tenant_id == tenant_id,
        LedgerPeriod.year == year
    ).all()
    closings = {}
    for customer_id, supplier_id, closing in rows:
        key = f"C-{customer_id}" if customer_id is not None else f"S-{supplier_id}"
        closings[key] = to_decimal(closing)
    return closings


def _partner_names(db: Session, tenant_id: str, partner_ids) -> dict:
    if not partner_ids:
        return {}
    rows = db.query(BusinessPartner.id, BusinessPartner.name).filter(
        BusinessPartner.tenant_id == tenant_id,
        BusinessPartner.id.in_(list(partner_ids))
    ).all()
    return {row.id: row.name for row in rows}


def audit_year(db: Session, tenant_id: str, year: int) -> IntegrityReport:
    """
    Read-only consistency check of the ledger periods of `year`.

    - INTERNAL_MATH_ERROR: a row's closing balance does not follow from its own amounts.
    - CROSS_PERIOD_ERROR: the row's opening balance differs from last year's closing.
    - MISSING_DATA: the account has movements in `year` but no period row.

    Differences up to the configured tolerance are ignored. Discrepancies are
    returned, never raised.
    """
    year = validate_year(year)
    logger.info(f"Checking ledger integrity for tenant {tenant_id}, year {year}")

    periods = get_periods_for_year(db, tenant_id, year)
    prior_closings = _prior_closings(db, tenant_id, year - 1)
    discrepancies: List[Discrepancy] = []
    checked_keys = set()

    for period in periods:
        account = period.account_ref
        checked_keys.add(account.key)
        partner = period.partner
        name = partner.name if partner is not None else None

        expected = compute_closing_balance(
            period.opening_balance, period.increase_amount, period.payment_amount,
            period.return_amount, period.adjustment_amount
        )
        stored = to_decimal(period.closing_balance)
        if not within_tolerance(expected, stored):
            discrepancies.append(Discrepancy(
                type=INTERNAL_MATH_ERROR,
                account_type=account.account_type,
                account_id=account.partner_id,
                name=name,
                reason=f"Closing balance of {year} does not match its movements",
                details=f"Computed {expected} != stored {stored}",
                severity=SEVERITY[INTERNAL_MATH_ERROR],
            ))

        prior_closing = prior_closings.get(account.key)
        if prior_closing is not None:
            opening = to_decimal(period.opening_balance)
            if not within_tolerance(prior_closing, opening):
                discrepancies.append(Discrepancy(
                    type=CROSS_PERIOD_ERROR,
                    account_type=account.account_type,
                    account_id=account.partner_id,
                    name=name,
                    reason=f"Balance break between {year - 1} and {year}",
                    details=f"Closing {year - 1} ({prior_closing}) != opening {year} ({opening})",
                    severity=SEVERITY[CROSS_PERIOD_ERROR],
                ))

    missing = [account for account in get_active_accounts(db, tenant_id, year) if account.key not in checked_keys]
    names = _partner_names(db, tenant_id, {account.partner_id for account in missing})
    for account in missing:
        label = "Customer" if account.account_type == AccountType.CUSTOMER else "Supplier"
        discrepancies.append(Discrepancy(
            type=MISSING_DATA,
            account_type=account.account_type,
            account_id=account.partner_id,
            name=names.get(account.partner_id, f"{label} ID {account.partner_id}"),
            reason=f"Has transactions in {year} but no ledger period",
            details="Run a full or snapshot sync for this account",
            severity=SEVERITY[MISSING_DATA],
        ))

    if discrepancies:
        logger.warning(f"Ledger integrity {year} (tenant {tenant_id}): {len(discrepancies)} discrepancies in {len(periods)} periods")
    else:
        logger.info(f"Ledger integrity {year} (tenant {tenant_id}): {len(periods)} periods OK")

    return IntegrityReport(
        year=year,
        total_checked=len(periods),
        discrepancy_count=len(discrepancies),
        discrepancies=discrepancies,
    )


def export_integrity_report(report: IntegrityReport) -> BytesIO:
    """Excel workbook of the discrepancy list, one row per discrepancy."""
    wb = Workbook()
    ws = wb.active
    ws.title = f"Integrity {report.year}"

    header = ["Type", "Severity", "Account Type", "Account ID", "Name", "Reason", "Details"]
    ws.append([f"LEDGER INTEGRITY {report.year}", f"Checked: {report.total_checked}",
               f"Discrepancies: {report.discrepancy_count}"])
    ws.append(header)
    for item in report.discrepancies:
        ws.append([
            item.type, item.severity, item.account_type.value, item.account_id,
            item.name or "", item.reason, item.details,
        ])

    title_fill = PatternFill(start_color="FFFF00", end_color="FFFF00", fill_type="solid")
    header_fill = PatternFill(start_color="FF6600", end_color="FF6600", fill_type="solid")
    severity_fills = {
        "CRITICAL": PatternFill(start_color="FF0000", end_color="FF0000", fill_type="solid"),
        "HIGH": PatternFill(start_color="FFC000", end_color="FFC000", fill_type="solid"),
        "MEDIUM": PatternFill(start_color="92D050", end_color="92D050", fill_type="solid"),
    }
    bold_font_black = Font(bold=True, color="000000")
    bold_font_white = Font(bold=True, color="FFFFFF")

    for cell in ws[1]:
        cell.fill = title_fill
        cell.font = bold_font_black

    widths = [22, 12, 14, 12, 30, 45, 45]
    for col_idx, cell in enumerate(ws[2]):
        cell.fill = header_fill
        cell.font = bold_font_white
        cell.alignment = Alignment(horizontal='center', vertical='center')
        ws.column_dimensions[get_column_letter(col_idx + 1)].width = widths[col_idx]

    for row in ws.iter_rows(min_row=3, max_row=ws.max_row):
        fill = severity_fills.get(row[1].value)
        if fill is not None:
            row[1].fill = fill

    excel_file = BytesIO()
    wb.save(excel_file)
    excel_file.seek(0)
    return excel_file
