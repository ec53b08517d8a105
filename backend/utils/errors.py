class LedgerError(Exception):
    """Base class for errors raised by the ledger engine."""
    pass


class LedgerValidationError(LedgerError):
    """Raised for a malformed request, e.g. a bad account selector."""
    pass


class AccountNotFoundError(LedgerError):
    """Raised when the referenced customer or supplier does not exist."""

    def __init__(self, account_type: str, partner_id: int):
        self.account_type = account_type
        self.partner_id = partner_id
        super().__init__(f"{account_type.capitalize()} with ID {partner_id} not found")


class PeriodNotFoundError(LedgerError):
    def __init__(self, period_id: int):
        self.period_id = period_id
        super().__init__(f"Ledger period with ID {period_id} not found")


class PeriodLockedError(LedgerError):
    """Raised when an automated operation targets a locked period."""

    def __init__(self, period_id: int, year: int):
        self.period_id = period_id
        self.year = year
        super().__init__(f"Ledger period {year} (ID {period_id}) is locked")
