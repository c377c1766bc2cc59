# app/services/ledger.py - Fees ledger arithmetic shared by every fees operation
"""
Pure functions over a FeesAccount.

Every mutation of an account goes through recalculate(), so the stored
balance always equals total_fees - discount_amount - paid_amount and the
payment status is always derived from it.
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import random

from app.models.base import utcnow
from app.models.fees import FeesAccount, PaymentStatus

CASH = "Cash"
MOBILE_MONEY = "M-Pesa"
BANK_TRANSFER = "Bank Transfer"
CHEQUE = "Cheque"
CARD = "Card Payment"

PAYMENT_METHODS = (CASH, MOBILE_MONEY, BANK_TRANSFER, CHEQUE, CARD)

_METHOD_ALIASES = {
    "mpesa": MOBILE_MONEY,
    "mobile-money": MOBILE_MONEY,
    "mobile money": MOBILE_MONEY,
    "bank": BANK_TRANSFER,
    "card": CARD,
}

MONEY = Decimal("0.01")
ZERO = Decimal("0.00")

# Term month ranges and their due dates (month, day)
_TERM_DUE = {1: (3, 31), 2: (7, 31), 3: (11, 30)}


def to_money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY, rounding=ROUND_HALF_UP)


def normalize_method(method: Optional[str]) -> Optional[str]:
    """Canonical payment method name, or None when unknown"""
    key = (method or "").strip().lower()
    if not key:
        return None
    for canonical in PAYMENT_METHODS:
        if canonical.lower() == key:
            return canonical
    return _METHOD_ALIASES.get(key)


def compute_balance(total_fees, discount_amount, paid_amount) -> Decimal:
    return to_money(total_fees) - to_money(discount_amount) - to_money(paid_amount)


def derive_status(balance, paid_amount) -> PaymentStatus:
    if to_money(balance) <= ZERO:
        return PaymentStatus.PAID
    if to_money(paid_amount) > ZERO:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING


def recalculate(account: FeesAccount) -> FeesAccount:
    account.total_fees = to_money(account.total_fees)
    account.discount_amount = to_money(account.discount_amount)
    account.paid_amount = to_money(account.paid_amount)
    account.balance = compute_balance(account.total_fees, account.discount_amount, account.paid_amount)
    account.payment_status = derive_status(account.balance, account.paid_amount).value
    return account


def apply_payment(account: FeesAccount, amount, when: Optional[datetime] = None) -> FeesAccount:
    account.paid_amount = to_money(account.paid_amount) + to_money(amount)
    account.last_payment_date = when or utcnow()
    return recalculate(account)


def apply_discount(account: FeesAccount, amount, reason: str) -> FeesAccount:
    account.discount_amount = to_money(account.discount_amount) + to_money(amount)
    reason = reason.strip()
    if account.discount_reason:
        account.discount_reason = f"{account.discount_reason}; {reason}"
    else:
        account.discount_reason = reason
    return recalculate(account)


def should_auto_approve(
    payment_method: Optional[str],
    transaction_id: Optional[str] = None,
    slip_image_url: Optional[str] = None,
) -> bool:
    """Payments carrying proof are credited immediately; the rest wait for a bursar"""
    if slip_image_url and slip_image_url.strip():
        return True
    if transaction_id and transaction_id.strip():
        return True
    return normalize_method(payment_method) == MOBILE_MONEY


def generate_receipt_number(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"RCP{now.strftime('%Y%m%d%H%M%S')}{random.randint(100, 999)}"


def current_term(today: Optional[date] = None) -> int:
    month = (today or utcnow().date()).month
    if month <= 4:
        return 1
    if month <= 8:
        return 2
    return 3


def term_due_date(year: int, term: int) -> date:
    month, day = _TERM_DUE.get(term, _TERM_DUE[3])
    return date(year, month, day)


def days_overdue(due_date: Optional[date], balance, today: Optional[date] = None) -> int:
    if due_date is None or to_money(balance) <= ZERO:
        return 0
    today = today or utcnow().date()
    return max((today - due_date).days, 0)


def is_overdue(due_date: Optional[date], balance, today: Optional[date] = None) -> bool:
    return days_overdue(due_date, balance, today) > 0
