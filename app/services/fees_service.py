# app/services/fees_service.py - Fees ledger and payment approval workflow
from sqlalchemy.orm import Session
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from decimal import Decimal, InvalidOperation
from typing import Optional, List, Callable, TypeVar
import logging

from app.core.config import settings
from app.core.exceptions import (
    PortalError,
    ValidationError,
    BalanceExceededError,
    NotFoundError,
    ConflictError,
    INTERNAL_ERROR,
)
from app.core.permissions import Capability, Principal
from app.models.base import utcnow
from app.models.fees import FeesAccount, FeesPayment
from app.models.student import Student
from app.schemas.common import OperationResult, PaymentResult
from app.schemas.fees import (
    PaymentRequest,
    FeesDetails,
    FeesAccountOut,
    PaymentOut,
    StudentFeesSummary,
    PendingPaymentOut,
    FeesStatement,
    StatementStudent,
)
from app.services import ledger
from app.services.notification_service import NotificationService, NotificationTemplates

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FeesService:
    """
    Owns every read and write of fees accounts and payments.

    Writes run inside run_ledger_write(): the whole read-modify-write is
    retried when another transaction bumped the account version first.
    """

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # Helpers

    def _get_student(self, student_id: str) -> Student:
        if not student_id or not str(student_id).strip():
            raise ValidationError("Student ID is required")
        student = self.db.get(Student, student_id)
        if not student:
            raise NotFoundError("Student not found")
        return student

    def _find_account(self, student_id: str, year: int) -> Optional[FeesAccount]:
        return self.db.execute(
            select(FeesAccount).where(
                FeesAccount.student_id == student_id,
                FeesAccount.year == year,
            )
        ).scalar_one_or_none()

    def _new_account(self, student_id: str, year: int, total_fees: Optional[Decimal] = None,
                     term: Optional[int] = None) -> FeesAccount:
        term = term or ledger.current_term()
        account = FeesAccount(
            student_id=student_id,
            year=year,
            term=term,
            total_fees=total_fees if total_fees is not None else settings.DEFAULT_TOTAL_FEES,
            discount_amount=ledger.ZERO,
            paid_amount=ledger.ZERO,
            due_date=ledger.term_due_date(year, term),
        )
        return ledger.recalculate(account)

    def get_or_create_account(self, student_id: str, year: Optional[int] = None) -> FeesAccount:
        """Current-year account for a student, created with the default total on first use"""
        year = year or utcnow().year
        account = self._find_account(student_id, year)
        if account:
            return account

        account = self._new_account(student_id, year)
        self.db.add(account)
        try:
            self.db.flush()
        except IntegrityError:
            # Created concurrently by another request
            self.db.rollback()
            account = self._find_account(student_id, year)
            if account is None:
                raise
        else:
            logger.info(f"Created fees account for student {student_id}, year {year}")
        return account

    def run_ledger_write(self, operation: str, work: Callable[[], T],
                         retry_on: tuple = (StaleDataError,)) -> T:
        attempts = settings.LEDGER_MAX_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                result = work()
                self.db.commit()
                return result
            except retry_on as e:
                self.db.rollback()
                logger.warning(f"{operation}: concurrent update (attempt {attempt}/{attempts}): {e}")
        raise ConflictError(f"{operation} conflicted with a concurrent update, please retry")

    def _fail(self, result_cls, operation: str, error: Exception):
        self.db.rollback()
        if isinstance(error, PortalError):
            logger.warning(f"{operation} refused: {error.message}")
            return result_cls.fail(error.message, error.error_code)
        logger.error(f"{operation} failed: {error}", exc_info=True)
        return result_cls.fail(f"{operation} failed", INTERNAL_ERROR)

    def _notify_student(self, student_id: str, template) -> None:
        student = self.db.get(Student, student_id)
        if student:
            self.notifications.send_template(student.user_id, template)

    @staticmethod
    def _parse_amount(value) -> Decimal:
        try:
            amount = ledger.to_money(value)
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError("Amount must be a number")
        if not amount.is_finite():
            raise ValidationError("Amount must be a number")
        return amount

    # Reads

    def get_fees(self, principal: Principal, student_id: str) -> FeesDetails:
        principal.require_student_access(student_id, Capability.VIEW_ALL_FEES)
        self._get_student(student_id)

        def load():
            account = self.get_or_create_account(student_id)
            ledger.recalculate(account)
            return account

        account = self.run_ledger_write("Load fees", load)

        history = self.db.execute(
            select(FeesPayment)
            .where(
                FeesPayment.fees_account_id == account.id,
                FeesPayment.is_approved.is_(True),
            )
            .order_by(FeesPayment.payment_date.desc())
        ).scalars().all()

        return FeesDetails(
            account=FeesAccountOut.model_validate(account),
            payment_history=[PaymentOut.model_validate(p) for p in history],
        )

    def get_my_fees(self, principal: Principal) -> FeesDetails:
        student_id = principal.require_student()
        return self.get_fees(principal, student_id)

    def list_all_fees(self, principal: Principal, year: Optional[int] = None) -> List[StudentFeesSummary]:
        principal.require(Capability.VIEW_ALL_FEES)
        year = year or utcnow().year
        today = utcnow().date()

        rows = self.db.execute(
            select(FeesAccount, Student)
            .join(Student, FeesAccount.student_id == Student.id)
            .where(FeesAccount.year == year)
            .order_by(FeesAccount.balance.desc(), Student.student_no)
        ).all()

        summaries = []
        for account, student in rows:
            overdue_days = ledger.days_overdue(account.due_date, account.balance, today)
            summaries.append(StudentFeesSummary(
                student_id=student.id,
                student_no=student.student_no,
                full_name=student.full_name,
                form=student.form,
                class_name=student.class_name,
                year=account.year,
                term=account.term,
                total_fees=account.total_fees,
                discount_amount=account.discount_amount,
                paid_amount=account.paid_amount,
                balance=account.balance,
                payment_status=account.payment_status,
                due_date=account.due_date,
                is_overdue=overdue_days > 0,
                days_overdue=overdue_days,
            ))
        return summaries

    def list_pending_payments(self, principal: Principal) -> List[PendingPaymentOut]:
        principal.require(Capability.APPROVE_PAYMENTS)
        rows = self.db.execute(
            select(FeesPayment, Student)
            .join(Student, FeesPayment.student_id == Student.id)
            .where(
                FeesPayment.is_approved.is_(False),
                FeesPayment.is_rejected.is_(False),
            )
            .order_by(FeesPayment.payment_date.desc())
        ).all()

        pending = []
        for payment, student in rows:
            item = PendingPaymentOut.model_validate(payment)
            item.student_no = student.student_no
            item.student_name = student.full_name
            item.form = student.form
            item.class_name = student.class_name
            pending.append(item)
        return pending

    def generate_statement(self, principal: Principal, student_id: str, year: Optional[int] = None) -> FeesStatement:
        principal.require_student_access(student_id, Capability.VIEW_ALL_FEES)
        student = self._get_student(student_id)
        year = year or utcnow().year

        account = self._find_account(student_id, year)
        if not account:
            raise NotFoundError(f"No fees record for {year}")

        payments = self.db.execute(
            select(FeesPayment)
            .where(
                FeesPayment.fees_account_id == account.id,
                FeesPayment.is_approved.is_(True),
            )
            .order_by(FeesPayment.payment_date.asc())
        ).scalars().all()

        return FeesStatement(
            student=StatementStudent.model_validate(student),
            account=FeesAccountOut.model_validate(account),
            payments=[PaymentOut.model_validate(p) for p in payments],
            generated_date=utcnow(),
        )

    # Writes

    def submit_payment(self, principal: Principal, request: PaymentRequest) -> PaymentResult:
        operation = "Payment submission"
        try:
            if not request.student_id or not request.student_id.strip():
                raise ValidationError("Student ID is required")
            principal.require_student_access(request.student_id, Capability.MANAGE_FEES)

            amount = self._parse_amount(request.amount)
            if amount <= 0:
                raise ValidationError("Payment amount must be greater than zero")

            method = ledger.normalize_method(request.payment_method)
            if method is None:
                raise ValidationError(
                    f"Invalid payment method. Allowed: {', '.join(ledger.PAYMENT_METHODS)}"
                )

            self._get_student(request.student_id)

            def record():
                account = self.get_or_create_account(request.student_id)
                ledger.recalculate(account)
                if amount > account.balance:
                    raise BalanceExceededError(
                        f"Payment amount cannot exceed balance of {settings.CURRENCY} {account.balance:,.2f}"
                    )

                now = utcnow()
                auto_approved = ledger.should_auto_approve(
                    method, request.transaction_id, request.slip_image_url
                )
                payment = FeesPayment(
                    fees_account_id=account.id,
                    student_id=request.student_id,
                    amount=amount,
                    payment_method=method,
                    receipt_number=ledger.generate_receipt_number(now),
                    transaction_id=request.transaction_id,
                    slip_image_url=request.slip_image_url,
                    is_scanned=bool(request.slip_image_url),
                    bank_name=request.bank_name,
                    account_number=request.account_number,
                    description=(request.description or "Fees Payment").strip(),
                    received_by=principal.display_name,
                    payment_date=now,
                )
                if auto_approved:
                    payment.is_approved = True
                    payment.verified_by = principal.user_id
                    payment.verification_date = now
                    ledger.apply_payment(account, amount, now)
                    payment.balance_applied = True

                self.db.add(payment)
                return payment

            # IntegrityError covers a receipt number collision
            payment = self.run_ledger_write(operation, record, retry_on=(StaleDataError, IntegrityError))

        except (PortalError, SQLAlchemyError) as e:
            return self._fail(PaymentResult, operation, e)

        logger.info(
            f"Payment {payment.receipt_number} of {amount} by {method} for student "
            f"{payment.student_id} ({'approved' if payment.is_approved else 'pending'})"
        )
        self._notify_student(
            payment.student_id,
            NotificationTemplates.payment_received(amount, payment.receipt_number, method),
        )

        return PaymentResult.ok(
            "Payment processed and approved" if payment.is_approved else "Payment received, pending approval",
            receipt_number=payment.receipt_number,
            requires_approval=not payment.is_approved,
            payment_id=payment.id,
        )

    def approve_payment(self, principal: Principal, payment_id: str) -> OperationResult:
        operation = "Payment approval"
        try:
            principal.require(Capability.APPROVE_PAYMENTS, "You are not allowed to approve payments")

            def approve():
                payment = self.db.get(FeesPayment, payment_id)
                if not payment:
                    raise NotFoundError("Payment not found")
                if payment.is_rejected:
                    raise ValidationError("Cannot approve a rejected payment")
                if payment.is_approved:
                    return payment, False

                now = utcnow()
                payment.is_approved = True
                payment.verified_by = principal.user_id
                payment.verification_date = now
                if not payment.balance_applied:
                    account = self.db.get(FeesAccount, payment.fees_account_id)
                    ledger.apply_payment(account, payment.amount, now)
                    payment.balance_applied = True
                return payment, True

            payment, changed = self.run_ledger_write(operation, approve)

        except (PortalError, SQLAlchemyError) as e:
            return self._fail(OperationResult, operation, e)

        if not changed:
            return OperationResult.ok("Payment already approved")

        logger.info(f"Payment {payment.receipt_number} approved by {principal.user_id}")
        self._notify_student(
            payment.student_id,
            NotificationTemplates.payment_approved(payment.amount, payment.receipt_number),
        )
        return OperationResult.ok("Payment approved successfully")

    def reject_payment(self, principal: Principal, payment_id: str, reason: str) -> OperationResult:
        operation = "Payment rejection"
        try:
            principal.require(Capability.APPROVE_PAYMENTS, "You are not allowed to reject payments")
            if not reason or not reason.strip():
                raise ValidationError("Rejection reason is required")
            reason = reason.strip()

            def reject():
                payment = self.db.get(FeesPayment, payment_id)
                if not payment:
                    raise NotFoundError("Payment not found")
                if payment.is_approved:
                    raise ValidationError("Cannot reject an approved payment")
                if payment.is_rejected:
                    return payment, False

                payment.is_rejected = True
                payment.verified_by = principal.user_id
                payment.verification_date = utcnow()
                payment.description = f"{payment.description} - REJECTED: {reason}"
                return payment, True

            payment, changed = self.run_ledger_write(operation, reject)

        except (PortalError, SQLAlchemyError) as e:
            return self._fail(OperationResult, operation, e)

        if not changed:
            return OperationResult.ok("Payment already rejected")

        logger.info(f"Payment {payment.receipt_number} rejected by {principal.user_id}: {reason}")
        self._notify_student(
            payment.student_id,
            NotificationTemplates.payment_rejected(payment.amount, payment.receipt_number, reason),
        )
        return OperationResult.ok("Payment rejected")

    def set_student_fees(self, principal: Principal, student_id: str, total_fees,
                         year: Optional[int] = None, term: Optional[int] = None) -> OperationResult:
        operation = "Fees update"
        try:
            principal.require(Capability.MANAGE_FEES, "You are not allowed to set student fees")
            total = self._parse_amount(total_fees)
            if total < 0:
                raise ValidationError("Total fees cannot be negative")
            if term is not None and term not in (1, 2, 3):
                raise ValidationError("Term must be 1, 2 or 3")
            self._get_student(student_id)
            year = year or utcnow().year

            def update_fees():
                account = self._find_account(student_id, year)
                if account is None:
                    account = self._new_account(student_id, year, total_fees=total, term=term)
                    self.db.add(account)
                    return account
                account.total_fees = total
                if term is not None:
                    account.term = term
                    account.due_date = ledger.term_due_date(year, term)
                return ledger.recalculate(account)

            account = self.run_ledger_write(operation, update_fees, retry_on=(StaleDataError, IntegrityError))

        except (PortalError, SQLAlchemyError) as e:
            return self._fail(OperationResult, operation, e)

        logger.info(f"Fees for student {student_id} ({year}) set to {total} by {principal.user_id}")
        return OperationResult.ok(f"Student fees updated. New balance: {settings.CURRENCY} {account.balance:,.2f}")

    def apply_discount(self, principal: Principal, student_id: str, amount, reason: str) -> OperationResult:
        operation = "Discount"
        try:
            principal.require(Capability.MANAGE_FEES, "You are not allowed to apply discounts")
            discount = self._parse_amount(amount)
            if discount <= 0:
                raise ValidationError("Discount amount must be greater than zero")
            if not reason or not reason.strip():
                raise ValidationError("Discount reason is required")
            self._get_student(student_id)

            def discount_account():
                account = self.get_or_create_account(student_id)
                return ledger.apply_discount(account, discount, reason)

            account = self.run_ledger_write(operation, discount_account)

        except (PortalError, SQLAlchemyError) as e:
            return self._fail(OperationResult, operation, e)

        logger.info(f"Discount of {discount} applied to student {student_id} by {principal.user_id}")
        return OperationResult.ok(f"Discount applied. New balance: {settings.CURRENCY} {account.balance:,.2f}")
