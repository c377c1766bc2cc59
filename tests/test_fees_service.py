# tests/test_fees_service.py - Fees workflow: submission, approval, rejection, discounts, retries
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConflictError
from app.models import Base, FeesAccount, FeesPayment, Notification, Student, User, UserRole
from app.models.base import utcnow
from app.schemas.fees import PaymentRequest
from app.services import ledger
from app.services.fees_service import FeesService


def pay(service, principal, student_id, amount, method="Cash", **extra):
    request = PaymentRequest(student_id=student_id, amount=Decimal(str(amount)), payment_method=method, **extra)
    return service.submit_payment(principal, request)


def account_for(db, student_id) -> FeesAccount:
    db.expire_all()
    return db.execute(select(FeesAccount).where(FeesAccount.student_id == student_id)).scalar_one()


class TestScenarios:
    def test_mobile_money_payment_is_auto_approved(self, db, student, bursar_principal):
        service = FeesService(db)
        result = pay(service, bursar_principal, student.id, 30000, "M-Pesa")

        assert result.success
        assert result.requires_approval is False
        assert result.message == "Payment processed and approved"
        assert result.receipt_number.startswith("RCP")

        account = account_for(db, student.id)
        assert account.total_fees == Decimal("80000.00")
        assert account.paid_amount == Decimal("30000.00")
        assert account.balance == Decimal("50000.00")
        assert account.payment_status == "Partial"

    def test_cash_without_proof_waits_for_approval(self, db, student, bursar_principal):
        service = FeesService(db)
        pay(service, bursar_principal, student.id, 30000, "M-Pesa")
        result = pay(service, bursar_principal, student.id, 50000, "Cash")

        assert result.success
        assert result.requires_approval is True
        assert result.message == "Payment received, pending approval"
        assert account_for(db, student.id).balance == Decimal("50000.00")

        approval = service.approve_payment(bursar_principal, result.payment_id)
        assert approval.success
        assert approval.message == "Payment approved successfully"

        account = account_for(db, student.id)
        assert account.balance == Decimal("0.00")
        assert account.paid_amount == Decimal("80000.00")
        assert account.payment_status == "Paid"

    def test_payment_above_balance_is_rejected(self, db, student, bursar_principal):
        service = FeesService(db)
        pay(service, bursar_principal, student.id, 30000, "M-Pesa")
        result = pay(service, bursar_principal, student.id, 60000, "M-Pesa")

        assert result.success is False
        assert result.error_code == "BALANCE_EXCEEDED"
        assert result.message == "Payment amount cannot exceed balance of KSh 50,000.00"

        payments = db.execute(select(FeesPayment).where(FeesPayment.student_id == student.id)).scalars().all()
        assert len(payments) == 1
        assert account_for(db, student.id).balance == Decimal("50000.00")

    def test_balance_check_applies_to_pending_route_too(self, db, student, bursar_principal):
        result = pay(FeesService(db), bursar_principal, student.id, 90000, "Cash")
        assert result.error_code == "BALANCE_EXCEEDED"


class TestSubmissionValidation:
    def test_zero_amount(self, db, student, bursar_principal):
        result = pay(FeesService(db), bursar_principal, student.id, 0)
        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"

    def test_unknown_method(self, db, student, bursar_principal):
        result = pay(FeesService(db), bursar_principal, student.id, 100, "Bitcoin")
        assert result.success is False
        assert "Invalid payment method" in result.message

    def test_unknown_student(self, db, bursar_principal):
        result = pay(FeesService(db), bursar_principal, "missing", 100)
        assert result.error_code == "NOT_FOUND"

    def test_student_pays_own_fees(self, db, student, student_principal):
        result = pay(FeesService(db), student_principal, student.id, 1000, "Bank Transfer", transaction_id="TX1")
        assert result.success
        assert result.requires_approval is False

    def test_student_cannot_pay_for_another(self, db, factory, student_principal):
        other = factory.student(full_name="Other Student")
        result = pay(FeesService(db), student_principal, other.id, 1000)
        assert result.error_code == "UNAUTHORIZED"

    def test_slip_marks_payment_scanned(self, db, student, bursar_principal):
        result = pay(FeesService(db), bursar_principal, student.id, 500, "Bank Transfer",
                     slip_image_url="https://slips/1.png")
        payment = db.get(FeesPayment, result.payment_id)
        assert payment.is_scanned is True
        assert payment.is_approved is True
        assert payment.verified_by == bursar_principal.user_id

    def test_scanned_flag_follows_the_slip_only(self, db, student, bursar_principal):
        result = pay(FeesService(db), bursar_principal, student.id, 500, "Cash", is_scanned=True)
        payment = db.get(FeesPayment, result.payment_id)
        assert payment.is_scanned is False
        assert payment.is_approved is False

    def test_non_finite_amounts_are_refused(self, db, student, bursar_principal):
        service = FeesService(db)
        request = PaymentRequest.model_construct(
            student_id=student.id, amount=Decimal("NaN"), payment_method="Cash",
            transaction_id=None, slip_image_url=None, bank_name=None, account_number=None, description=None,
        )
        result = service.submit_payment(bursar_principal, request)
        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"

        assert service.apply_discount(bursar_principal, student.id, "NaN", "Bursary").error_code == "VALIDATION_ERROR"
        assert service.set_student_fees(bursar_principal, student.id, "Infinity").error_code == "VALIDATION_ERROR"

    def test_receipt_notification_sent_to_student(self, db, student, bursar_principal):
        pay(FeesService(db), bursar_principal, student.id, 1000, "M-Pesa")
        notes = db.execute(select(Notification).where(Notification.recipient_id == student.user_id)).scalars().all()
        assert [n.title for n in notes] == ["Payment Received"]


class TestApproval:
    def test_approval_is_idempotent(self, db, student, bursar_principal):
        service = FeesService(db)
        pending = pay(service, bursar_principal, student.id, 20000, "Cash")

        assert service.approve_payment(bursar_principal, pending.payment_id).success
        again = service.approve_payment(bursar_principal, pending.payment_id)
        assert again.success
        assert again.message == "Payment already approved"

        account = account_for(db, student.id)
        assert account.paid_amount == Decimal("20000.00")
        assert account.balance == Decimal("60000.00")

    def test_student_cannot_approve(self, db, student, student_principal, bursar_principal):
        service = FeesService(db)
        pending = pay(service, bursar_principal, student.id, 100, "Cash")
        result = service.approve_payment(student_principal, pending.payment_id)
        assert result.success is False
        assert result.error_code == "UNAUTHORIZED"

    def test_unknown_payment(self, db, bursar_principal):
        result = FeesService(db).approve_payment(bursar_principal, "missing")
        assert result.error_code == "NOT_FOUND"

    def test_pending_list(self, db, student, bursar_principal):
        service = FeesService(db)
        pay(service, bursar_principal, student.id, 100, "Cash")
        pay(service, bursar_principal, student.id, 200, "M-Pesa")

        pending = service.list_pending_payments(bursar_principal)
        assert len(pending) == 1
        assert pending[0].amount == Decimal("100.00")
        assert pending[0].student_no == student.student_no


class TestRejection:
    def test_reject_pending_payment(self, db, student, bursar_principal):
        service = FeesService(db)
        pending = pay(service, bursar_principal, student.id, 5000, "Cash", description="Term 1")

        result = service.reject_payment(bursar_principal, pending.payment_id, "Slip unreadable")
        assert result.success

        payment = db.get(FeesPayment, pending.payment_id)
        assert payment.is_rejected is True
        assert payment.description == "Term 1 - REJECTED: Slip unreadable"
        assert account_for(db, student.id).balance == Decimal("80000.00")

        refused = service.approve_payment(bursar_principal, pending.payment_id)
        assert refused.success is False
        assert refused.message == "Cannot approve a rejected payment"

    def test_reason_required(self, db, student, bursar_principal):
        service = FeesService(db)
        pending = pay(service, bursar_principal, student.id, 5000, "Cash")
        result = service.reject_payment(bursar_principal, pending.payment_id, "  ")
        assert result.error_code == "VALIDATION_ERROR"

    def test_approved_payment_cannot_be_rejected(self, db, student, bursar_principal):
        service = FeesService(db)
        approved = pay(service, bursar_principal, student.id, 5000, "M-Pesa")
        result = service.reject_payment(bursar_principal, approved.payment_id, "Duplicate")
        assert result.success is False
        assert result.message == "Cannot reject an approved payment"


class TestAccountMaintenance:
    def test_discounts_are_additive(self, db, student, bursar_principal):
        service = FeesService(db)
        assert service.apply_discount(bursar_principal, student.id, Decimal("5000"), "Sibling").success
        result = service.apply_discount(bursar_principal, student.id, Decimal("3000"), "Sports")
        assert result.message == "Discount applied. New balance: KSh 72,000.00"

        account = account_for(db, student.id)
        assert account.discount_amount == Decimal("8000.00")
        assert account.discount_reason == "Sibling; Sports"

    def test_set_student_fees_recalculates(self, db, student, bursar_principal):
        service = FeesService(db)
        pay(service, bursar_principal, student.id, 30000, "M-Pesa")
        result = service.set_student_fees(bursar_principal, student.id, Decimal("60000"), term=2)
        assert result.success

        account = account_for(db, student.id)
        assert account.balance == Decimal("30000.00")
        assert account.term == 2
        assert account.due_date.month == 7

    def test_get_fees_returns_approved_history_newest_first(self, db, student, student_principal, bursar_principal):
        service = FeesService(db)
        pay(service, bursar_principal, student.id, 1000, "M-Pesa")
        pay(service, bursar_principal, student.id, 2000, "Cash")
        pay(service, bursar_principal, student.id, 3000, "M-Pesa")

        details = service.get_my_fees(student_principal)
        assert details.account.paid_amount == Decimal("4000.00")
        assert [p.amount for p in details.payment_history] == [Decimal("3000.00"), Decimal("1000.00")]

    def test_list_all_fees_largest_balance_first(self, db, factory, bursar_principal):
        service = FeesService(db)
        first = factory.student(full_name="First")
        second = factory.student(full_name="Second")
        service.get_or_create_account(first.id)
        service.get_or_create_account(second.id)
        db.commit()
        pay(service, bursar_principal, first.id, 10000, "M-Pesa")

        summaries = service.list_all_fees(bursar_principal)
        assert [s.student_id for s in summaries] == [second.id, first.id]

    def test_statement_requires_an_account(self, db, student, bursar_principal):
        from app.core.exceptions import NotFoundError

        with pytest.raises(NotFoundError):
            FeesService(db).generate_statement(bursar_principal, student.id, year=1999)


class TestOptimisticLocking:
    @pytest.fixture()
    def file_sessions(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
        Base.metadata.create_all(bind=engine)
        make_session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        yield make_session
        engine.dispose()

    def test_concurrent_update_is_retried(self, file_sessions, monkeypatch):
        from app.core.permissions import Principal

        setup = file_sessions()
        user = User(phone_number="+254711000001", password_hash="x", role=UserRole.STUDENT.value)
        setup.add(user)
        setup.flush()
        student = Student(
            user_id=user.id, student_no="GRS/2026/001", admission_no="A1", full_name="Race Student",
            form="Form 1", class_name="East", parent_phone=user.phone_number, year=utcnow().year, term=1,
        )
        setup.add(student)
        setup.flush()
        FeesService(setup).get_or_create_account(student.id)
        setup.commit()
        setup.close()

        bursar = Principal(user_id="bursar-1", role=UserRole.BURSAR, display_name="Bursar")
        original_apply = ledger.apply_payment
        calls = {"count": 0}

        def racing_apply(account, amount, when=None):
            calls["count"] += 1
            if calls["count"] == 1:
                # Another request credits the same account first
                other = file_sessions()
                competing = other.get(FeesAccount, account.id)
                original_apply(competing, Decimal("1000"))
                other.commit()
                other.close()
            return original_apply(account, amount, when)

        monkeypatch.setattr(ledger, "apply_payment", racing_apply)

        session = file_sessions()
        result = pay(FeesService(session), bursar, student.id, 2000, "M-Pesa")
        assert result.success
        assert calls["count"] == 2

        check = file_sessions()
        account = check.execute(select(FeesAccount).where(FeesAccount.student_id == student.id)).scalar_one()
        assert account.paid_amount == Decimal("3000.00")
        assert account.balance == account.total_fees - Decimal("3000.00")
        session.close()
        check.close()

    def test_gives_up_after_max_retries(self, db):
        service = FeesService(db)

        def always_stale():
            raise StaleDataError("row changed")

        with pytest.raises(ConflictError):
            service.run_ledger_write("Test write", always_stale)
