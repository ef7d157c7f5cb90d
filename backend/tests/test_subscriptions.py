"""Tests for the subscription lifecycle: receipts, passwords, review, renewal and expiry."""

import pytest
import sys
import os
import uuid
from datetime import timedelta

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from portal.config import settings
from portal.dates import add_months, as_utc, utcnow
from portal.exceptions import (
    InvalidOrExpiredPassword,
    InvalidTransition,
    NotFoundError,
    ValidationFailed,
)
from portal.models.course_password import CoursePassword
from portal.models.subscription import Subscription, STATUS_ACTIVE, STATUS_EXPIRED, STATUS_PENDING
from portal.services import course_service, password_service, profile_service, subscription_service


def _receipt(db, storage, student, course, name="receipt.png"):
    return subscription_service.request_by_receipt(
        db, storage, student, course.id, filename=name, content=b"fake image bytes", content_type="image/png"
    )


def _stored(storage, path):
    return (storage.root / settings.RECEIPT_BUCKET / path).exists()


class TestPasswordGeneration:
    """Course passwords are short random codes that expire after a week."""

    def test_generated_code_alphabet_and_length(self):
        code = password_service.generate_password()
        assert len(code) == settings.COURSE_PASSWORD_LENGTH
        assert set(code) <= set(password_service.PASSWORD_ALPHABET)

    def test_expiry_defaults_to_ttl(self, db, course):
        now = utcnow()
        record = password_service.create_password(db, course.id, now=now)
        assert as_utc(record.expires_at) == now + timedelta(days=settings.COURSE_PASSWORD_TTL_DAYS)
        assert record.used is False

    def test_custom_code_is_trimmed(self, db, course):
        record = password_service.create_password(db, course.id, password="  SPRING24 ")
        assert record.password == "SPRING24"

    def test_blank_custom_code_rejected(self, db, course):
        with pytest.raises(ValidationFailed):
            password_service.create_password(db, course.id, password="   ")

    def test_unknown_course(self, db):
        with pytest.raises(NotFoundError):
            password_service.create_password(db, "missing")

    def test_list_available_hides_used_and_expired(self, db, course):
        now = utcnow()
        fresh = password_service.create_password(db, course.id, now=now)
        password_service.create_password(db, course.id, now=now - timedelta(days=8))
        used = password_service.create_password(db, course.id, now=now)
        used.used = True
        db.commit()
        assert [p.id for p in password_service.list_available(db, now)] == [fresh.id]


class TestRedeemPassword:
    """A password activates the subscription immediately and only once."""

    def test_redeem_activates_for_course_duration(self, db, storage, student, course):
        record = password_service.create_password(db, course.id)
        now = utcnow()
        sub = subscription_service.request_by_password(db, storage, student, course.id, record.password, now=now)

        assert sub.status == STATUS_ACTIVE
        assert as_utc(sub.start_date) == now
        assert as_utc(sub.end_date) == add_months(now, course.duration_months)
        db.refresh(record)
        assert record.used is True

    def test_password_is_single_use(self, db, storage, student, course):
        record = password_service.create_password(db, course.id)
        subscription_service.request_by_password(db, storage, student, course.id, record.password)

        other = profile_service.register_user(db, "other@example.com", "otherpass")
        with pytest.raises(InvalidOrExpiredPassword):
            subscription_service.request_by_password(db, storage, other, course.id, record.password)
        assert db.query(Subscription).filter(Subscription.user_id == other.user_id).count() == 0

    def test_expired_password_rejected(self, db, storage, student, course):
        record = password_service.create_password(db, course.id, now=utcnow() - timedelta(days=8))
        with pytest.raises(InvalidOrExpiredPassword):
            subscription_service.request_by_password(db, storage, student, course.id, record.password)

    def test_password_bound_to_its_course(self, db, storage, student, course):
        other = course_service.create_course(db, "Chemistry", duration_months=3)
        record = password_service.create_password(db, other.id)
        with pytest.raises(InvalidOrExpiredPassword):
            subscription_service.request_by_password(db, storage, student, course.id, record.password)

    def test_blank_password(self, db, storage, student, course):
        with pytest.raises(ValidationFailed):
            subscription_service.request_by_password(db, storage, student, course.id, "  ")

    def test_second_claim_of_same_record_fails(self, db, course):
        """The conditional update loses against a claim that already happened."""
        record = password_service.create_password(db, course.id)
        now = utcnow()
        found = password_service.find_redeemable(db, course.id, record.password, now)
        password_service.claim(db, found, now)
        db.commit()

        with pytest.raises(InvalidOrExpiredPassword):
            password_service.claim(db, found, now)
        db.rollback()

    def test_redeem_replaces_pending_receipt(self, db, storage, student, course):
        pending = _receipt(db, storage, student, course)
        proof = pending.payment_proof
        record = password_service.create_password(db, course.id)

        sub = subscription_service.request_by_password(db, storage, student, course.id, record.password)
        assert sub.id == pending.id
        assert sub.status == STATUS_ACTIVE
        assert sub.payment_proof is None
        assert not _stored(storage, proof)

    def test_inactive_course_cannot_be_redeemed(self, db, storage, student, course):
        record = password_service.create_password(db, course.id)
        course_service.toggle_active(db, course.id)
        with pytest.raises(NotFoundError):
            subscription_service.request_by_password(db, storage, student, course.id, record.password)
        db.refresh(record)
        assert record.used is False


class TestReceiptFlow:
    """Receipt uploads park the subscription as pending for manual review."""

    def test_receipt_creates_pending(self, db, storage, student, course):
        sub = _receipt(db, storage, student, course)
        assert sub.status == STATUS_PENDING
        assert sub.payment_proof.startswith(f"{student.user_id}/{course.id}_")
        assert sub.payment_proof.endswith(".png")
        assert _stored(storage, sub.payment_proof)

    def test_unapproved_student_may_still_submit(self, db, storage, pending_student, course):
        sub = _receipt(db, storage, pending_student, course)
        assert sub.status == STATUS_PENDING

    def test_unsupported_receipt_type(self, db, storage, student, course):
        with pytest.raises(ValidationFailed):
            _receipt(db, storage, student, course, name="receipt.exe")

    def test_resubmission_replaces_previous_receipt(self, db, storage, student, course):
        first = _receipt(db, storage, student, course)
        first_proof = first.payment_proof
        second = _receipt(db, storage, student, course, name="receipt.pdf")

        assert second.id == first.id
        assert second.payment_proof != first_proof
        assert not _stored(storage, first_proof)
        assert _stored(storage, second.payment_proof)
        assert db.query(Subscription).count() == 1

    def test_active_subscription_blocks_new_receipt(self, db, storage, student, course):
        record = password_service.create_password(db, course.id)
        subscription_service.request_by_password(db, storage, student, course.id, record.password)
        with pytest.raises(InvalidTransition):
            _receipt(db, storage, student, course)

    def test_approve_activates_and_removes_receipt(self, db, storage, student, course):
        sub = _receipt(db, storage, student, course)
        proof = sub.payment_proof
        now = utcnow()

        approved = subscription_service.approve(db, storage, sub.id, now=now)
        assert approved.status == STATUS_ACTIVE
        assert approved.payment_proof is None
        assert as_utc(approved.start_date) == now
        assert as_utc(approved.end_date) == add_months(now, course.duration_months)
        assert not _stored(storage, proof)

    def test_approve_only_pending(self, db, storage, student, course):
        sub = _receipt(db, storage, student, course)
        subscription_service.approve(db, storage, sub.id)
        with pytest.raises(InvalidTransition):
            subscription_service.approve(db, storage, sub.id)

    def test_reject_deletes_row_and_receipt(self, db, storage, student, course):
        sub = _receipt(db, storage, student, course)
        proof = sub.payment_proof
        subscription_service.reject(db, storage, sub.id)

        assert db.query(Subscription).filter(Subscription.id == sub.id).first() is None
        assert not _stored(storage, proof)

    def test_reject_active_refused(self, db, storage, student, course):
        sub = _receipt(db, storage, student, course)
        subscription_service.approve(db, storage, sub.id)
        with pytest.raises(InvalidTransition):
            subscription_service.reject(db, storage, sub.id)

    def test_receipt_url_is_short_lived_link(self, db, storage, student, course):
        sub = _receipt(db, storage, student, course)
        url = subscription_service.receipt_url(db, storage, sub.id)
        assert url.startswith(f"http://testserver/api/storage/{settings.RECEIPT_BUCKET}/")
        assert "token=" in url

    def test_receipt_url_without_receipt(self, db, storage, student, course):
        record = password_service.create_password(db, course.id)
        sub = subscription_service.request_by_password(db, storage, student, course.id, record.password)
        with pytest.raises(NotFoundError):
            subscription_service.receipt_url(db, storage, sub.id)


def _active(db, student, course, start, end, status=STATUS_ACTIVE):
    sub = Subscription(
        id=str(uuid.uuid4()),
        user_id=student.user_id,
        course_id=course.id,
        status=status,
        start_date=start,
        end_date=end,
    )
    db.add(sub)
    db.commit()
    return sub


class TestRenewal:
    """Renewal extends from the later of now and the current end date."""

    def test_renew_before_expiry_stacks_on_end_date(self, db, student, course):
        now = utcnow()
        end = now + timedelta(days=10)
        sub = _active(db, student, course, now - timedelta(days=20), end)

        renewed = subscription_service.renew(db, sub.id, 2, now=now)
        assert as_utc(renewed.end_date) == add_months(end, 2)
        assert renewed.status == STATUS_ACTIVE

    def test_renew_after_expiry_starts_from_now(self, db, student, course):
        now = utcnow()
        sub = _active(db, student, course, now - timedelta(days=60), now - timedelta(days=30), status=STATUS_EXPIRED)

        renewed = subscription_service.renew(db, sub.id, 1, now=now)
        assert as_utc(renewed.end_date) == add_months(now, 1)
        assert renewed.status == STATUS_ACTIVE

    def test_pending_request_cannot_be_renewed(self, db, storage, student, course):
        """A receipt request only becomes active through approval."""
        sub = _receipt(db, storage, student, course)
        proof = sub.payment_proof

        with pytest.raises(InvalidTransition):
            subscription_service.renew(db, sub.id, 1)
        db.refresh(sub)
        assert sub.status == STATUS_PENDING
        assert sub.end_date is None
        assert _stored(storage, proof)

        approved = subscription_service.approve(db, storage, sub.id)
        assert approved.status == STATUS_ACTIVE
        assert not _stored(storage, proof)

    def test_renew_requires_positive_months(self, db, student, course):
        now = utcnow()
        sub = _active(db, student, course, now, now + timedelta(days=5))
        with pytest.raises(ValidationFailed):
            subscription_service.renew(db, sub.id, 0)

    def test_renew_unknown_subscription(self, db):
        with pytest.raises(NotFoundError):
            subscription_service.renew(db, "missing", 1)


class TestExpirySweep:
    """The sweep flips overdue active subscriptions and nothing else."""

    def test_sweep_only_touches_overdue_active_rows(self, db, student, course):
        now = utcnow()
        overdue = _active(db, student, course, now - timedelta(days=40), now - timedelta(days=1))

        other_course = course_service.create_course(db, "Physics", duration_months=1)
        current = _active(db, student, other_course, now - timedelta(days=1), now + timedelta(days=20))

        other = profile_service.register_user(db, "late@example.com", "latepass")
        pending = _active(db, other, course, None, None, status=STATUS_PENDING)

        assert subscription_service.expire_sweep(db, now=now) == 1
        db.expire_all()
        assert db.get(Subscription, overdue.id).status == STATUS_EXPIRED
        assert db.get(Subscription, current.id).status == STATUS_ACTIVE
        assert db.get(Subscription, pending.id).status == STATUS_PENDING

    def test_sweep_is_idempotent(self, db, student, course):
        now = utcnow()
        _active(db, student, course, now - timedelta(days=40), now - timedelta(days=1))
        assert subscription_service.expire_sweep(db, now=now) == 1
        assert subscription_service.expire_sweep(db, now=now) == 0


class TestAdminListing:
    def test_filter_and_search(self, db, storage, student, course):
        _receipt(db, storage, student, course)
        rows = subscription_service.list_subscriptions(db, status=STATUS_PENDING, search="STUDENT@")
        assert len(rows) == 1
        sub, email, title = rows[0]
        assert email == "student@example.com"
        assert title == course.title

        assert subscription_service.list_subscriptions(db, status=STATUS_ACTIVE) == []
        assert len(subscription_service.list_subscriptions(db, search="algebra")) == 1

    def test_unknown_status(self, db):
        with pytest.raises(ValidationFailed):
            subscription_service.list_subscriptions(db, status="cancelled")


class TestWhatsAppLink:
    def test_link_mentions_course(self, course):
        url = subscription_service.whatsapp_link(course)
        assert url.startswith(f"https://wa.me/{settings.WHATSAPP_NUMBER}?text=")
        assert "Algebra%20I" in url


class TestCourseDeletion:
    def test_delete_course_removes_subscriptions_and_passwords(self, db, storage, student, course):
        record = password_service.create_password(db, course.id)
        subscription_service.request_by_password(db, storage, student, course.id, record.password)
        password_service.create_password(db, course.id)

        course_service.delete_course(db, course.id)
        assert db.query(Subscription).count() == 0
        assert db.query(CoursePassword).count() == 0
