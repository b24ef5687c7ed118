import pytest

from errors import ConflictError, NotFoundError, ValidationError
from models import AdminRole, College, VerificationSession
from pass_service import (
    complete_gate_verification,
    is_profile_complete,
    list_payments,
    list_verification_sessions,
    missing_profile_fields,
    review_pass,
    transaction_exists,
    verify_pending_pass,
)


def _gate(db, admin, pass_id, **kwargs):
    params = {"physical_signature_collected": True, "details_corrected_on_paper": False}
    params.update(kwargs)
    return complete_gate_verification(db, admin=admin, pass_id=pass_id, **params)


def test_list_payments_flags_duplicates_across_users(db, make_user):
    make_user(passes=[{"transaction_number": "abc123"}])
    make_user(passes=[{"transaction_number": "ABC-123"}, {"transaction_number": "xyz"}])

    result = list_payments(db)
    flags = {p["transaction_number"]: p for p in result["payments"]}

    assert flags["abc123"]["is_duplicate"] is True
    assert flags["ABC-123"]["is_duplicate"] is True
    assert flags["xyz"]["is_duplicate"] is False
    assert flags["ABC-123"]["has_special_characters"] is True
    assert flags["abc123"]["has_special_characters"] is False
    assert result["summary"] == {"total": 3, "pending": 3, "verified": 0, "rejected": 0, "duplicates": 2}


def test_list_payments_filters_after_counting_duplicates(db, make_user):
    make_user(name="Asha", passes=[{"transaction_number": "abc123", "status": "verified", "payment_id_type": "upi"}])
    make_user(name="Ravi", passes=[{"transaction_number": "ABC-123", "pass_type": 3}])

    pending = list_payments(db, status_filter="pending")["payments"]
    assert len(pending) == 1
    assert pending[0]["is_duplicate"] is True

    assert len(list_payments(db, pass_type=3)["payments"]) == 1
    assert len(list_payments(db, payment_id_type="upi")["payments"]) == 1
    assert len(list_payments(db, duplicates=False)["payments"]) == 0
    assert [p["user_name"] for p in list_payments(db, search="ravi")["payments"]] == ["Ravi"]


def test_transaction_exists_is_exact_match(db, make_user):
    make_user(passes=[{"transaction_number": "ABC-123"}])

    assert transaction_exists(db, "ABC-123") is True
    assert transaction_exists(db, "abc123") is False
    with pytest.raises(ValidationError):
        transaction_exists(db, "  ")


def test_verify_requires_payment_id_type(db, make_user, make_admin):
    admin = make_admin(AdminRole.PAYMENTS_ADMIN.value)
    user = make_user(passes=[{"transaction_number": "T1"}])
    pass_ = user.passes[0]

    with pytest.raises(ValidationError):
        review_pass(db, admin=admin, user_id=user.id, pass_id=pass_.id, action="verify")
    db.refresh(pass_)
    assert pass_.status == "pending"


def test_verify_pass_stamps_and_emails(db, make_user, make_admin, sent_emails):
    admin = make_admin(AdminRole.PAYMENTS_ADMIN.value, name="Priya")
    user = make_user(passes=[{"transaction_number": "T1", "pass_type": 2}])
    pass_ = user.passes[0]

    result = review_pass(
        db, admin=admin, user_id=user.id, pass_id=pass_.id, action="verify",
        payment_id_type="upi", edited_transaction_id=" T1-FIXED ",
    )

    assert result["message"] == "Payment verified"
    assert result["warnings"] == []
    db.refresh(pass_)
    assert pass_.status == "verified"
    assert pass_.payment_id_type == "upi"
    assert pass_.transaction_number == "T1-FIXED"
    assert pass_.verified_by == "Priya"
    assert pass_.verified_by_email == admin.email
    assert pass_.verified_date is not None
    assert pass_.gate_status == "not-checked"
    assert user.has_verified_pass is True
    assert len(sent_emails) == 1
    assert sent_emails[0]["to"] == user.email


def test_verify_uses_existing_payment_id_type(db, make_user, make_admin, sent_emails):
    admin = make_admin()
    user = make_user(passes=[{"transaction_number": "T1", "payment_id_type": "eazypay"}])

    review_pass(db, admin=admin, user_id=user.id, pass_id=user.passes[0].id, action="verify")
    assert user.passes[0].payment_id_type == "eazypay"


def test_verify_of_verified_pass_only_corrects_details(db, make_user, make_admin, sent_emails):
    admin = make_admin()
    user = make_user(passes=[{"transaction_number": "T1", "payment_id_type": "upi", "status": "verified", "verified_by": "Earlier"}])
    pass_ = user.passes[0]

    result = review_pass(db, admin=admin, user_id=user.id, pass_id=pass_.id, action="verify", edited_transaction_id="T2")

    assert result["message"] == "Payment details corrected"
    assert pass_.transaction_number == "T2"
    assert pass_.verified_by == "Earlier"
    assert sent_emails == []


def test_reject_requires_reason(db, make_user, make_admin):
    admin = make_admin()
    user = make_user(passes=[{"transaction_number": "T1"}])

    with pytest.raises(ValidationError):
        review_pass(db, admin=admin, user_id=user.id, pass_id=user.passes[0].id, action="reject", rejection_reason="   ")


def test_reject_is_terminal(db, make_user, make_admin, sent_emails):
    admin = make_admin()
    user = make_user(passes=[{"transaction_number": "T1"}])
    pass_ = user.passes[0]

    result = review_pass(db, admin=admin, user_id=user.id, pass_id=pass_.id, action="reject", rejection_reason=" Duplicate ")
    assert result["message"] == "Payment rejected"
    assert pass_.status == "rejected"
    assert pass_.rejection_reason == "Duplicate"
    assert "Duplicate" in sent_emails[0]["text"]

    with pytest.raises(ConflictError):
        review_pass(db, admin=admin, user_id=user.id, pass_id=pass_.id, action="verify", payment_id_type="upi")


def test_verified_pass_cannot_be_rejected(db, make_user, make_admin):
    admin = make_admin()
    user = make_user(passes=[{"transaction_number": "T1", "status": "verified"}])

    with pytest.raises(ConflictError):
        review_pass(db, admin=admin, user_id=user.id, pass_id=user.passes[0].id, action="reject", rejection_reason="late")


def test_review_lookup_errors(db, make_user, make_admin):
    admin = make_admin()
    user = make_user(passes=[{"transaction_number": "T1"}])
    other = make_user(passes=[{"transaction_number": "T2"}])

    with pytest.raises(NotFoundError, match="User not found"):
        review_pass(db, admin=admin, user_id=9999, pass_id=user.passes[0].id, action="verify", payment_id_type="upi")
    with pytest.raises(NotFoundError, match="Pass not found"):
        review_pass(db, admin=admin, user_id=user.id, pass_id=other.passes[0].id, action="verify", payment_id_type="upi")
    with pytest.raises(ValidationError):
        review_pass(db, admin=admin, user_id=user.id, pass_id=user.passes[0].id, action="approve")


def test_email_failure_does_not_undo_verification(db, make_user, make_admin):
    admin = make_admin()
    user = make_user(passes=[{"transaction_number": "T1"}])
    pass_ = user.passes[0]

    # No SMTP relay is configured in tests, so delivery fails.
    result = review_pass(db, admin=admin, user_id=user.id, pass_id=pass_.id, action="verify", payment_id_type="upi")

    assert result["warnings"] == ["payment verification email failed to send"]
    db.refresh(pass_)
    assert pass_.status == "verified"


def test_verify_pending_pass(db, make_user, make_admin):
    admin = make_admin(AdminRole.PAYMENTS_ADMIN.value)
    user = make_user(passes=[{"transaction_number": "T1"}])
    pass_ = user.passes[0]

    updated = verify_pending_pass(db, admin=admin, pass_id=pass_.id, edited_transaction_id="T1-EDIT")

    assert updated.status == "verified"
    assert updated.payment_id_type == "upi"
    assert updated.transaction_number == "T1-EDIT"
    assert updated.gate_status == "not-checked"

    with pytest.raises(ValidationError):
        verify_pending_pass(db, admin=admin, pass_id=pass_.id)
    with pytest.raises(NotFoundError):
        verify_pending_pass(db, admin=admin, pass_id=9999)


def test_gate_requires_verified_payment(db, make_user, make_admin):
    admin = make_admin(AdminRole.PAYMENTS_ADMIN.value)
    user = make_user(passes=[{"transaction_number": "T1"}])
    pass_ = user.passes[0]

    with pytest.raises(ValidationError, match="verified"):
        _gate(db, admin, pass_.id)

    db.refresh(pass_)
    assert pass_.gate_status == "not-checked"
    assert db.query(VerificationSession).count() == 0


def test_gate_requires_complete_profile(db, make_user, make_admin):
    admin = make_admin()
    user = make_user(onboarding_completed=False, department=None, passes=[{"status": "verified"}])

    with pytest.raises(ValidationError, match="incomplete"):
        _gate(db, admin, user.passes[0].id)


def test_gate_completes_once(db, make_user, make_admin):
    admin = make_admin(AdminRole.PAYMENTS_ADMIN.value)
    college = College(name="Anna University", approved=True)
    db.add(college)
    db.commit()
    user = make_user(college=None, college_id=college.id, passes=[{"status": "verified", "pass_type": 3}])
    pass_ = user.passes[0]

    result = _gate(db, admin, pass_.id, panel_id=" P1 ")

    assert result["gate_status"] == "allowed"
    assert result["has_verified_pass"] is True
    assert result["warnings"] == []
    assert pass_.gate_checked_by_admin_id == admin.id
    assert pass_.gate_checked_by_panel_id == "P1"
    assert pass_.verification_source == "onspot"

    session = db.query(VerificationSession).one()
    assert session.snapshot_college_name == "Anna University"
    assert session.snapshot_user["email"] == user.email
    assert session.pass_type == 3
    assert session.physical_signature_collected is True

    with pytest.raises(ConflictError):
        _gate(db, admin, pass_.id)
    assert db.query(VerificationSession).count() == 1


def test_gate_snapshot_is_decoupled_from_later_edits(db, make_user, make_admin):
    admin = make_admin()
    user = make_user(name="Old Name", college="Old College", passes=[{"status": "verified"}])
    _gate(db, admin, user.passes[0].id)

    user.name = "New Name"
    user.college = "New College"
    db.commit()

    session = list_verification_sessions(db, user_id=user.id)[0]
    assert session.snapshot_user["name"] == "Old Name"
    assert session.snapshot_college_name == "Old College"


def test_gate_session_failure_is_a_warning(db, make_user, make_admin, monkeypatch):
    import pass_service

    admin = make_admin()
    user = make_user(college="X", passes=[{"status": "verified"}])

    class BrokenSession:
        def __init__(self, **kwargs):
            raise RuntimeError("audit store down")

    monkeypatch.setattr(pass_service, "VerificationSession", BrokenSession)
    result = _gate(db, admin, user.passes[0].id)

    assert result["gate_status"] == "allowed"
    assert result["session_id"] is None
    assert result["warnings"]


def test_profile_completeness(make_user):
    complete = make_user(onboarding_completed=False, college="MIT")
    assert is_profile_complete(complete)

    partial = make_user(onboarding_completed=False, college=None)
    assert not is_profile_complete(partial)
    assert missing_profile_fields(partial) == ["college", "email_verified"]

    onboarded = make_user(onboarding_completed=True, college=None)
    assert is_profile_complete(onboarded)
