from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


class AdminRole(enum.Enum):
    SUPER_ADMIN = "super-admin"
    VIEW_ONLY = "view-only"
    EVENTS_ADMIN = "events-admin"
    PAYMENTS_ADMIN = "payments-admin"
    PAPER_PRESENTATION_ADMIN = "paper-presentation-admin"
    IDEATHON_ADMIN = "ideathon-admin"


class PassStatus(enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class GateStatus(enum.Enum):
    NOT_CHECKED = "not-checked"
    ALLOWED = "allowed"


class PaymentIdType(enum.Enum):
    UPI = "upi"
    EAZYPAY = "eazypay"
    ONSPOT = "onspot"


class PaymentSource(enum.Enum):
    ONLINE = "online"
    ONSPOT_UPI = "onspot-UPI"
    ONSPOT_CASH = "onspot-Cash"


class VerificationSource(enum.Enum):
    ONLINE = "online"
    ONSPOT = "onspot"


PASS_LABELS = {
    1: "Pass 1 - Offline Workshop And Events",
    2: "Pass 2 - Paper Presentation",
    3: "Pass 3 - Ideathon",
    4: "Pass 4 - Online Workshops",
}


class College(Base):
    __tablename__ = "colleges"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    city = Column(String(120), nullable=True, default="")
    state = Column(String(120), nullable=True, default="")
    added_by_user = Column(String(255), nullable=True)
    approved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)
    phone_no = Column(String(20), nullable=True)
    year = Column(Integer, nullable=True)
    department = Column(String(150), nullable=True)
    college_id = Column(Integer, ForeignKey("colleges.id"), nullable=True, index=True)
    college = Column(String(255), nullable=True)  # display snapshot of the canonical name
    onboarding_completed = Column(Boolean, default=False, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    has_verified_pass = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    passes = relationship(
        "Pass",
        back_populates="user",
        order_by="[Pass.position, Pass.id]",
        cascade="all, delete-orphan",
    )


class Pass(Base):
    __tablename__ = "passes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, default=0, nullable=False)
    pass_type = Column(Integer, nullable=False)  # 1..4, see PASS_LABELS
    payment_id_type = Column(String(20), nullable=True)
    transaction_number = Column(String(255), nullable=True, index=True)
    transaction_screenshot = Column(String(500), nullable=True)
    status = Column(String(20), default=PassStatus.PENDING.value, nullable=False)
    gate_status = Column(String(20), default=GateStatus.NOT_CHECKED.value, nullable=False)
    payment_source = Column(String(20), default=PaymentSource.ONLINE.value, nullable=True)
    verification_source = Column(String(20), nullable=True)
    onspot_created = Column(Boolean, default=False, nullable=False)
    submitted_date = Column(DateTime(timezone=True), server_default=func.now())
    verified_by = Column(String(255), nullable=True)
    verified_by_email = Column(String(255), nullable=True)
    verified_date = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    gate_checked_at = Column(DateTime(timezone=True), nullable=True)
    gate_checked_by_admin_id = Column(Integer, nullable=True)
    gate_checked_by_panel_id = Column(String(120), nullable=True)

    user = relationship("User", back_populates="passes")


class CollegeMergeLog(Base):
    __tablename__ = "college_merge_logs"

    id = Column(Integer, primary_key=True, index=True)
    college_id = Column(Integer, ForeignKey("colleges.id"), nullable=False)
    college_name = Column(String(255), nullable=False)
    normalized_keys = Column(JSON, nullable=True)
    user_ids = Column(JSON, nullable=True)
    modified_count = Column(Integer, nullable=False, default=0)
    performed_by_email = Column(String(255), nullable=True)
    performed_at = Column(DateTime(timezone=True), server_default=func.now())


class VerificationSession(Base):
    __tablename__ = "verification_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    pass_id = Column(Integer, nullable=False, index=True)
    pass_type = Column(Integer, nullable=False)
    # Snapshots taken at verification time; later profile edits do not touch them.
    snapshot_user = Column(JSON, nullable=True)
    snapshot_college_name = Column(String(255), nullable=True)
    admin_id = Column(Integer, nullable=False)
    admin_email = Column(String(255), nullable=True)
    panel_id = Column(String(120), nullable=True)
    physical_signature_collected = Column(Boolean, default=False, nullable=False)
    details_corrected_on_paper = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(40), nullable=False, default=AdminRole.VIEW_ONLY.value)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(255), nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AdminLog(Base):
    __tablename__ = "admin_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, nullable=True)
    admin_email = Column(String(255), nullable=False)
    admin_name = Column(String(255), nullable=False)
    action = Column(String(255), nullable=False)
    method = Column(String(10), nullable=True)
    path = Column(String(255), nullable=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
