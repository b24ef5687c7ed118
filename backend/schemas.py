from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, List, Dict, Any, Literal
from enum import Enum
from datetime import datetime


class AdminRoleEnum(str, Enum):
    SUPER_ADMIN = "super-admin"
    VIEW_ONLY = "view-only"
    EVENTS_ADMIN = "events-admin"
    PAYMENTS_ADMIN = "payments-admin"
    PAPER_PRESENTATION_ADMIN = "paper-presentation-admin"
    IDEATHON_ADMIN = "ideathon-admin"


class PassStatusEnum(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class PaymentIdTypeEnum(str, Enum):
    UPI = "upi"
    EAZYPAY = "eazypay"
    ONSPOT = "onspot"


def _strip_required(value: str, field_name: str) -> str:
    cleaned = str(value or "").strip()
    if not cleaned:
        raise ValueError(f"{field_name} is required")
    return cleaned


# Auth Schemas
class AdminLogin(BaseModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class AdminResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: str
    is_active: bool
    created_by: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    admin: AdminResponse


class AdminCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8)
    role: AdminRoleEnum


class AdminLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    admin_id: Optional[int] = None
    admin_email: str
    admin_name: str
    action: str
    method: Optional[str] = None
    path: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class ActionResponse(BaseModel):
    success: bool = True
    message: str
    warnings: List[str] = []


# College Schemas
class CollegeCreate(BaseModel):
    name: str
    city: Optional[str] = None
    state: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _strip_required(v, "College name")


class NewCollegeInput(CollegeCreate):
    pass


class CollegeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    city: Optional[str] = ""
    state: Optional[str] = ""
    approved: bool
    added_by_user: Optional[str] = None
    created_at: Optional[datetime] = None


class CollegeCreateResponse(BaseModel):
    success: bool = True
    college: CollegeResponse


class CollegeListResponse(BaseModel):
    success: bool = True
    colleges: List[CollegeResponse]


class CollegeMergeRequest(BaseModel):
    college_id: int
    normalized_keys: Optional[List[str]] = None
    user_ids: Optional[List[int]] = None


class CollegeMergeResponse(BaseModel):
    success: bool = True
    message: str
    college_id: int
    college_name: str
    modified_count: int
    normalized_keys: List[str] = []
    user_ids: List[int] = []
    warnings: List[str] = []


class UnmappedVariant(BaseModel):
    name: str
    count: int


class UnmappedCollegeGroup(BaseModel):
    normalized_key: str
    display_name: str
    total_users: int
    user_ids: List[int]
    variants: List[UnmappedVariant]


class UnmappedCollegesResponse(BaseModel):
    success: bool = True
    colleges: List[UnmappedCollegeGroup]


class CollegeMergeLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    college_id: int
    college_name: str
    normalized_keys: Optional[List[str]] = None
    user_ids: Optional[List[int]] = None
    modified_count: int
    performed_by_email: Optional[str] = None
    performed_at: Optional[datetime] = None


# Pass / Payment Schemas
class PassResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    pass_type: int
    payment_id_type: Optional[str] = None
    transaction_number: Optional[str] = None
    transaction_screenshot: Optional[str] = None
    status: str
    gate_status: str
    payment_source: Optional[str] = None
    verification_source: Optional[str] = None
    onspot_created: bool = False
    submitted_date: Optional[datetime] = None
    verified_by: Optional[str] = None
    verified_by_email: Optional[str] = None
    verified_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    gate_checked_at: Optional[datetime] = None
    gate_checked_by_admin_id: Optional[int] = None
    gate_checked_by_panel_id: Optional[str] = None


class PaymentRecord(BaseModel):
    user_id: int
    pass_id: int
    user_name: str
    user_email: str
    college: str
    department: str
    year: Optional[int] = None
    phone_no: str
    pass_type: int
    payment_id_type: Optional[str] = None
    payment_source: Optional[str] = None
    transaction_number: str
    screenshot_url: Optional[str] = None
    status: str
    gate_status: str
    rejection_reason: str
    submitted_date: Optional[datetime] = None
    verified_date: Optional[datetime] = None
    verified_by: str
    verified_by_email: str
    is_duplicate: bool
    has_special_characters: bool


class PaymentsSummary(BaseModel):
    total: int
    pending: int
    verified: int
    rejected: int
    duplicates: int


class PaymentsListResponse(BaseModel):
    success: bool = True
    payments: List[PaymentRecord]
    summary: PaymentsSummary


class PaymentReviewRequest(BaseModel):
    user_id: int
    pass_id: int
    action: str
    rejection_reason: Optional[str] = None
    payment_id_type: Optional[PaymentIdTypeEnum] = None
    edited_transaction_id: Optional[str] = None


class TransactionCheckRequest(BaseModel):
    transaction_id: Optional[str] = None


class TransactionCheckResponse(BaseModel):
    exists: bool


class VerifyPendingRequest(BaseModel):
    payment_id_type: Optional[PaymentIdTypeEnum] = None
    edited_transaction_id: Optional[str] = None


class VerifyPendingResponse(BaseModel):
    success: bool = True
    pass_id: int
    status: str
    payment_id_type: Optional[str] = None
    transaction_number: Optional[str] = None


class GateVerificationRequest(BaseModel):
    physical_signature_collected: bool
    details_corrected_on_paper: bool
    panel_id: Optional[str] = None


class GateVerificationResponse(BaseModel):
    success: bool = True
    gate_status: str
    has_verified_pass: bool
    session_id: Optional[int] = None
    warnings: List[str] = []


class VerificationSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    pass_id: int
    pass_type: int
    snapshot_user: Optional[Dict[str, Any]] = None
    snapshot_college_name: Optional[str] = None
    admin_id: int
    admin_email: Optional[str] = None
    panel_id: Optional[str] = None
    physical_signature_collected: bool
    details_corrected_on_paper: bool
    created_at: Optional[datetime] = None


# On-spot Schemas
class OnspotProfileBase(BaseModel):
    name: str
    email: EmailStr
    phone_no: str
    year: int = Field(..., ge=1, le=10)
    department: str
    college_id: Optional[int] = None
    new_college: Optional[NewCollegeInput] = None

    @field_validator("name", "phone_no", "department")
    @classmethod
    def validate_required_text(cls, v, info):
        return _strip_required(v, info.field_name)


class ManualUserCreate(OnspotProfileBase):
    pass_type: int = Field(..., ge=1, le=4)
    payment_source: Literal["onspot-UPI", "onspot-Cash"]


class OnspotUserUpdate(OnspotProfileBase):
    pass


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None
    phone_no: Optional[str] = None
    year: Optional[int] = None
    department: Optional[str] = None
    college_id: Optional[int] = None
    college: Optional[str] = None
    onboarding_completed: bool
    email_verified: bool
    has_verified_pass: bool
    created_at: Optional[datetime] = None


class ManualUserResponse(BaseModel):
    success: bool = True
    user_id: int
    pass_: PassResponse = Field(..., alias="pass")
    warnings: List[str] = []

    model_config = ConfigDict(populate_by_name=True)


class OnspotUserFlags(BaseModel):
    profile_complete: bool
    missing_fields: List[str]
    has_any_pass: bool
    has_eligible_pass: bool
    has_gate_allowance: bool
    has_verified_pass: bool


class OnspotViewer(BaseModel):
    admin_email: str
    admin_role: str


class OnspotUserResponse(BaseModel):
    success: bool = True
    user: UserResponse
    college_resolved: Optional[CollegeResponse] = None
    passes: List[PassResponse]
    flags: OnspotUserFlags
    viewer: OnspotViewer


class OnspotUserUpdateResponse(BaseModel):
    success: bool = True
    user: UserResponse


# User administration Schemas
class UserSortEnum(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"
    COLLEGE_ASC = "college_asc"
    COLLEGE_DESC = "college_desc"


class OnboardingFilterEnum(str, Enum):
    ALL = "all"
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


class UserListItem(UserResponse):
    missing_fields: List[str] = []


class UserListResponse(BaseModel):
    success: bool = True
    users: List[UserListItem]
    total: int
    page: int
    page_size: int


class UserDetailResponse(BaseModel):
    success: bool = True
    user: UserResponse
    passes: List[PassResponse]
    missing_fields: List[str]


class UserAdminUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_no: Optional[str] = None
    year: Optional[int] = Field(None, ge=1, le=10)
    department: Optional[str] = None
    college_id: Optional[int] = None
    college: Optional[str] = None
    onboarding_completed: Optional[bool] = None
    email_verified: Optional[bool] = None


class UserBulkDeleteRequest(BaseModel):
    ids: List[int]


class UserDeleteResponse(BaseModel):
    success: bool = True
    deleted: int
