from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .models import as_utc

SubmissionStatus = Literal["pending", "approved", "rejected"]
LoginStatus = Literal["active", "inactive"]
PlanTier = Literal["1_month", "3_months", "6_months", "1_year", "lifetime"]


def _split_refs(value: Any) -> Any:
    """Accept file references as a list or as a ``;``-joined string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(";") if part.strip()]
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


FileRefs = Annotated[List[str], BeforeValidator(_split_refs)]
PHValue = Annotated[Optional[Annotated[float, Field(ge=0, le=14)]], BeforeValidator(_blank_to_none)]
Percentage = Annotated[Optional[Annotated[float, Field(ge=0, le=100)]], BeforeValidator(_blank_to_none)]
NonNegative = Annotated[Optional[Annotated[float, Field(ge=0)]], BeforeValidator(_blank_to_none)]
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class SuccessOut(CamelModel):
    success: bool = True
    message: Optional[str] = None


class ConfigOut(CamelModel):
    supabase_url: str
    supabase_anon_key: str


# soil analysis


class SoilAnalysisCreate(CamelModel):
    field_name: str = Field(min_length=1)
    crop_type: str = Field(min_length=1)
    ph: PHValue = Field(None, alias="pH")
    nitrogen: NonNegative = None
    phosphorus: NonNegative = None
    potassium: NonNegative = None
    moisture: Percentage = None
    organic_matter: Percentage = None
    producer_name: Optional[str] = None
    producer_contact: Optional[str] = None
    producer_address: Optional[str] = None
    property_name: Optional[str] = None
    city: Optional[str] = None
    crop_age: Optional[str] = None
    production_type: Optional[str] = None
    spacing: Optional[str] = None
    area: Optional[str] = None
    sample_depth: Optional[str] = None
    collected_by: Optional[str] = None
    moon_phase: Optional[str] = None
    relative_humidity: Percentage = None
    precipitation: NonNegative = None
    notes: Optional[str] = None
    soil_analysis_pdf: Optional[str] = None
    attachments: FileRefs = Field(default_factory=list)

    @field_validator("field_name", "crop_type")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class SoilAnalysisOut(SoilAnalysisCreate):
    id: int
    user_email: str
    status: SubmissionStatus
    admin_comments: Optional[str] = None
    admin_file_urls: FileRefs = Field(default_factory=list)
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class StatusUpdate(CamelModel):
    status: SubmissionStatus


class ReviewUpdate(CamelModel):
    status: SubmissionStatus
    admin_comments: str = ""
    admin_file_urls: FileRefs = Field(default_factory=list)


class UploadOut(CamelModel):
    path: str
    kind: Literal["report", "attachment"]
    storage: Literal["supabase", "local"]


# access links and invites


class AccessLinkCreate(CamelModel):
    link_code: Optional[str] = Field(None, min_length=4, max_length=128)
    email: Optional[EmailStr] = None


class AccessLinkOut(CamelModel):
    id: int
    link_code: str
    uses_remaining: int
    email: Optional[str] = None
    created_at: Optional[UtcDatetime] = None


class AccessLinkUseOut(CamelModel):
    success: bool = True
    uses_remaining: int


class InviteCreate(CamelModel):
    email: EmailStr
    expires_in: Union[Literal["lifetime"], int] = 7

    @field_validator("expires_in")
    @classmethod
    def _check_days(cls, value):
        if value != "lifetime" and not 1 <= value <= 3650:
            raise ValueError("expiresIn must be between 1 and 3650 days or 'lifetime'")
        return value


class InviteOut(CamelModel):
    id: int
    code: str
    email: Optional[str] = None
    used_at: Optional[UtcDatetime] = None
    expires_at: Optional[UtcDatetime] = None
    created_at: Optional[UtcDatetime] = None


class InviteCreated(CamelModel):
    success: bool = True
    invite: InviteOut
    invite_url: str


class InviteValidation(CamelModel):
    valid: bool
    email: Optional[str] = None
    error: Optional[str] = None


# accounts


class UserProfileCreate(CamelModel):
    email: EmailStr
    full_name: str = Field(min_length=3)
    phone: str = Field(min_length=10)
    address: str = Field(min_length=5)
    occupation: str = Field(min_length=3)
    education: str = Field(min_length=3)
    birth_date: date
    invite_code: str = Field(min_length=1)


class UserOut(CamelModel):
    id: int
    email: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    occupation: Optional[str] = None
    education: Optional[str] = None
    birth_date: Optional[date] = None
    first_access: bool = True
    created_at: Optional[UtcDatetime] = None


class ProfileSaved(CamelModel):
    success: bool = True
    user: UserOut


class IdentityOut(CamelModel):
    id: str
    email: str
    role: Optional[str] = None
    is_admin: bool = False


class SignInRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class SignInOut(CamelModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    user: IdentityOut
    first_access: bool = False


class SessionStateOut(CamelModel):
    authenticated: bool
    user: Optional[IdentityOut] = None
    reason: Optional[str] = None
    redirect: Optional[str] = None
    poll_interval: int


class AuthUserOut(CamelModel):
    id: str
    email: Optional[str] = None
    created_at: Optional[str] = None
    last_sign_in_at: Optional[str] = None


# generated logins


class LoginCreate(CamelModel):
    username: Optional[str] = Field(None, min_length=3)
    password: Optional[str] = Field(None, min_length=6)
    client_name: Optional[str] = None
    email: Optional[EmailStr] = None
    plan: PlanTier = "1_month"
    expires_at: Optional[datetime] = None
    status: LoginStatus = "active"


class LoginUpdate(CamelModel):
    client_name: Optional[str] = None
    plan: Optional[PlanTier] = None
    expires_at: Optional[datetime] = None
    status: Optional[LoginStatus] = None

    @field_validator("plan", "status")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value


class LoginOut(CamelModel):
    id: int
    username: str
    client_name: Optional[str] = None
    email: Optional[str] = None
    plan: Optional[str] = None
    expires_at: Optional[UtcDatetime] = None
    status: LoginStatus
    created_at: Optional[UtcDatetime] = None


class LoginCreated(LoginOut):
    password: str


class LoginWithAuthCreate(CamelModel):
    email: EmailStr
    password: Optional[str] = Field(None, min_length=6)
    client_name: Optional[str] = None
    plan: PlanTier = "1_month"
    expires_at: Optional[datetime] = None


class LoginWithAuthOut(CamelModel):
    success: bool = True
    message: str
    login: LoginCreated


class VerifyLoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class EmailRequest(CamelModel):
    email: EmailStr


class VerifiedLoginUser(CamelModel):
    id: int
    email: Optional[str] = None
    username: str
    client_name: Optional[str] = None
    plan: Optional[str] = None


class VerifyLoginOut(CamelModel):
    success: bool = True
    user: VerifiedLoginUser


class AuditLogOut(CamelModel):
    id: UUID
    actor_email: str
    action: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[UtcDatetime] = None
