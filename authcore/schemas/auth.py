# authcore/schemas/auth.py
import re
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..application.ports.account_store import (
    ADMIN_ROLES,
    BUSINESS_ROLES,
    CUSTOMER_TYPES,
    STAFF_ROLES,
    AccountType,
    NewAccount,
)
from ..exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[0-9]{10,15}$")


def normalize_email(value: str) -> str:
    value = (value or "").strip().lower()
    if not value:
        raise ValueError("Email is required")
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Address(CamelModel):
    district: Optional[str] = None
    municipality: Optional[str] = None
    city: Optional[str] = None
    tole: Optional[str] = None
    near_famous_place: Optional[str] = None
    country: Optional[str] = None
    province: Optional[str] = None
    zip: Optional[str] = None


class RegistrationRequest(CamelModel):
    """Fields shared by every account variant. Customers may omit name, phone and address."""

    ACCOUNT_TYPE: ClassVar[AccountType]

    email: str
    password: str
    name: Optional[str] = None
    phone: Optional[str] = None
    permanent_address: Optional[Address] = None
    temporary_address: Optional[Address] = None
    verification_channel: str = "email"

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v if isinstance(v, str) else "")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Password is required")
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not PHONE_PATTERN.match(v):
            raise ValueError("Invalid phone number")
        return v

    @field_validator("verification_channel")
    @classmethod
    def validate_channel(cls, v: str) -> str:
        if v not in ("email", "sms"):
            raise ValueError('Verification channel must be either "email" or "sms"')
        return v

    @model_validator(mode="after")
    def check_sms_phone(self):
        if self.verification_channel == "sms" and not self.phone:
            raise ValueError("Phone is required for SMS verification")
        return self

    @property
    def account_type(self) -> AccountType:
        return self.ACCOUNT_TYPE

    @property
    def identifier(self) -> str:
        """Key for all OTP state: the phone for SMS verification, the email otherwise."""
        return self.phone if self.verification_channel == "sms" else self.email

    def profile(self) -> Dict[str, Any]:
        profile: Dict[str, Any] = {
            "isEmailVerified": self.verification_channel == "email",
            "isPhoneVerified": self.verification_channel == "sms",
        }
        if self.permanent_address is not None:
            profile["permanentAddress"] = self.permanent_address.model_dump(by_alias=True, exclude_none=True)
        if self.temporary_address is not None:
            profile["temporaryAddress"] = self.temporary_address.model_dump(by_alias=True, exclude_none=True)
        return profile

    def to_new_account(self, password_hash: str) -> NewAccount:
        return NewAccount(
            account_type=self.account_type,
            email=self.email,
            password_hash=password_hash,
            phone=self.phone,
            name=self.name,
            role_in_company=getattr(self, "role_in_company", None),
            customer_type=getattr(self, "customer_type", None),
            profile=self.profile(),
        )


class StrictRegistrationRequest(RegistrationRequest):
    """Admin, business and staff accounts: name, phone, address and a role are mandatory."""

    ROLES: ClassVar[frozenset] = frozenset()

    name: str
    phone: str
    permanent_address: Address
    role_in_company: str

    @model_validator(mode="after")
    def check_required_profile(self):
        if not self.name:
            raise ValueError("Name is required")
        if not self.phone:
            raise ValueError("Phone is required")
        address = self.permanent_address
        if not (address.district and address.country and address.province):
            raise ValueError("Permanent address with district, country and province is required")
        if self.role_in_company not in type(self).ROLES:
            raise ValueError(f"Invalid role: {self.role_in_company}")
        return self


class CustomerRegistrationRequest(RegistrationRequest):
    ACCOUNT_TYPE: ClassVar[AccountType] = AccountType.CUSTOMER
    customer_type: str = "new"

    @field_validator("customer_type")
    @classmethod
    def validate_customer_type(cls, v: str) -> str:
        if v not in CUSTOMER_TYPES:
            raise ValueError(f"Invalid customer type: {v}")
        return v


class BusinessRegistrationRequest(StrictRegistrationRequest):
    ACCOUNT_TYPE: ClassVar[AccountType] = AccountType.BUSINESS
    ROLES: ClassVar[frozenset] = BUSINESS_ROLES
    role_in_company: str = "owner"


class StaffRegistrationRequest(StrictRegistrationRequest):
    ACCOUNT_TYPE: ClassVar[AccountType] = AccountType.STAFF
    ROLES: ClassVar[frozenset] = STAFF_ROLES
    role_in_company: str = "helper"
    company_id: Optional[str] = None

    def profile(self) -> Dict[str, Any]:
        profile = super().profile()
        if self.company_id:
            profile["companyId"] = self.company_id
        return profile


class AdminRegistrationRequest(StrictRegistrationRequest):
    ACCOUNT_TYPE: ClassVar[AccountType] = AccountType.ADMIN
    ROLES: ClassVar[frozenset] = ADMIN_ROLES
    role_in_company: str = "admin"


REGISTRATION_MODELS: Dict[AccountType, Type[RegistrationRequest]] = {
    AccountType.ADMIN: AdminRegistrationRequest,
    AccountType.BUSINESS: BusinessRegistrationRequest,
    AccountType.CUSTOMER: CustomerRegistrationRequest,
    AccountType.STAFF: StaffRegistrationRequest,
}


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v):
        return normalize_email(v if isinstance(v, str) else "")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Password is required")
        return v


def _error_list(exc: PydanticValidationError) -> List[Dict[str, str]]:
    # never echo the submitted input back, it may contain the password
    errors = []
    for err in exc.errors():
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "message": message,
        })
    return errors


def validate_payload(model: Type[BaseModel], payload: Mapping[str, Any]):
    """Parse ``payload`` into ``model`` or raise the service ValidationError."""
    try:
        return model.model_validate(dict(payload))
    except PydanticValidationError as exc:
        errors = _error_list(exc)
        raise ValidationError(errors[0]["message"] if errors else None, details={"errors": errors})


def parse_registration(payload: Mapping[str, Any]) -> RegistrationRequest:
    raw_type = payload.get("accountType", payload.get("account_type"))
    try:
        account_type = AccountType(str(raw_type).lower())
    except ValueError:
        raise ValidationError(
            "accountType must be one of admin, business, customer, staff",
            details={"errors": [{"field": "accountType", "message": "Unknown account type"}]},
        )
    return validate_payload(REGISTRATION_MODELS[account_type], payload)


class VerifyOTPRequest(CamelModel):
    otp: Optional[str] = Field(None, description="Code delivered to the identifier")
    identifier: Optional[str] = Field(None, description="Email or phone the code was sent to; defaults to the payload's")

    @field_validator("otp", mode="before")
    @classmethod
    def coerce_otp(cls, v):
        # codes typed into numeric inputs arrive as integers
        return str(v) if isinstance(v, int) else v

    @field_validator("identifier")
    @classmethod
    def normalize_identifier(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        return v.lower() if "@" in v else v
