"""
API request and response models for Stockkeeper REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
inventory/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format: JSON keys are camelCase (alias_generator=to_camel). Python code
uses snake_case attribute names.

Request bodies: every field is Optional at the type level. The access gate
parses bodies leniently (auth.dependencies.read_json_body), and each payload
class lists its required_fields; RequestPayload.parse() turns an absent or
ill-typed field into a 400 with a message naming the field, instead of letting
a None reach the store and surface as a 500.
"""

from datetime import date
from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from auth.errors import validation_error
from auth.login import Session
from auth.models import Account, Role
from inventory.models import Product, ProductType

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RequestPayload(BaseModel):
    """Base class for request bodies validated inside the handler."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    required_fields: ClassVar[tuple[str, ...]] = ()

    @classmethod
    def parse(cls, raw: dict):
        """Validate raw against this model. Raises RequestRejected (400) on failure.

        Type errors are reported first (by wire name), then absent or empty
        required fields.
        """
        try:
            payload = cls.model_validate(raw)
        except ValidationError as exc:
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
            raise validation_error(f"Invalid value for: {', '.join(fields)}.") from exc
        missing = [to_camel(name) for name in cls.required_fields if getattr(payload, name) in (None, "")]
        if missing:
            raise validation_error(f"Missing required fields: {', '.join(missing)}.")
        return payload


class LoginRequest(RequestPayload):
    """Request body for POST /api/v1/auth/login."""

    required_fields: ClassVar[tuple[str, ...]] = ("email", "password")

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class ChangePasswordRequest(RequestPayload):
    """Request body for POST /api/v1/auth/change-password.

    new_password is not listed as required here: PasswordRotation owns that
    rule and reports it with its own message.
    """

    new_password: Optional[str] = None


class ProductCreate(RequestPayload):
    """Request body for POST /api/v1/products. expiration is YYYY-MM-DD."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", str_strip_whitespace=True
    )

    required_fields: ClassVar[tuple[str, ...]] = ("name", "expiration", "type_id")

    name: Optional[str] = Field(default=None, max_length=255)
    expiration: Optional[date] = None
    type_id: Optional[int] = None


class UserCreate(RequestPayload):
    """Request body for POST /api/v1/users. password is the temporary password."""

    required_fields: ClassVar[tuple[str, ...]] = ("email", "password", "name", "role")

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = None
    name: Optional[str] = Field(default=None, max_length=255)
    role: Optional[Role] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ErrorResponse(ResponseModel):
    """Error envelope returned on every 4xx/5xx response."""

    error: str
    code: str


class MessageResponse(ResponseModel):
    message: str


class HealthResponse(ResponseModel):
    """Response for GET /api/v1/health."""

    status: str = "ok"
    version: str


class ProfileResponse(ResponseModel):
    """Public view of an account. Never carries the password hash."""

    email: str
    name: str
    role: Role


class LoginResponse(ResponseModel):
    """Response for a successful POST /api/v1/auth/login."""

    token: str
    user: ProfileResponse
    must_change_password: bool

    @classmethod
    def from_session(cls, session: Session) -> "LoginResponse":
        return cls(
            token=session.token,
            user=ProfileResponse(**session.profile()),
            must_change_password=session.account.must_change_password,
        )


class ProductTypeResponse(ResponseModel):
    id: int
    name: str

    @classmethod
    def from_domain(cls, product_type: ProductType) -> "ProductTypeResponse":
        return cls(id=product_type.id, name=product_type.name)


class ProductResponse(ResponseModel):
    id: int
    name: str
    expiration: date
    type_id: int
    created_at: str
    type: Optional[ProductTypeResponse] = None

    @classmethod
    def from_domain(cls, product: Product) -> "ProductResponse":
        """Factory Method: the domain-to-wire mapping lives next to the wire model."""
        return cls(
            id=product.id,
            name=product.name,
            expiration=product.expiration,
            type_id=product.type_id,
            created_at=product.created_at,
            type=ProductTypeResponse.from_domain(product.type) if product.type else None,
        )


class UserResponse(ResponseModel):
    """Account as listed to administrators. password_hash is intentionally absent."""

    id: int
    email: str
    name: str
    role: Role
    must_change_password: bool
    created_at: str

    @classmethod
    def from_domain(cls, account: Account) -> "UserResponse":
        return cls(
            id=account.id,
            email=account.email,
            name=account.name,
            role=account.role,
            must_change_password=account.must_change_password,
            created_at=account.created_at or "",
        )


class ChartPoint(ResponseModel):
    label: str
    value: int


class DashboardResponse(ResponseModel):
    """Response for GET /api/v1/dashboard."""

    total_products: int
    total_users: int
    chart_data: list[ChartPoint]
