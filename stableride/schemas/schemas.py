from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator

TIME_PATTERN = r"^\d{2}:\d{2}$"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ServiceTypeEnum(str, Enum):
    ONE_WAY = "ONE_WAY"
    ROUNDTRIP = "ROUNDTRIP"
    HOURLY = "HOURLY"


class BookingStatusEnum(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DriverStatusEnum(str, Enum):
    OFFLINE = "OFFLINE"
    AVAILABLE = "AVAILABLE"
    BUSY = "BUSY"


class PaymentStatusEnum(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class AdminRoleEnum(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    OPERATIONS_MANAGER = "OPERATIONS_MANAGER"
    FINANCE_MANAGER = "FINANCE_MANAGER"
    CUSTOMER_SERVICE = "CUSTOMER_SERVICE"


class ProviderEnum(str, Enum):
    stripe = "stripe"
    twilio = "twilio"
    sendgrid = "sendgrid"
    google_maps = "google_maps"


class EnvironmentEnum(str, Enum):
    sandbox = "sandbox"
    production = "production"


class PolicyCategoryEnum(str, Enum):
    terms_of_service = "terms_of_service"
    privacy_policy = "privacy_policy"
    cookie_policy = "cookie_policy"
    refund_policy = "refund_policy"
    accessibility = "accessibility"


class RefundReasonEnum(str, Enum):
    duplicate = "duplicate"
    fraudulent = "fraudulent"
    requested_by_customer = "requested_by_customer"


class ExportFormatEnum(str, Enum):
    geojson = "geojson"
    kml = "kml"


# ---------------------------------------------------------------------------
# Auth schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, min_length=10, max_length=20)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class UserResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    is_driver: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class AdminResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: AdminRoleEnum
    permissions: list[str]
    is_active: bool
    last_login_at: Optional[datetime] = None


class AdminTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    admin: AdminResponse


# ---------------------------------------------------------------------------
# Admin user and customer management schemas
# ---------------------------------------------------------------------------

class AdminUserCreate(BaseModel):
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: AdminRoleEnum = AdminRoleEnum.CUSTOMER_SERVICE
    permissions: list[str] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class AdminUserUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    role: Optional[AdminRoleEnum] = None
    permissions: Optional[list[str]] = None
    is_active: Optional[bool] = None


class AdminListResponse(BaseModel):
    items: list[AdminResponse]
    total: int
    limit: int
    offset: int


class CustomerAdminResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    is_active: bool
    is_driver: bool
    driver_status: Optional[DriverStatusEnum] = None
    vehicle_info: Optional[dict] = None
    total_trips: int
    created_at: datetime

    model_config = {"from_attributes": True}


class CustomerListResponse(BaseModel):
    items: list[CustomerAdminResponse]
    total: int
    limit: int
    offset: int


class CustomerStatusUpdate(BaseModel):
    is_active: bool
    reason: Optional[str] = Field(default=None, max_length=500)


class DriverEnrollRequest(BaseModel):
    vehicle_info: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Enhancement schemas
# ---------------------------------------------------------------------------

class LuggageOptions(BaseModel):
    meet_and_greet: bool = False
    bag_count: int = 0
    special_items: list[str] = Field(default_factory=list)


class ChildSeats(BaseModel):
    infant: int = 0
    toddler: int = 0
    booster: int = 0


class EnhancementSelection(BaseModel):
    trip_protection: bool = False
    luggage: Optional[LuggageOptions] = None
    vehicle_upgrade: Optional[str] = None
    child_seats: Optional[ChildSeats] = None
    additional_stops: int = 0


class EnhancementCalculateRequest(BaseModel):
    amount: Decimal
    enhancements: EnhancementSelection = Field(default_factory=EnhancementSelection)


class BreakdownItem(BaseModel):
    item: str
    cost: float


class EnhancementCostResponse(BaseModel):
    trip_protection: float
    luggage: float
    vehicle_upgrade: float
    child_seats: float
    additional_stops: float
    total: float
    breakdown: list[BreakdownItem]


class VehicleOption(BaseModel):
    type: str
    name: str
    description: str
    capacity: int
    features: list[str]
    multiplier: float


class EnhancementOption(BaseModel):
    category: str
    id: str
    name: str
    description: str
    price: float
    unit: str


class BookingEnhancementResponse(BaseModel):
    booking_id: str
    selections: dict
    breakdown: list[BreakdownItem]
    total_cost: float
    booking_total: float


# ---------------------------------------------------------------------------
# Service area schemas
# ---------------------------------------------------------------------------

class Center(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ServiceAreaCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    polygon: Optional[dict] = None
    center: Optional[Center] = None
    radius_km: Optional[float] = Field(default=None, gt=0)
    surcharge_amount: Optional[Decimal] = Field(default=None, ge=0)
    surcharge_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    is_active: bool = True
    restrictions: dict = Field(default_factory=dict)


class ServiceAreaUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    polygon: Optional[dict] = None
    center: Optional[Center] = None
    radius_km: Optional[float] = Field(default=None, gt=0)
    surcharge_amount: Optional[Decimal] = Field(default=None, ge=0)
    surcharge_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    is_active: Optional[bool] = None
    restrictions: Optional[dict] = None


class ServiceAreaResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    polygon: Optional[dict] = None
    center: Optional[dict] = None
    radius_km: Optional[float] = None
    surcharge_amount: Optional[float] = None
    surcharge_percentage: Optional[float] = None
    is_active: bool
    restrictions: dict
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ServiceAreaOverview(BaseModel):
    total: int
    active: int
    with_surcharge: int
    coverage_km2: float
    overlapping: list[list[str]]


class LocationCheckRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    amount: Optional[Decimal] = Field(default=None, ge=0)


class AreaRef(BaseModel):
    id: str
    name: str


class AvailabilityResponse(BaseModel):
    available: bool
    areas: list[AreaRef]
    surcharge_amount: float
    surcharge_percentage: float
    surcharge: Optional[float] = None


# ---------------------------------------------------------------------------
# Quote / booking schemas
# ---------------------------------------------------------------------------

class LocationInput(BaseModel):
    address: str = Field(..., min_length=1, max_length=500)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class QuoteRequest(BaseModel):
    service_type: ServiceTypeEnum
    scheduled_at: datetime
    return_at: Optional[datetime] = None
    duration_hours: Optional[float] = Field(default=None, gt=0, le=24)
    pickup: LocationInput
    dropoff: Optional[LocationInput] = None
    enhancements: Optional[EnhancementSelection] = None
    gratuity_amount: Decimal = Field(default=Decimal("0"), ge=0)


class BookingCreateRequest(QuoteRequest):
    contact_phone: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=2000)


class FareAdjustment(BaseModel):
    type: str
    name: str
    amount: float


class FareBreakdown(BaseModel):
    base_rate: float
    distance_charge: float
    time_charges: float
    discounts: list[FareAdjustment]
    surcharges: list[FareAdjustment]
    subtotal: float
    tax: float
    total: float


class QuoteResponse(BaseModel):
    distance_miles: Optional[float] = None
    fare: FareBreakdown
    service_area_surcharge: float
    enhancements: EnhancementCostResponse
    gratuity: float
    total: float


class BookingResponse(BaseModel):
    id: str
    reference: str
    user_id: str
    driver_id: Optional[str] = None
    service_type: ServiceTypeEnum
    scheduled_at: datetime
    return_at: Optional[datetime] = None
    duration_hours: Optional[float] = None
    pickup_address: str
    pickup_lat: float
    pickup_lng: float
    dropoff_address: Optional[str] = None
    dropoff_lat: Optional[float] = None
    dropoff_lng: Optional[float] = None
    base_amount: float
    surcharge_amount: float
    enhancement_amount: float
    gratuity_amount: float
    total_amount: float
    status: BookingStatusEnum
    contact_phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    items: list[BookingResponse]
    total: int
    limit: int
    offset: int


class BookingStatusUpdate(BaseModel):
    status: BookingStatusEnum
    reason: Optional[str] = Field(default=None, max_length=500)


class AssignDriverRequest(BaseModel):
    driver_id: str


# ---------------------------------------------------------------------------
# Payment schemas
# ---------------------------------------------------------------------------

class PaymentIntentRequest(BaseModel):
    booking_id: str


class PaymentIntentResponse(BaseModel):
    payment_id: str
    payment_intent_id: str
    client_secret: Optional[str] = None
    amount: float
    currency: str
    status: PaymentStatusEnum


class PaymentConfirmRequest(BaseModel):
    payment_method_id: Optional[str] = None


class PaymentResponse(BaseModel):
    id: str
    booking_id: str
    user_id: str
    amount: float
    currency: str
    status: PaymentStatusEnum
    stripe_payment_intent_id: Optional[str] = None
    failure_reason: Optional[str] = None
    refund_id: Optional[str] = None
    refund_amount: Optional[float] = None
    reconciled: bool
    reconciled_at: Optional[datetime] = None
    reconciled_by: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Financial schemas
# ---------------------------------------------------------------------------

class BalanceSnapshot(BaseModel):
    available: float
    pending: float
    currency: str


class Discrepancy(BaseModel):
    payment_id: str
    booking_id: str
    stripe_payment_intent_id: str
    local_amount: float
    provider_amount: float
    difference: float


class ReconciliationReport(BaseModel):
    balance: Optional[BalanceSnapshot] = None
    local_total: float
    checked: int
    matched: int
    discrepancies: list[Discrepancy]
    unverified: list[str]
    reconciled_count: int
    unreconciled_count: int
    last_reconciled_at: Optional[datetime] = None
    next_reconciliation_at: datetime


class RevenueWindow(BaseModel):
    today: float
    week: float
    month: float


class FinancialMetrics(BaseModel):
    revenue: RevenueWindow
    transactions: dict[str, int]
    refunded_total: float


class RefundRequest(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0)
    reason: Optional[RefundReasonEnum] = None


# ---------------------------------------------------------------------------
# Driver schemas
# ---------------------------------------------------------------------------

class DriverLocationUpdate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    heading: Optional[float] = Field(default=None, ge=0, lt=360)
    speed: Optional[float] = Field(default=None, ge=0)
    timestamp: Optional[datetime] = None


class DriverAvailabilityUpdate(BaseModel):
    status: DriverStatusEnum

    @field_validator("status")
    @classmethod
    def not_busy(cls, v: DriverStatusEnum) -> DriverStatusEnum:
        if v == DriverStatusEnum.BUSY:
            raise ValueError("BUSY is set automatically while a ride is in progress")
        return v


class DriverProfileResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    driver_status: Optional[DriverStatusEnum] = None
    vehicle_info: Optional[dict] = None
    total_trips: int

    model_config = {"from_attributes": True}


class DriverEarnings(BaseModel):
    date: date
    completed_rides: int
    total_earnings: float


class LiveLocationResponse(BaseModel):
    booking_id: str
    driver_id: Optional[str] = None
    location: Optional[dict] = None


# ---------------------------------------------------------------------------
# Integration schemas
# ---------------------------------------------------------------------------

class IntegrationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    provider: ProviderEnum
    environment: EnvironmentEnum = EnvironmentEnum.sandbox
    config: dict
    is_active: bool = False


class IntegrationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    environment: Optional[EnvironmentEnum] = None
    config: Optional[dict] = None
    is_active: Optional[bool] = None


class IntegrationResponse(BaseModel):
    id: str
    name: str
    provider: ProviderEnum
    environment: EnvironmentEnum
    config: dict
    is_active: bool
    last_tested_at: Optional[datetime] = None
    last_test_status: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class IntegrationOverview(BaseModel):
    total: int
    active: int
    by_provider: dict[str, int]


class IntegrationTestResult(BaseModel):
    success: bool
    message: str
    details: Optional[dict] = None


# ---------------------------------------------------------------------------
# Policy schemas
# ---------------------------------------------------------------------------

VERSION_PATTERN = r"^\d+\.\d+\.\d+$"


class PolicyCreate(BaseModel):
    key: str = Field(..., pattern=r"^[a-z0-9_-]+$", max_length=100)
    title: str = Field(..., min_length=1, max_length=255)
    category: PolicyCategoryEnum
    content: str = Field(..., min_length=1)
    version: str = Field(default="1.0.0", pattern=VERSION_PATTERN)
    effective_date: Optional[datetime] = None
    requires_acceptance: bool = False


class PolicyUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content: Optional[str] = Field(default=None, min_length=1)
    version: Optional[str] = Field(default=None, pattern=VERSION_PATTERN)
    effective_date: Optional[datetime] = None
    requires_acceptance: Optional[bool] = None
    change_summary: Optional[str] = Field(default=None, max_length=500)


class PolicyResponse(BaseModel):
    id: str
    key: str
    title: str
    category: PolicyCategoryEnum
    content: str
    version: str
    effective_date: datetime
    is_published: bool
    requires_acceptance: bool
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PolicyVersionResponse(BaseModel):
    id: str
    policy_id: str
    version: str
    content: str
    change_summary: Optional[str] = None
    effective_date: datetime
    created_by: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PolicyOverview(BaseModel):
    total: int
    published: int
    drafts: int
    by_category: dict[str, int]


class PublicPolicyResponse(BaseModel):
    key: str
    title: str
    category: PolicyCategoryEnum
    content: str
    version: str
    effective_date: datetime
    requires_acceptance: bool

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Business hours schemas
# ---------------------------------------------------------------------------

class BusinessHoursResponse(BaseModel):
    day_of_week: int
    open_time: str
    close_time: str
    is_closed: bool
    timezone: str

    model_config = {"from_attributes": True}


class BusinessHoursUpdate(BaseModel):
    open_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    close_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    is_closed: Optional[bool] = None
    timezone: Optional[str] = Field(default=None, max_length=64)


class BusinessHoursBulkItem(BusinessHoursUpdate):
    day_of_week: int = Field(..., ge=0, le=6)


class BusinessHoursBulkUpdate(BaseModel):
    days: list[BusinessHoursBulkItem] = Field(..., min_length=1, max_length=7)


class HolidayCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    date: date
    is_closed: bool = False
    open_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    close_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    surcharge_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)

    @model_validator(mode="after")
    def hours_together(self):
        if (self.open_time is None) != (self.close_time is None):
            raise ValueError("open_time and close_time must be given together")
        return self


class HolidayResponse(BaseModel):
    id: str
    name: str
    date: date
    is_closed: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    surcharge_percentage: Optional[float] = None

    model_config = {"from_attributes": True}


class BusinessStatusResponse(BaseModel):
    is_open: bool
    message: str
    at: datetime
    holiday: Optional[str] = None
