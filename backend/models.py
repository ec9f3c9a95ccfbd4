from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from enum import Enum
import uuid

# ============================================================================
# ENUMS (System Constants)
# ============================================================================

class UserRole(str, Enum):
    ROLE_USER = "ROLE_USER"
    ROLE_ADMIN = "ROLE_ADMIN"

class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"

class Tone(str, Enum):
    HUMOROUS = "humorous"
    INSPIRING = "inspiring"
    DIRECT = "direct"
    MYSTERIOUS = "mysterious"
    LUXURIOUS = "luxurious"
    TECH = "tech"

class AppStep(str, Enum):
    HOME = "home"
    GENERATOR = "generator"
    PAYMENT = "payment"
    RESULTS = "results"
    SUCCESS = "success"

class GateDecision(str, Enum):
    ALLOW_AND_SHOW = "ALLOW_AND_SHOW"
    ALLOW_AND_INCREMENT_TRIAL = "ALLOW_AND_INCREMENT_TRIAL"
    REQUIRE_PAYMENT = "REQUIRE_PAYMENT"

class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELED = "canceled"

class ConversionEventType(str, Enum):
    PAGE_VIEW = "page_view"
    GENERATOR_START = "generator_start"
    PAYMENT_START = "payment_start"
    PAYMENT_COMPLETE = "payment_complete"

class ChangeFrequency(str, Enum):
    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"

class AuditAction(str, Enum):
    # Auth
    ADMIN_LOGIN_SUCCESS = "ADMIN_LOGIN_SUCCESS"
    ADMIN_LOGIN_FAILED = "ADMIN_LOGIN_FAILED"
    ADMIN_CREATED = "ADMIN_CREATED"

    # Admin changes
    SETTING_UPDATED = "SETTING_UPDATED"
    SETTINGS_CACHE_CLEARED = "SETTINGS_CACHE_CLEARED"
    SEO_SETTINGS_UPDATED = "SEO_SETTINGS_UPDATED"
    SEO_SETTINGS_DELETED = "SEO_SETTINGS_DELETED"
    USER_ROLE_CHANGED = "USER_ROLE_CHANGED"
    USER_DELETED = "USER_DELETED"

    # Payments
    CHECKOUT_STARTED = "CHECKOUT_STARTED"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
    PAYMENT_TOKEN_CONSUMED = "PAYMENT_TOKEN_CONSUMED"
    CHECKOUT_CANCELED = "CHECKOUT_CANCELED"
    STRIPE_EVENT_FAILED = "STRIPE_EVENT_FAILED"

# ============================================================================
# GENERATION
# ============================================================================

class GenerationRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    concept: str = Field(..., min_length=3, max_length=500)
    tone: Tone
    language: str = "fr"

    @field_validator("concept")
    @classmethod
    def strip_concept(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Concept must be at least 3 characters")
        return v

class GeneratedPhrase(BaseModel):
    id: str
    text: str
    tone: Tone

class PaymentSettings(BaseModel):
    payment_required: bool = True
    free_trials_allowed: bool = False
    trial_limit: int = 1
    payment_amount: int = 399
    payment_currency: str = "EUR"

class GeneralSettings(BaseModel):
    site_name: str = "Clicklone"
    site_description: str = "Smart marketing copy generator"

class GenerationStatus(BaseModel):
    can_generate: bool
    requires_payment: bool
    show_results: bool = False
    decision: Optional[GateDecision] = None
    reason: Optional[str] = None
    session_id: Optional[str] = None
    trial_count: Optional[int] = None
    trial_limit: Optional[int] = None

# ============================================================================
# APPLICATION FLOW
# ============================================================================

class AppState(BaseModel):
    model_config = ConfigDict(extra="ignore")

    current_step: AppStep = AppStep.HOME
    generation_request: Optional[GenerationRequest] = None
    generated_phrases: List[GeneratedPhrase] = []
    error: Optional[str] = None
    pending_result_id: Optional[str] = None
    is_generating: bool = False
    is_payment_complete: bool = False

class NavigateRequest(BaseModel):
    step: AppStep

class CheckoutRequest(BaseModel):
    result_id: str

# ============================================================================
# ANALYTICS
# ============================================================================

class PageViewRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page_path: str
    referrer: Optional[str] = None
    session_id: Optional[str] = None
    traffic_source: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None

class ConversionEventRequest(BaseModel):
    session_id: str
    event_type: ConversionEventType
    page_path: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

class TimeSpentRequest(BaseModel):
    session_id: str
    page_path: str
    time_spent_seconds: float
    is_bounce: bool = False

# ============================================================================
# SEO
# ============================================================================

class SEOSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    page_path: str
    title: str
    description: Optional[str] = None
    keywords: Optional[str] = None
    og_title: Optional[str] = None
    og_description: Optional[str] = None
    og_image: Optional[str] = None
    og_type: str = "website"
    twitter_card: str = "summary_large_image"
    twitter_title: Optional[str] = None
    twitter_description: Optional[str] = None
    twitter_image: Optional[str] = None
    canonical_url: Optional[str] = None
    robots: str = "index,follow"
    schema_type: str = "WebPage"
    priority: float = 0.5
    change_frequency: ChangeFrequency = ChangeFrequency.WEEKLY
    is_active: bool = True

# ============================================================================
# USERS & AUTH
# ============================================================================

class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    email: EmailStr
    role: UserRole = UserRole.ROLE_USER
    status: UserStatus = UserStatus.ACTIVE
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Dict[str, Any]

class RoleUpdateRequest(BaseModel):
    role: UserRole

class SettingUpdateRequest(BaseModel):
    value: Any
    description: Optional[str] = None

class AuditLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    audit_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    action: AuditAction
    actor_role: Optional[str] = None
    actor_id: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    before_state: Optional[Dict[str, Any]] = None
    after_state: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
