"""
Pydantic Schemas for Request/Response Validation

Covers every concern of the marketplace:
- Auth and user profiles
- Restaurants, categories and menu items
- Orders, payments and deliveries
- Notifications, chat, geolocation, AI and loyalty

ORM-backed responses use from_attributes; field names are snake_case.

Version: 1.0.0
"""

from pydantic import BaseModel, Field, EmailStr, field_validator
from typing import Optional, List, Any
from datetime import datetime

from marketplace.models import (
    UserRole,
    OrderStatus,
    PaymentStatus,
    DeliveryStatus,
    TierLevel,
    SubscriptionPlan,
    TicketPriority,
    TicketStatus,
    IssueType,
)


# =============================================================================
# AUTH & USERS
# =============================================================================

class RestaurantSeed(BaseModel):
    """Optional restaurant created together with a restaurateur account."""
    name: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    phone: Optional[str] = None
    cuisine_type: Optional[str] = None


class RegisterAdditionalData(BaseModel):
    """Role-specific registration fields."""
    # CLIENT
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    # RESTAURATEUR
    restaurant: Optional[RestaurantSeed] = None
    # LIVREUR
    vehicle_type: Optional[str] = None
    license_plate: Optional[str] = None
    coverage_zones: Optional[List[str]] = None


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100, examples=["Awa"])
    last_name: str = Field(..., min_length=1, max_length=100, examples=["Diallo"])
    phone: Optional[str] = Field(None, max_length=30, examples=["+33612345678"])
    role: UserRole = Field(default=UserRole.CLIENT)
    additional_data: Optional[RegisterAdditionalData] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ClientProfile(BaseModel):
    id: str
    address: str
    city: str
    postal_code: str

    class Config:
        from_attributes = True


class RestaurateurProfile(BaseModel):
    id: str
    is_approved: bool
    approved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LivreurProfile(BaseModel):
    id: str
    vehicle_type: str
    license_plate: Optional[str] = None
    coverage_zones: List[str] = []
    is_available: bool
    is_approved: bool
    approved_at: Optional[datetime] = None
    average_rating: Optional[float] = None

    class Config:
        from_attributes = True


class UserBrief(BaseModel):
    id: str
    email: str
    role: UserRole
    first_name: str
    last_name: str
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class UserResponse(UserBrief):
    """User with the attached role profile."""
    created_at: datetime
    client: Optional[ClientProfile] = None
    restaurateur: Optional[RestaurateurProfile] = None
    livreur: Optional[LivreurProfile] = None


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


class VerifyResponse(BaseModel):
    user: UserResponse


class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class ClientUpdate(BaseModel):
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)


class LivreurUpdate(BaseModel):
    vehicle_type: Optional[str] = Field(None, max_length=50)
    license_plate: Optional[str] = Field(None, max_length=20)
    coverage_zones: Optional[List[str]] = None
    is_available: Optional[bool] = None


class PendingAccount(BaseModel):
    """Restaurateur or courier awaiting admin approval."""
    user: UserBrief
    profile_id: str
    created_at: datetime


# =============================================================================
# RESTAURANTS, CATEGORIES & MENU
# =============================================================================

class RestaurantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150, examples=["Chez Mama Africa"])
    description: Optional[str] = None
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100, examples=["Paris"])
    postal_code: str = Field(..., min_length=1, max_length=20, examples=["75018"])
    phone: str = Field(..., min_length=1, max_length=30)
    cuisine_type: str = Field(..., min_length=1, max_length=100, examples=["Sénégalaise"])
    opening_hours: dict[str, Any] = Field(default_factory=dict)
    image_url: Optional[str] = None
    # Admins may create on behalf of a restaurateur
    restaurateur_id: Optional[str] = None


class RestaurantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    phone: Optional[str] = Field(None, max_length=30)
    cuisine_type: Optional[str] = Field(None, max_length=100)
    opening_hours: Optional[dict[str, Any]] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class RestaurantBrief(BaseModel):
    id: str
    name: str
    address: str
    city: str
    phone: str
    cuisine_type: str
    image_url: Optional[str] = None

    class Config:
        from_attributes = True


class RestaurantResponse(RestaurantBrief):
    restaurateur_id: str
    description: Optional[str] = None
    postal_code: str
    opening_hours: dict[str, Any] = {}
    is_active: bool
    rating: Optional[float] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class MenuItemCreate(BaseModel):
    restaurant_id: str
    name: str = Field(..., min_length=1, max_length=150, examples=["Thiéboudienne"])
    description: Optional[str] = None
    price: float = Field(..., gt=0, examples=[14.5])
    category: str = Field(default="Plat", max_length=100)
    image_url: Optional[str] = None
    is_available: bool = True


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    category: Optional[str] = Field(None, max_length=100)
    image_url: Optional[str] = None
    is_available: Optional[bool] = None


class MenuItemResponse(BaseModel):
    id: str
    restaurant_id: str
    name: str
    description: Optional[str] = None
    price: float
    category: str
    image_url: Optional[str] = None
    is_available: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RestaurantDetail(RestaurantResponse):
    menu_items: List[MenuItemResponse] = []


class CategoryCreate(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class CategoryResponse(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# ORDERS, PAYMENTS & DELIVERIES
# =============================================================================

class OrderItemRequest(BaseModel):
    """Single line of an order; the price comes from the menu."""
    menu_item_id: str
    quantity: int = Field(..., ge=1, le=99, examples=[2])


class OrderCreate(BaseModel):
    restaurant_id: str
    items: List[OrderItemRequest] = Field(..., min_length=1)
    delivery_address: str = Field(..., min_length=1, max_length=255, examples=["12 rue Myrha"])
    delivery_city: str = Field(..., min_length=1, max_length=100, examples=["Paris"])
    delivery_postal_code: str = Field(..., min_length=1, max_length=20, examples=["75018"])
    notes: Optional[str] = Field(None, max_length=500)
    # Admins may order on behalf of a client
    client_id: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class MenuItemBrief(BaseModel):
    id: str
    name: str
    price: float
    category: str

    class Config:
        from_attributes = True


class OrderItemResponse(BaseModel):
    id: str
    menu_item_id: str
    quantity: int
    price: float
    menu_item: Optional[MenuItemBrief] = None

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: str
    order_id: str
    amount: float
    status: PaymentStatus
    payment_method: str
    transaction_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("payment_method", mode="before")
    @classmethod
    def method_value(cls, v: Any) -> str:
        return getattr(v, "value", v)


class DeliveryBrief(BaseModel):
    id: str
    order_id: str
    livreur_id: Optional[str] = None
    status: DeliveryStatus
    pickup_address: str
    delivery_address: str
    estimated_time: Optional[int] = None
    actual_time: Optional[int] = None
    created_at: datetime
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    client_id: str
    restaurant_id: str
    status: OrderStatus
    total_amount: float
    delivery_address: str
    delivery_city: str
    delivery_postal_code: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []
    restaurant: Optional[RestaurantBrief] = None
    payment: Optional[PaymentResponse] = None
    delivery: Optional[DeliveryBrief] = None

    class Config:
        from_attributes = True


class OrderBrief(BaseModel):
    id: str
    status: OrderStatus
    total_amount: float
    delivery_address: str
    delivery_city: str
    notes: Optional[str] = None
    created_at: datetime
    restaurant: Optional[RestaurantBrief] = None
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class ClientOrderSummary(BaseModel):
    orders_count: int
    active_orders: int
    total_spent: float
    last_order_at: Optional[datetime] = None


class LivreurBrief(BaseModel):
    id: str
    user_id: str
    vehicle_type: str
    is_available: bool
    user: Optional[UserBrief] = None

    class Config:
        from_attributes = True


class DeliveryResponse(DeliveryBrief):
    order: Optional[OrderBrief] = None
    livreur: Optional[LivreurBrief] = None


class DeliveryAccept(BaseModel):
    """Admins must name the courier; couriers accept for themselves."""
    livreur_id: Optional[str] = None


class DeliveryStatusUpdate(BaseModel):
    status: DeliveryStatus


class PaymentProcessRequest(BaseModel):
    order_id: str
    payment_method: str = Field(default="CARD", examples=["CARD", "CASH"])
    transaction_id: Optional[str] = Field(None, max_length=100)

    @field_validator("payment_method")
    @classmethod
    def normalise_method(cls, v: str) -> str:
        # Anything that is not explicitly a card is settled in cash
        return "CARD" if v.strip().upper() == "CARD" else "CASH"


class PaymentIntentRequest(BaseModel):
    order_id: str


class PaymentIntentResponse(BaseModel):
    success: bool
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    amount: float
    currency: str


class AdminConfigUpdate(BaseModel):
    platform_name: Optional[str] = Field(None, min_length=1, max_length=150)
    support_email: Optional[EmailStr] = None
    support_phone: Optional[str] = Field(None, max_length=30)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    default_commission_percent: Optional[float] = Field(None, ge=0, le=100)
    courier_base_fee: Optional[float] = Field(None, ge=0)
    courier_variable_rate: Optional[float] = Field(None, ge=0, le=1)
    courier_platform_commission_rate: Optional[float] = Field(None, ge=0, le=1)
    courier_min_withdrawal_amount: Optional[float] = Field(None, ge=0)
    monthly_revenue_goal: Optional[float] = Field(None, ge=0)
    two_factor_required: Optional[bool] = None
    daily_report_enabled: Optional[bool] = None


class AdminConfigResponse(BaseModel):
    platform_name: str
    support_email: str
    support_phone: str
    currency: str
    default_commission_percent: float
    courier_base_fee: float
    courier_variable_rate: float
    courier_platform_commission_rate: float
    courier_min_withdrawal_amount: float
    monthly_revenue_goal: float
    two_factor_required: bool
    daily_report_enabled: bool
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =============================================================================
# SUPPORT & AUDIT
# =============================================================================

class SupportTicketCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=5000)
    category: str = Field("GENERAL", min_length=1, max_length=50)
    priority: TicketPriority = TicketPriority.MEDIUM
    related_user_id: Optional[str] = None


class SupportTicketUpdate(BaseModel):
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assigned_to: Optional[str] = None
    resolution: Optional[str] = Field(None, max_length=5000)


class SupportTicketResponse(BaseModel):
    id: str
    reporter_id: str
    subject: str
    message: str
    category: str
    priority: TicketPriority
    status: TicketStatus
    related_user_id: Optional[str] = None
    related_delivery_id: Optional[str] = None
    assigned_to: Optional[str] = None
    resolution: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IssueReportRequest(BaseModel):
    """Problem reported by a courier, optionally about one of their deliveries."""
    type: IssueType
    message: str = Field(..., min_length=1, max_length=5000)
    delivery_id: Optional[str] = None


class AuditLogCreate(BaseModel):
    action: str = Field(..., min_length=1, max_length=100)
    entity_type: Optional[str] = Field(None, max_length=50)
    entity_id: Optional[str] = None
    details: dict[str, Any] = {}


class AuditLogResponse(BaseModel):
    id: str
    actor_user_id: Optional[str] = None
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    details: dict[str, Any] = {}
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# NOTIFICATIONS & CHAT
# =============================================================================

class NotificationSend(BaseModel):
    user_id: str
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    send_email: bool = False


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    is_read: bool
    email_sent: bool
    sent_at: datetime

    class Config:
        from_attributes = True


class ChatMessageResponse(BaseModel):
    id: str
    order_id: str
    sender_id: str
    sender_role: UserRole
    message: str
    read: bool
    timestamp: datetime

    class Config:
        from_attributes = True


class ChatReadRequest(BaseModel):
    user_id: str


# =============================================================================
# GEOLOCATION
# =============================================================================

class GeocodeRequest(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)


class ReverseGeocodeRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class DistanceRequest(BaseModel):
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)


class RouteRequest(BaseModel):
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    waypoints: List[str] = Field(default_factory=list, max_length=10)


class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class NearbyRequest(BaseModel):
    location: LatLng
    radius: int = Field(5000, ge=1, le=50000, description="Meters")
    type: str = Field("restaurant", min_length=1, max_length=50)


# =============================================================================
# AI RECOMMENDATION
# =============================================================================

class PriceRange(BaseModel):
    min: float = Field(default=0, ge=0)
    max: float = Field(default=1000, ge=0)


class UserPreferences(BaseModel):
    favorite_cuisines: List[str] = []
    dietary_restrictions: List[str] = []
    price_range: Optional[PriceRange] = None
    favorite_restaurants: List[str] = []
    favorite_dishes: List[str] = []


class RestaurantRecommendationRequest(BaseModel):
    user_id: Optional[str] = None
    preferences: Optional[UserPreferences] = None
    limit: int = Field(default=10, ge=1, le=50)


class DishRecommendationRequest(BaseModel):
    user_id: Optional[str] = None
    restaurant_id: str
    preferences: Optional[UserPreferences] = None
    limit: int = Field(default=10, ge=1, le=50)


class AIChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)


class MenuSuggestionRequest(BaseModel):
    cuisine_type: str = Field(..., min_length=1)
    dietary_restrictions: List[str] = []
    occasion: Optional[str] = None


class SentimentRequest(BaseModel):
    review: str = Field(..., min_length=1)


class DeliveryTimeRequest(BaseModel):
    restaurant_id: Optional[str] = None
    delivery_address: Optional[str] = None
    order_size: int = Field(default=1, ge=0)
    # Defaults to now when omitted
    timestamp: Optional[datetime] = None


class FraudDetectionRequest(BaseModel):
    user_id: Optional[str] = None
    amount: float = Field(..., ge=0)
    payment_method: Optional[str] = None
    location: Optional[str] = None
    order_frequency: int = Field(default=0, ge=0)


# =============================================================================
# LOYALTY
# =============================================================================

class LoyaltyAccountCreate(BaseModel):
    user_id: str


class LoyaltyAccountResponse(BaseModel):
    user_id: str
    points: int
    tier: TierLevel
    lifetime_spent: float
    last_order_at: Optional[datetime] = None
    join_date: datetime
    subscription_plan: SubscriptionPlan
    subscription_started_at: Optional[datetime] = None
    subscription_ends_at: Optional[datetime] = None
    auto_renew: bool
    referred_by: Optional[str] = None

    class Config:
        from_attributes = True


class PointsAddRequest(BaseModel):
    user_id: str
    order_amount: float = Field(..., ge=0)


class RedeemRequest(BaseModel):
    user_id: str
    reward_id: str


class SubscribeRequest(BaseModel):
    user_id: str
    plan: SubscriptionPlan
    auto_renew: bool = True


class SubscriptionCancelRequest(BaseModel):
    user_id: str


class ReferralApplyRequest(BaseModel):
    user_id: str
    referral_code: str = Field(..., min_length=4, max_length=20)


# =============================================================================
# SYSTEM
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[Any] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    payment_service: str
    geo_service: str
    notification_service: str
    timestamp: datetime
