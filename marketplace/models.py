"""
SQLAlchemy Database Models

Relational schema of the marketplace:
- Accounts: User with one role profile (Client, Restaurateur, Livreur)
- Catalogue: Restaurant, Category, MenuItem
- Ordering: Order, OrderItem, Payment, Delivery
- Engagement: Notification, ChatMessage, LoyaltyAccount, RewardRedemption
- Admin: PlatformConfig (single row)

Identifiers are UUID strings. Timestamps are naive UTC.

Version: 1.0.0
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Float,
    Integer,
    DateTime,
    Text,
    Enum,
    Boolean,
    ForeignKey,
    JSON,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import relationship

from marketplace.core.config import get_settings
from marketplace.database import Base


def utcnow() -> datetime:
    """Current UTC time without tzinfo (what the database hands back)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, enum.Enum):
    """Marketplace roles."""
    CLIENT = "CLIENT"
    RESTAURATEUR = "RESTAURATEUR"
    LIVREUR = "LIVREUR"
    ADMIN = "ADMIN"


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    IN_DELIVERY = "IN_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, enum.Enum):
    CARD = "CARD"
    CASH = "CASH"


class DeliveryStatus(str, enum.Enum):
    """Courier side of the order lifecycle."""
    WAITING = "WAITING"
    ACCEPTED = "ACCEPTED"
    PICKED_UP = "PICKED_UP"
    ON_ROUTE = "ON_ROUTE"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class TierLevel(str, enum.Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class SubscriptionPlan(str, enum.Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    PREMIUM = "PREMIUM"
    VIP = "VIP"


class TicketPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TicketStatus(str, enum.Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    CLOSED = "CLOSED"


class IssueType(str, enum.Enum):
    """Problems a courier can report from the road."""
    SAFETY = "SAFETY"
    CUSTOMER = "CUSTOMER"
    RESTAURANT = "RESTAURANT"
    VEHICLE = "VEHICLE"
    OTHER = "OTHER"


# =============================================================================
# ACCOUNTS
# =============================================================================

class User(Base):
    """
    Login identity shared by every role.

    Exactly one role profile (client, restaurateur or livreur) is attached,
    except for admins who have none.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    client = relationship("Client", back_populates="user", uselist=False, lazy="selectin")
    restaurateur = relationship("Restaurateur", back_populates="user", uselist=False, lazy="selectin")
    livreur = relationship("Livreur", back_populates="user", uselist=False, lazy="selectin")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<User {self.email} - {self.role.value}>"


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    address = Column(String(255), nullable=False, default="")
    city = Column(String(100), nullable=False, default="")
    postal_code = Column(String(20), nullable=False, default="")

    user = relationship("User", back_populates="client", lazy="selectin")


class Restaurateur(Base):
    __tablename__ = "restaurateurs"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    is_approved = Column(Boolean, default=False, nullable=False)
    approved_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="restaurateur", lazy="selectin")
    restaurants = relationship("Restaurant", back_populates="restaurateur")


class Livreur(Base):
    """Courier profile."""
    __tablename__ = "livreurs"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    vehicle_type = Column(String(50), nullable=False, default="scooter")
    license_plate = Column(String(20), nullable=True)
    coverage_zones = Column(JSON, nullable=False, default=list)
    is_available = Column(Boolean, default=True, nullable=False)
    is_approved = Column(Boolean, default=False, nullable=False)
    approved_at = Column(DateTime, nullable=True)
    average_rating = Column(Float, nullable=True)

    user = relationship("User", back_populates="livreur", lazy="selectin")
    deliveries = relationship("Delivery", back_populates="livreur")


# =============================================================================
# CATALOGUE
# =============================================================================

class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(String(36), primary_key=True, default=new_id)
    restaurateur_id = Column(String(36), ForeignKey("restaurateurs.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False, index=True)
    postal_code = Column(String(20), nullable=False)
    phone = Column(String(30), nullable=False)
    cuisine_type = Column(String(100), nullable=False, index=True)
    opening_hours = Column(JSON, nullable=False, default=dict)
    image_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    rating = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    restaurateur = relationship("Restaurateur", back_populates="restaurants", lazy="selectin")
    menu_items = relationship("MenuItem", back_populates="restaurant", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Restaurant {self.name} - {self.city}>"


class Category(Base):
    """Global dish category managed by approved restaurateurs."""
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(String(36), primary_key=True, default=new_id)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    category = Column(String(100), nullable=False, default="Plat")
    image_url = Column(String(500), nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    restaurant = relationship("Restaurant", back_populates="menu_items")


# =============================================================================
# ORDERING
# =============================================================================

class Order(Base):
    """
    Client order placed on one restaurant.

    Created together with its Payment (PENDING) and Delivery (WAITING).
    Status changes are driven by the restaurant, the payment and the
    delivery concerns.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False, index=True)
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)
    total_amount = Column(Float, nullable=False)
    delivery_address = Column(String(255), nullable=False)
    delivery_city = Column(String(100), nullable=False)
    delivery_postal_code = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    client = relationship("Client", lazy="selectin")
    restaurant = relationship("Restaurant", lazy="selectin")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", lazy="selectin")
    payment = relationship("Payment", back_populates="order", uselist=False, lazy="selectin")
    delivery = relationship("Delivery", back_populates="order", uselist=False, lazy="selectin")

    def __repr__(self):
        return f"<Order {self.id[:8]} - {self.status.value} - {self.total_amount:.2f}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(String(36), ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem", lazy="selectin")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)
    amount = Column(Float, nullable=False)
    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True)
    payment_method = Column(Enum(PaymentMethod), default=PaymentMethod.CARD, nullable=False)
    transaction_id = Column(String(100), nullable=True, index=True)
    error_message = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    order = relationship("Order", back_populates="payment")


class Delivery(Base):
    __tablename__ = "deliveries"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)
    livreur_id = Column(String(36), ForeignKey("livreurs.id"), nullable=True, index=True)
    status = Column(Enum(DeliveryStatus), default=DeliveryStatus.WAITING, nullable=False, index=True)
    pickup_address = Column(String(255), nullable=False)
    delivery_address = Column(String(255), nullable=False)
    estimated_time = Column(Integer, nullable=True)  # minutes
    actual_time = Column(Integer, nullable=True)  # minutes

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    accepted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    order = relationship("Order", back_populates="delivery", lazy="selectin")
    livreur = relationship("Livreur", back_populates="deliveries", lazy="selectin")


# =============================================================================
# ENGAGEMENT
# =============================================================================

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    email_sent = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime, default=utcnow, nullable=False)


class ChatMessage(Base):
    """Message exchanged between participants of one order."""
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=new_id)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(String(36), nullable=False)
    sender_role = Column(Enum(UserRole), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)


class LoyaltyAccount(Base):
    __tablename__ = "loyalty_accounts"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    points = Column(Integer, default=0, nullable=False)
    tier = Column(Enum(TierLevel), default=TierLevel.BRONZE, nullable=False)
    lifetime_spent = Column(Float, default=0.0, nullable=False)
    last_order_at = Column(DateTime, nullable=True)
    join_date = Column(DateTime, default=utcnow, nullable=False)

    subscription_plan = Column(Enum(SubscriptionPlan), default=SubscriptionPlan.FREE, nullable=False)
    subscription_started_at = Column(DateTime, nullable=True)
    subscription_ends_at = Column(DateTime, nullable=True)
    auto_renew = Column(Boolean, default=False, nullable=False)

    referred_by = Column(String(36), nullable=True)


class RewardRedemption(Base):
    __tablename__ = "reward_redemptions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reward_id = Column(String(20), nullable=False)
    code = Column(String(50), nullable=False, unique=True)
    points_spent = Column(Integer, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


# =============================================================================
# ADMIN
# =============================================================================

class PlatformConfig(Base):
    """
    Admin-editable platform settings (single row, id=1).

    Seeded from environment settings at startup; the courier payout formula
    always reads from here.
    """
    __tablename__ = "platform_config"

    id = Column(Integer, primary_key=True, default=1)
    platform_name = Column(String(150), nullable=False)
    support_email = Column(String(255), nullable=False)
    support_phone = Column(String(30), nullable=False)
    currency = Column(String(3), nullable=False)
    default_commission_percent = Column(Float, nullable=False)
    courier_base_fee = Column(Float, nullable=False)
    courier_variable_rate = Column(Float, nullable=False)
    courier_platform_commission_rate = Column(Float, nullable=False)
    courier_min_withdrawal_amount = Column(Float, nullable=False)
    monthly_revenue_goal = Column(Float, nullable=False)
    two_factor_required = Column(Boolean, default=False, nullable=False)
    daily_report_enabled = Column(Boolean, default=False, nullable=False)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class SupportTicket(Base):
    """
    Support request opened by any user, worked on by admins.

    Courier issue reports land here too, with the issue type as category
    and the delivery they relate to.
    """
    __tablename__ = "support_tickets"

    id = Column(String(36), primary_key=True, default=new_id)
    reporter_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    category = Column(String(50), nullable=False, default="GENERAL")
    priority = Column(Enum(TicketPriority), default=TicketPriority.MEDIUM, nullable=False, index=True)
    status = Column(Enum(TicketStatus), default=TicketStatus.OPEN, nullable=False, index=True)
    related_user_id = Column(String(36), nullable=True)
    related_delivery_id = Column(String(36), ForeignKey("deliveries.id", ondelete="SET NULL"), nullable=True)
    assigned_to = Column(String(36), nullable=True)
    resolution = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    actor_user_id = Column(String(36), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


async def ensure_platform_config(session: AsyncSession) -> PlatformConfig:
    """Return the config row, creating it from settings on first use."""
    result = await session.execute(select(PlatformConfig).where(PlatformConfig.id == 1))
    config = result.scalar_one_or_none()
    if config:
        return config

    settings = get_settings()
    config = PlatformConfig(
        id=1,
        platform_name=settings.platform_name,
        support_email=settings.support_email,
        support_phone=settings.support_phone,
        currency=settings.stripe_currency.upper(),
        default_commission_percent=settings.default_commission_percent,
        courier_base_fee=settings.courier_base_fee,
        courier_variable_rate=settings.courier_variable_rate,
        courier_platform_commission_rate=settings.courier_platform_commission_rate,
        courier_min_withdrawal_amount=settings.courier_min_withdrawal_amount,
        monthly_revenue_goal=settings.monthly_revenue_goal,
    )
    session.add(config)
    await session.flush()
    return config
