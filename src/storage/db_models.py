"""SQLAlchemy database models.

Maps domain models to relational tables. Column types stay portable so the
same metadata runs on PostgreSQL (production) and SQLite (tests).
"""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from src.models.billing import ContractStatus, PaymentMethod, RentStatus
from src.models.business import ApplicationStatus
from src.models.clock import utcnow
from src.models.notification import NotificationType
from src.models.support import ReportStatus, TicketStatus
from src.models.user import UserRole


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class UserTable(Base):
    """User entity table."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(Enum(UserRole, native_enum=True), nullable=False, default=UserRole.USER)
    push_chat_id = Column(BigInteger, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    businesses = relationship("BusinessApplicationTable", back_populates="owner")

    __table_args__ = (Index("ix_users_role", role),)


class BusinessApplicationTable(Base):
    """Business application table (one per owner)."""

    __tablename__ = "business_applications"

    id = Column(Uuid, primary_key=True, default=uuid4)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(200), nullable=False)
    location = Column(String(100), nullable=True)
    justification_text = Column(Text, nullable=False)
    status = Column(
        Enum(ApplicationStatus, native_enum=True),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )
    admin_feedback = Column(Text, nullable=False, default="")
    contract_fee = Column(Numeric(12, 2), nullable=False)
    rent_fee = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner = relationship("UserTable", back_populates="businesses")

    __table_args__ = (
        UniqueConstraint("owner_id", name="uq_business_applications_owner"),
        UniqueConstraint("location", name="uq_business_applications_location"),
        CheckConstraint("contract_fee > 0", name="check_positive_contract_fee"),
        CheckConstraint("rent_fee >= 0", name="check_nonnegative_rent_fee"),
        Index("ix_business_applications_status", status),
    )


class LocationTable(Base):
    """Location table."""

    __tablename__ = "locations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False, unique=True)
    available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("ix_locations_available", available),)


class ContractTable(Base):
    """Contract fee table."""

    __tablename__ = "contracts"

    id = Column(Uuid, primary_key=True, default=uuid4)
    business_id = Column(
        Uuid, ForeignKey("business_applications.id", ondelete="CASCADE"), nullable=False
    )
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        Enum(ContractStatus, native_enum=True),
        nullable=False,
        default=ContractStatus.PENDING,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(DateTime, nullable=True)
    expiry = Column(DateTime, nullable=True)
    order_reference = Column(String(100), nullable=True)
    transaction_id = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_positive_contract_amount"),
        Index("ix_contracts_business_created", business_id, created_at.desc()),
        Index("ix_contracts_status_expiry", status, expiry),
        Index("ix_contracts_order_reference", order_reference),
        Index("ix_contracts_transaction_id", transaction_id),
    )


class RentTable(Base):
    """Monthly rent table."""

    __tablename__ = "rents"

    id = Column(Uuid, primary_key=True, default=uuid4)
    business_id = Column(
        Uuid, ForeignKey("business_applications.id", ondelete="CASCADE"), nullable=False
    )
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    month = Column(Date, nullable=False)
    status = Column(
        Enum(RentStatus, native_enum=True),
        nullable=False,
        default=RentStatus.PENDING,
    )
    payment_date = Column(DateTime, nullable=True)
    order_reference = Column(String(100), nullable=True)
    transaction_id = Column(String(100), nullable=True)
    payment_method = Column(Enum(PaymentMethod, native_enum=True), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("business_id", "month", name="uq_rents_business_month"),
        CheckConstraint("amount > 0", name="check_positive_rent_amount"),
        Index("ix_rents_status", status),
        Index("ix_rents_order_reference", order_reference),
        Index("ix_rents_transaction_id", transaction_id),
    )


class TicketTable(Base):
    """Support ticket table."""

    __tablename__ = "tickets"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subject = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    attachments = Column(JSON, nullable=False, default=list)
    status = Column(
        Enum(TicketStatus, native_enum=True),
        nullable=False,
        default=TicketStatus.PENDING,
    )
    assigned_to = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolution_comment = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_tickets_status_created", status, created_at.desc()),
        Index("ix_tickets_user_id", user_id),
    )


class UserReportTable(Base):
    """User report table."""

    __tablename__ = "user_reports"

    id = Column(Uuid, primary_key=True, default=uuid4)
    reported_user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reported_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subject = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    attachments = Column(JSON, nullable=False, default=list)
    status = Column(
        Enum(ReportStatus, native_enum=True),
        nullable=False,
        default=ReportStatus.PENDING,
    )
    resolution_comment = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_user_reports_status_created", status, created_at.desc()),
        Index("ix_user_reports_reported_by", reported_by),
    )


class NotificationTable(Base):
    """In-app notification table."""

    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid4)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(
        Enum(NotificationType, native_enum=True),
        nullable=False,
        default=NotificationType.INFO,
    )
    read = Column(Boolean, nullable=False, default=False)
    link = Column(String(500), nullable=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_notifications_recipient_created", recipient_id, created_at.desc()),
    )
