"""SQLAlchemy database models for the collections store."""

from sqlalchemy import (
    Boolean, Column, Date, DateTime, ForeignKey, Integer, JSON,
    Numeric, String, Text
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CustomerRecord(Base):
    """Customers that owe debts."""
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False, index=True)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(20), nullable=False, index=True)
    chat_handle = Column(String(50), nullable=True)
    company = Column(String(100), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    registered_at = Column(DateTime(timezone=True), nullable=False)


class DebtRecord(Base):
    """Outstanding invoices and their arrears state."""
    __tablename__ = "debts"

    id = Column(String(36), primary_key=True)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    original_amount = Column(Numeric(12, 2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    days_in_arrears = Column(Integer, nullable=False, default=0)
    tier = Column(String(20), nullable=False, default="current", index=True)
    description = Column(Text, nullable=True)
    invoice_number = Column(String(50), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_method = Column(String(50), nullable=True)


class TemplateRecord(Base):
    """Message templates by channel, tone and arrears threshold."""
    __tablename__ = "templates"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    channel = Column(String(10), nullable=False, index=True)
    tone = Column(String(10), nullable=False, index=True)
    min_days_in_arrears = Column(Integer, nullable=False)
    body = Column(Text, nullable=False)
    placeholders = Column(JSON, nullable=False, default=list)
    active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class CommunicationRecord(Base):
    """Dispatch attempts and their delivery status."""
    __tablename__ = "communications"

    id = Column(String(36), primary_key=True)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    debt_id = Column(String(36), ForeignKey("debts.id"), nullable=False, index=True)
    template_id = Column(String(36), ForeignKey("templates.id"), nullable=False, index=True)
    channel = Column(String(10), nullable=False)
    tone = Column(String(10), nullable=False)
    content = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="sent")
    sent_at = Column(DateTime(timezone=True), nullable=False, index=True)
    campaign_id = Column(String(36), ForeignKey("campaigns.id"), nullable=True, index=True)
    provider_message_id = Column(String(100), nullable=True)
    error_message = Column(Text, nullable=True)
    reply = Column(Text, nullable=True)
    replied_at = Column(DateTime(timezone=True), nullable=True)


class CampaignRecord(Base):
    """A/B campaigns with their metric counters."""
    __tablename__ = "campaigns"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    variant = Column(String(1), nullable=False)
    config = Column(JSON, nullable=False, default=dict)
    sent = Column(Integer, nullable=False, default=0)
    delivered = Column(Integer, nullable=False, default=0)
    read = Column(Integer, nullable=False, default=0)
    responded = Column(Integer, nullable=False, default=0)
    paid = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
