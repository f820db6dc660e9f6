"""
SQLAlchemy models for the bank statement import service.

Tables:
- api_tokens: Bearer tokens resolved to an owner id
- bank_accounts: Accounts statements are imported into (owner scoped)
- categories: Owner-defined transaction categories
- category_rules: Pattern → category rules, applied by priority
- transactions: Imported bank transactions, unique per fingerprint
- transaction_categories: At most one category per transaction
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Numeric, JSON,
    ForeignKey, Text, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiToken(Base):
    __tablename__ = "api_tokens"

    token = Column(String(128), primary_key=True)
    owner_id = Column(String(36), nullable=False, index=True)
    revoked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    def __repr__(self):
        return f"<ApiToken owner={self.owner_id} revoked={self.revoked}>"


class BankAccount(Base):
    __tablename__ = "bank_accounts"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), nullable=False, index=True)
    bank_name = Column(String(50), nullable=False, default="banco_general")
    account_alias = Column(String(100), nullable=False)
    account_number_mask = Column(String(30), nullable=False)
    currency = Column(String(3), nullable=False, default="PAB")
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("owner_id", "account_number_mask", name="uq_bank_account_owner_mask"),
    )

    # Relationships
    transactions = relationship("Transaction", back_populates="bank_account")

    def __repr__(self):
        return f"<BankAccount {self.account_alias} ({self.bank_name} {self.account_number_mask})>"


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    color = Column(String(7), default="#6B7280")  # hex color for charts
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_category_owner_name"),
    )

    # Relationships
    rules = relationship("CategoryRule", back_populates="category")

    def __repr__(self):
        return f"<Category {self.name}>"


class CategoryRule(Base):
    __tablename__ = "category_rules"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), nullable=False)
    pattern = Column(Text, nullable=False)
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    priority = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_category_rules_owner_active", "owner_id", "active"),
    )

    # Relationships
    category = relationship("Category", back_populates="rules")

    def __repr__(self):
        return f"<CategoryRule '{self.pattern}' → {self.category_id} (priority={self.priority})>"


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(36), nullable=False)
    bank_account_id = Column(String(36), ForeignKey("bank_accounts.id", ondelete="CASCADE"), nullable=False)
    posted_at = Column(Date, nullable=False)
    description = Column(Text, nullable=False)
    merchant_name = Column(String(200), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)  # Negative = money out
    balance_after = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="PAB")
    is_internal_transfer = Column(Boolean, nullable=False, default=False)
    external_fingerprint = Column(String(64), nullable=False)
    raw = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Indexes
    __table_args__ = (
        UniqueConstraint(
            "owner_id", "bank_account_id", "external_fingerprint",
            name="uq_transactions_fingerprint",
        ),
        Index("idx_transactions_posted_at", "posted_at"),
        Index("idx_transactions_account_date", "bank_account_id", "posted_at"),
    )

    # Relationships
    bank_account = relationship("BankAccount", back_populates="transactions")
    category_link = relationship(
        "TransactionCategory", uselist=False, back_populates="transaction",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Transaction {self.posted_at} {self.description[:30]} {self.amount}>"


class TransactionCategory(Base):
    __tablename__ = "transaction_categories"

    transaction_id = Column(String(36), ForeignKey("transactions.id", ondelete="CASCADE"), primary_key=True)
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    # Relationships
    transaction = relationship("Transaction", back_populates="category_link")
    category = relationship("Category")

    def __repr__(self):
        return f"<TransactionCategory txn={self.transaction_id} → {self.category_id}>"
