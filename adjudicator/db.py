"""SQLAlchemy ORM models matching the Adjudicator PostgreSQL schema.

Monetary columns hold integer cents; conversion happens in
:mod:`adjudicator.storage.formatters`.
"""

import uuid
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String, Text, Integer, BigInteger, Boolean, Date,
    DateTime, func,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from adjudicator.config import settings


# ── Engine & Session ──────────────────────────────────────────────

engine = create_async_engine(settings.database_url, echo=False, pool_size=10)
async_session = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


# ── Claims ────────────────────────────────────────────────────────

class Claim(Base):
    __tablename__ = "claims"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    tracking_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    claim_date: Mapped[Optional[date]] = mapped_column(Date)
    property_address: Mapped[Optional[str]] = mapped_column(Text)
    lease_start_date: Mapped[Optional[date]] = mapped_column(Date)
    lease_end_date: Mapped[Optional[date]] = mapped_column(Date)
    move_out_date: Mapped[Optional[date]] = mapped_column(Date)
    monthly_rent: Mapped[Optional[int]] = mapped_column(BigInteger)  # cents
    property_management_company: Mapped[Optional[str]] = mapped_column(String(500))
    group_number: Mapped[Optional[str]] = mapped_column(String(100))
    treaty_number: Mapped[Optional[str]] = mapped_column(String(100))
    policy: Mapped[Optional[str]] = mapped_column(String(200))
    max_benefit: Mapped[Optional[int]] = mapped_column(BigInteger)  # cents
    status: Mapped[Optional[str]] = mapped_column(String(20))
    approved_benefit_amount: Mapped[Optional[int]] = mapped_column(BigInteger)  # cents
    documents: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    claude_files: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class ClaimResultRecord(Base):
    __tablename__ = "claim_results"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Correlated with claims by value, not by foreign key.
    tracking_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    tenant_name: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    max_benefit: Mapped[int] = mapped_column(BigInteger, nullable=False)
    monthly_rent: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_first_month_paid: Mapped[bool] = mapped_column(Boolean, nullable=False)
    first_month_paid_evidence: Mapped[Optional[str]] = mapped_column(Text)
    is_first_month_sdi_premium_paid: Mapped[bool] = mapped_column(Boolean, nullable=False)
    first_month_sdi_premium_paid_evidence: Mapped[Optional[str]] = mapped_column(Text)
    missing_required_documents: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    submitted_documents: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    approved_charges: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    approved_charges_total: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    excluded_charges: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    final_payout: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    decision_summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ── Pipeline jobs ─────────────────────────────────────────────────

class PipelineJob(Base):
    __tablename__ = "pipeline_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    csv_content: Mapped[str] = mapped_column(Text, nullable=False)
    batch_size: Mapped[Optional[int]] = mapped_column(Integer)
    claims_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Index of the next document-upload page; written after each page commits.
    upload_cursor: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
