from sqlalchemy import Column, String, Text, Boolean, DateTime, Uuid, CheckConstraint, Index
from sqlalchemy.sql import func
import enum
import uuid
from app.db.database import Base


class BankVerificationStatus(str, enum.Enum):
    UNVERIFIED = "UNVERIFIED"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class Supplier(Base):
    """Supplier profile, read-only to the offer core

    Only the payout columns are consumed here (by the payout readiness gate).
    Onboarding and bank verification are owned by the supplier profile service.
    """
    __tablename__ = "suppliers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    is_payout_enabled = Column(Boolean, nullable=False, default=False)
    bank_code = Column(Text)
    account_number = Column(Text)
    account_name = Column(Text)
    bank_country = Column(String(2))
    bank_verification_status = Column(
        String(20),
        nullable=False,
        default=BankVerificationStatus.UNVERIFIED.value
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "bank_verification_status IN ('UNVERIFIED', 'PENDING', 'VERIFIED', 'REJECTED')",
            name="bank_verification_status_valid"
        ),
        Index("idx_suppliers_bank_verification", "bank_verification_status"),
    )
