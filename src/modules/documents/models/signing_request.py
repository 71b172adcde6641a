from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum
from database import Base
from modules.documents.models.document import status_column


class SigningRequestStatus(PyEnum):
    SENT = "sent"
    SIGNED = "signed"
    RETURNED = "returned"

    @property
    def is_terminal(self) -> bool:
        return self in (SigningRequestStatus.SIGNED, SigningRequestStatus.RETURNED)


class SigningRequest(Base):
    __tablename__ = "signing_requests"
    __table_args__ = (UniqueConstraint("document_id", "recipient_email"),)

    id = Column(Integer, primary_key=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    recipient_email = Column(String, nullable=False)
    recipient_name = Column(String, nullable=True)
    created_by = Column(String, nullable=False)
    status = status_column(SigningRequestStatus, nullable=False, default=SigningRequestStatus.SENT)
    sent_at = Column(DateTime, default=datetime.utcnow)
    signed_at = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    document = relationship("Document", back_populates="signing_requests")

    @property
    def completed_at(self):
        return self.signed_at or self.returned_at

    @property
    def signer_name(self) -> str:
        return self.recipient_name or self.recipient_email
