from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum
from database import Base


class DocumentStatus(PyEnum):
    DRAFT = "draft"
    SENT = "sent"
    SIGNED = "signed"
    RETURNED = "returned"


def status_column(enum_cls, **kwargs):
    """Enum column storing the lowercase values; unknown strings are rejected on write."""
    return Column(
        Enum(
            enum_cls,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            validate_strings=True,
        ),
        **kwargs
    )


class Document(Base):
    __tablename__ = 'documents'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    created_by = Column(String, nullable=False)
    status = status_column(DocumentStatus, nullable=False, default=DocumentStatus.DRAFT)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    signing_requests = relationship(
        "SigningRequest", back_populates="document", order_by="SigningRequest.id"
    )
