# src/modules/documents/models/signature.py

from sqlalchemy import Column, Integer, ForeignKey, DateTime, String, JSON, UniqueConstraint
from datetime import datetime
from database import Base


class DocumentSignature(Base):
    """
    Signature row for one (document, recipient).

    ``signature_data`` holds either the legacy single signature
    ``{dataUrl, position, timestamp}`` or ``{signatures: [...]}``.
    ``version`` is bumped on every UPDATE; a stale write raises StaleDataError.
    """
    __tablename__ = "document_signatures"
    __table_args__ = (UniqueConstraint("document_id", "recipient_email"),)

    id = Column(Integer, primary_key=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    recipient_email = Column(String, nullable=False)
    status = Column(String, nullable=False, default="signed")
    signed_at = Column(DateTime, default=datetime.utcnow)
    signature_source = Column(String, nullable=True)
    signature_data = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}
