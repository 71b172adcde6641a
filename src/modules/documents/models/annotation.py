from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, UniqueConstraint
from datetime import datetime
from database import Base


class DocumentAnnotation(Base):
    """Full list of one recipient's text annotations on a document."""
    __tablename__ = "document_annotations"
    __table_args__ = (UniqueConstraint("document_id", "recipient_email"),)

    id = Column(Integer, primary_key=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    recipient_email = Column(String, nullable=False)
    annotations = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
