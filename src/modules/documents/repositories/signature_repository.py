from typing import List, Optional
from sqlalchemy.orm import Session

from modules.documents.models.signature import DocumentSignature


class SignatureRepository:
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_one(self, document_id: int, recipient_email: str) -> Optional[DocumentSignature]:
        return (
            self.db
            .query(DocumentSignature)
            .filter(
                DocumentSignature.document_id == document_id,
                DocumentSignature.recipient_email == recipient_email,
            )
            .first()
        )

    def find_by_document(self, document_id: int, recipient_email: Optional[str] = None,
                         status: Optional[str] = None) -> List[DocumentSignature]:
        query = self.db.query(DocumentSignature).filter(DocumentSignature.document_id == document_id)
        if recipient_email is not None:
            query = query.filter(DocumentSignature.recipient_email == recipient_email)
        if status is not None:
            query = query.filter(DocumentSignature.status == status)
        return query.order_by(DocumentSignature.id).all()

    def save(self, row: DocumentSignature) -> DocumentSignature:
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete(self, row: DocumentSignature) -> None:
        self.db.delete(row)
        self.db.commit()

    def delete_by_document(self, document_id: int, recipient_email: Optional[str] = None) -> int:
        query = self.db.query(DocumentSignature).filter(DocumentSignature.document_id == document_id)
        if recipient_email is not None:
            query = query.filter(DocumentSignature.recipient_email == recipient_email)
        deleted = query.delete(synchronize_session=False)
        self.db.commit()
        return deleted
