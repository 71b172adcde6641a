from typing import List, Optional
from sqlalchemy.orm import Session

from modules.documents.models.annotation import DocumentAnnotation


class AnnotationRepository:
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_one(self, document_id: int, recipient_email: str) -> Optional[DocumentAnnotation]:
        return (
            self.db
            .query(DocumentAnnotation)
            .filter(
                DocumentAnnotation.document_id == document_id,
                DocumentAnnotation.recipient_email == recipient_email,
            )
            .first()
        )

    def find_by_document(self, document_id: int,
                         recipient_email: Optional[str] = None) -> List[DocumentAnnotation]:
        query = self.db.query(DocumentAnnotation).filter(DocumentAnnotation.document_id == document_id)
        if recipient_email is not None:
            query = query.filter(DocumentAnnotation.recipient_email == recipient_email)
        return query.order_by(DocumentAnnotation.id).all()

    def save(self, row: DocumentAnnotation) -> DocumentAnnotation:
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete_by_document(self, document_id: int) -> int:
        deleted = (
            self.db
            .query(DocumentAnnotation)
            .filter(DocumentAnnotation.document_id == document_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted
