import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from modules.documents.errors import InvalidInput
from modules.documents.models.annotation import DocumentAnnotation
from modules.documents.models.schemas import TextAnnotationEntry, validate_entries
from modules.documents.repositories.annotation_repository import AnnotationRepository
from modules.documents.services.annotation_normalizer import strip_signatures
from modules.documents.services.document_service import DocumentService
from modules.documents.services.recipient import Recipient
from modules.documents.services.signing_state_service import SigningStateService

logger = logging.getLogger(__name__)


class AnnotationService:
    """Text annotations, stored as one list per (document, recipient)."""

    def __init__(self, session: Session):
        self.session = session
        self.repository = AnnotationRepository(session)

    def save(self, document_id: int, recipient: Recipient, annotations: List[dict]) -> int:
        """Replaces the recipient's list; signature entries are dropped. Returns the number kept."""
        if not isinstance(annotations, list):
            raise InvalidInput("Missing annotations")
        text_only = validate_entries(TextAnnotationEntry, strip_signatures(annotations), "annotation")
        DocumentService.get_document(self.session, document_id)
        SigningStateService.assert_writable(self.session, document_id, recipient)

        dropped = len(annotations) - len(text_only)
        if dropped:
            logger.info("Dropped %s signature entries from text annotations of document %s",
                        dropped, document_id)

        row = self.repository.find_one(document_id, recipient.storage_email)
        if row is not None:
            row.annotations = text_only
            self.repository.save(row)
        elif text_only:
            self.repository.save(DocumentAnnotation(
                document_id=document_id,
                recipient_email=recipient.storage_email,
                annotations=text_only,
            ))

        DocumentService.touch_document(self.session, document_id)
        return len(text_only)

    def list(self, document_id: int, recipient_email: Optional[str] = None) -> List[dict]:
        """One recipient's annotations, or every recipient's concatenated when no e-mail is given."""
        annotations = []
        for row in self.repository.find_by_document(document_id, recipient_email):
            if isinstance(row.annotations, list):
                annotations.extend(strip_signatures(row.annotations))
        return annotations
