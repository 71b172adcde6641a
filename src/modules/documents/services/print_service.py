import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import quote

from sqlalchemy.orm import Session

from modules.documents.repositories.annotation_repository import AnnotationRepository
from modules.documents.repositories.signature_repository import SignatureRepository
from modules.documents.services.annotation_normalizer import composite_annotations
from modules.documents.services.document_service import DocumentService
from modules.documents.services.pdf_compositor import composite
from modules.documents.services.recipient import Recipient
from modules.documents.services.signature_service import SIGNED_STATUS
from modules.documents.services.signing_state_service import SigningStateService

logger = logging.getLogger(__name__)


def content_disposition(file_name: str) -> str:
    return f"inline; filename*=UTF-8''{quote(file_name)}"


@dataclass
class SignedPdf:
    """A composited PDF plus the audit metadata sent back as response headers."""
    pdf_bytes: bytes
    file_name: str
    status: str
    signature_count: int
    signed_by: Optional[str] = None
    signed_at: Optional[str] = None
    document_type: Optional[str] = None
    skipped: List = field(default_factory=list)

    def headers(self) -> dict:
        headers = {
            "Content-Disposition": content_disposition(self.file_name),
            "X-Document-Status": self.status,
            "X-Signature-Count": str(self.signature_count),
            "X-Skipped-Annotations": str(len(self.skipped)),
            "Cache-Control": "no-cache, no-store, must-revalidate",
        }
        if self.signed_by is not None:
            headers["X-Signed-By"] = quote(self.signed_by, safe="@ ")
            headers["X-Signed-Date"] = self.signed_at or ""
        if self.document_type:
            headers["X-Document-Type"] = self.document_type
        return headers


class PrintService:

    def __init__(self, session: Session, blob_store):
        self.session = session
        self.blob_store = blob_store

    def _render(self, document, recipient_email: Optional[str]):
        text_rows = AnnotationRepository(self.session).find_by_document(document.id, recipient_email)
        signature_rows = SignatureRepository(self.session).find_by_document(
            document.id, recipient_email, status=SIGNED_STATUS
        )
        annotations = composite_annotations(text_rows, signature_rows)
        logger.info("Rendering document %s with %s annotations from %s signature rows",
                    document.id, len(annotations), len(signature_rows))

        source = self.blob_store.download(document.file_path)
        return composite(source, annotations)

    def final_signed_pdf(self, document_id: int, recipient: Recipient) -> SignedPdf:
        """The recipient's signed copy; only available once their round is closed."""
        document = DocumentService.get_document(self.session, document_id)
        request = SigningStateService.require_final(self.session, document_id, recipient)

        result = self._render(document, recipient.storage_email)
        completed_at = request.completed_at
        return SignedPdf(
            pdf_bytes=result.pdf_bytes,
            file_name=f"SIGNED_{document.name}",
            status=request.status.value,
            signature_count=result.signature_count,
            signed_by=request.signer_name,
            signed_at=completed_at.isoformat() if completed_at else None,
            skipped=result.failures,
        )

    def fast_sign_pdf(self, document_id: int) -> SignedPdf:
        """Every recipient's annotations on one copy, no status gate."""
        document = DocumentService.get_document(self.session, document_id)
        result = self._render(document, None)
        return SignedPdf(
            pdf_bytes=result.pdf_bytes,
            file_name=f"SIGNED_{document.name}",
            status="fast-signed",
            signature_count=result.signature_count,
            document_type="fast_sign",
            skipped=result.failures,
        )
