import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from modules.documents.errors import (
    AlreadyInTerminalState, AlreadySent, InvalidInput, NotFound, NotYetSent, NotYetSigned
)
from modules.documents.models.document import DocumentStatus
from modules.documents.models.signing_request import SigningRequest, SigningRequestStatus
from modules.documents.services.document_service import DocumentService
from modules.documents.services.recipient import Recipient

logger = logging.getLogger(__name__)

# Forward transitions; signed and returned are terminal
TRANSITIONS = {
    SigningRequestStatus.SENT: {SigningRequestStatus.SIGNED, SigningRequestStatus.RETURNED},
    SigningRequestStatus.SIGNED: set(),
    SigningRequestStatus.RETURNED: set(),
}

# Field stamped when a request reaches the status
TIMESTAMP_FIELDS = {
    SigningRequestStatus.SIGNED: "signed_at",
    SigningRequestStatus.RETURNED: "returned_at",
}


class SigningStateService:

    @staticmethod
    def get_request(session: Session, document_id: int, recipient: Recipient) -> Optional[SigningRequest]:
        if recipient.is_aggregate:
            return None
        return (
            session.query(SigningRequest)
            .filter(
                SigningRequest.document_id == document_id,
                SigningRequest.recipient_email == recipient.email,
            )
            .first()
        )

    @staticmethod
    def list_requests(session: Session, created_by: Optional[str] = None) -> List[SigningRequest]:
        """Every signing request, newest first; ``created_by`` keeps only that sender's."""
        query = session.query(SigningRequest)
        if created_by:
            query = query.filter(SigningRequest.created_by == created_by)
        return query.order_by(SigningRequest.sent_at.desc(), SigningRequest.id.desc()).all()

    @staticmethod
    def get_request_by_id(session: Session, request_id: int) -> SigningRequest:
        request = session.get(SigningRequest, request_id)
        if request is None:
            raise NotFound(f"Signing request {request_id} not found")
        return request

    @staticmethod
    def can_transition(current: SigningRequestStatus, target: SigningRequestStatus) -> bool:
        return target in TRANSITIONS.get(current, set())

    @staticmethod
    def dispatch(session: Session, document_id: int, recipient_email: str, created_by: str,
                 recipient_name: Optional[str] = None) -> SigningRequest:
        """
        Sends a document to a recipient: creates the signing request in ``sent``
        and moves a draft document to ``sent``.
        """
        if not recipient_email or not recipient_email.strip():
            raise InvalidInput("Recipient e-mail is required")

        document = DocumentService.get_document(session, document_id)
        recipient = Recipient.specific(recipient_email.strip())
        if SigningStateService.get_request(session, document_id, recipient):
            raise AlreadySent(f"Document {document_id} was already sent to {recipient.email}")

        now = datetime.utcnow()
        request = SigningRequest(
            document_id=document_id,
            recipient_email=recipient.email,
            recipient_name=recipient_name,
            created_by=created_by,
            status=SigningRequestStatus.SENT,
            sent_at=now,
        )
        session.add(request)
        if document.status == DocumentStatus.DRAFT:
            document.status = DocumentStatus.SENT
        document.updated_at = now
        session.commit()
        session.refresh(request)

        logger.info("Document %s sent to %s (request %s)", document_id, recipient.email, request.id)
        return request

    @staticmethod
    def complete(session: Session, document_id: int, recipient: Recipient,
                 target: SigningRequestStatus) -> SigningRequest:
        """
        Closes a signing round: ``signed`` for the multi-field flow,
        ``returned`` when the recipient sends the document back.
        """
        if target not in TIMESTAMP_FIELDS:
            raise InvalidInput(f"Cannot complete a request as '{target.value}'")

        DocumentService.get_document(session, document_id)
        request = SigningStateService.get_request(session, document_id, recipient)
        if request is None:
            raise NotYetSent(f"Document {document_id} has not been sent to this recipient")
        if request.status.is_terminal:
            raise AlreadyInTerminalState(
                f"Signing request {request.id} is already {request.status.value}"
            )
        if not SigningStateService.can_transition(request.status, target):
            raise NotYetSent(
                f"Signing request {request.id} cannot move from {request.status.value} to {target.value}"
            )

        now = datetime.utcnow()
        previous = request.status
        request.status = target
        setattr(request, TIMESTAMP_FIELDS[target], now)
        session.commit()

        document_status = (
            DocumentStatus.SIGNED if target == SigningRequestStatus.SIGNED else DocumentStatus.RETURNED
        )
        DocumentService.touch_document(session, document_id, status=document_status)

        logger.info(
            "Signing request %s changed from %s to %s", request.id, previous.value, target.value
        )
        return request

    @staticmethod
    def resend(session: Session, document_id: int, recipient: Recipient) -> SigningRequest:
        """
        Re-opens a request. Existing signatures are left in place; clearing them
        is a separate call the caller makes first.
        """
        request = SigningStateService.get_request(session, document_id, recipient)
        if request is None:
            raise NotYetSent(f"Document {document_id} has not been sent to this recipient")

        request.status = SigningRequestStatus.SENT
        request.sent_at = datetime.utcnow()
        request.signed_at = None
        request.returned_at = None
        session.commit()

        DocumentService.touch_document(session, document_id, status=DocumentStatus.SENT)
        logger.info("Signing request %s re-opened", request.id)
        return request

    @staticmethod
    def assert_writable(session: Session, document_id: int, recipient: Recipient) -> None:
        """Rejects annotation and signature writes once the recipient's round is closed."""
        request = SigningStateService.get_request(session, document_id, recipient)
        if request is not None and request.status.is_terminal:
            raise AlreadyInTerminalState(
                f"Document {document_id} was already {request.status.value} by {recipient.email}"
            )

    @staticmethod
    def require_final(session: Session, document_id: int, recipient: Recipient) -> SigningRequest:
        request = SigningStateService.get_request(session, document_id, recipient)
        if request is None:
            raise NotFound(f"No signing request for document {document_id} and this recipient")
        if not request.status.is_terminal:
            raise NotYetSigned(f"Document {document_id} has not been signed yet")
        return request
