"""
Read-modify-write operations on the per-(document, recipient) signature row.

Every write goes through ``_run`` which retries the whole read-modify-write
when SQLAlchemy reports a version conflict (``StaleDataError``) or when two
first writers race on the unique (document, recipient) key.
"""
import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from config import settings
from modules.documents.errors import ConcurrentModification, InvalidInput, NotFound
from modules.documents.models.document import DocumentStatus
from modules.documents.models.schemas import ConsolidatedSignatureEntry, validate_entries
from modules.documents.models.signature import DocumentSignature
from modules.documents.repositories.signature_repository import SignatureRepository
from modules.documents.services.annotation_normalizer import (
    DEFAULT_SIGNATURE_SOURCE, LegacySignature, SignatureArray, SignatureEntry,
    legacy_entry_id, parse_signature_data
)
from modules.documents.services.document_service import DocumentService
from modules.documents.services.recipient import Recipient
from modules.documents.services.signing_state_service import SigningStateService

logger = logging.getLogger(__name__)

SIGNED_STATUS = "signed"


def _now_iso() -> str:
    return datetime.utcnow().isoformat()


class SignatureService:

    def __init__(self, session: Session, retries: Optional[int] = None):
        self.session = session
        self.repository = SignatureRepository(session)
        self.retries = settings.signature_write_retries if retries is None else retries

    def _run(self, description: str, operation: Callable):
        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return operation()
            except (StaleDataError, IntegrityError) as e:
                self.session.rollback()
                logger.warning("Write conflict on %s (attempt %s/%s): %s",
                               description, attempt, attempts, e)
        raise ConcurrentModification(f"Signature record changed concurrently while trying to {description}")

    def _new_row(self, document_id: int, recipient: Recipient, signature_data: dict,
                 source: Optional[str]) -> DocumentSignature:
        return DocumentSignature(
            document_id=document_id,
            recipient_email=recipient.storage_email,
            status=SIGNED_STATUS,
            signed_at=datetime.utcnow(),
            signature_source=source or DEFAULT_SIGNATURE_SOURCE,
            signature_data=signature_data,
        )

    def _check_writable(self, document_id: int, recipient: Recipient) -> None:
        DocumentService.get_document(self.session, document_id)
        SigningStateService.assert_writable(self.session, document_id, recipient)

    def add(self, document_id: int, recipient: Recipient, data_url: str, position: dict,
            source: Optional[str] = None, signature_id: Optional[str] = None) -> str:
        """
        Appends one signature to the recipient's row, creating the row if needed.

        A legacy single-signature row is migrated to the array shape first. When
        ``signature_id`` is supplied and already stored, nothing is written.
        """
        if not data_url:
            raise InvalidInput("Missing signature data")
        if not position:
            raise InvalidInput("Missing signature position")
        self._check_writable(document_id, recipient)

        entry_id = signature_id or str(uuid.uuid4())

        def operation():
            entry = SignatureEntry(
                id=entry_id,
                data_url=data_url,
                source=source or DEFAULT_SIGNATURE_SOURCE,
                position=dict(position),
                timestamp=_now_iso(),
            )
            row = self.repository.find_one(document_id, recipient.storage_email)
            if row is None:
                self.repository.save(
                    self._new_row(document_id, recipient, SignatureArray([entry]).to_dict(), source)
                )
                return entry_id

            shape = parse_signature_data(row.signature_data)
            if isinstance(shape, SignatureArray):
                if signature_id and shape.find(signature_id) is not None:
                    logger.info("Signature %s already stored for document %s", signature_id, document_id)
                    return entry_id
                shape.signatures.append(entry)
            elif isinstance(shape, LegacySignature):
                legacy = shape.as_entry(legacy_entry_id(row), row.signature_source)
                shape = SignatureArray([legacy, entry])
            else:
                logger.warning("Signature row %s held no signature data, replacing it", row.id)
                shape = SignatureArray([entry])

            row.signature_data = shape.to_dict()
            self.repository.save(row)
            return entry_id

        result = self._run("add a signature", operation)
        DocumentService.touch_document(self.session, document_id, status=DocumentStatus.SIGNED)
        logger.info("Signature %s added to document %s for %s",
                    result, document_id, recipient.storage_email)
        return result

    def add_consolidated(self, document_id: int, recipient: Recipient, entries: List[dict]) -> int:
        """Replaces the recipient's row with one holding exactly ``entries``."""
        if not entries:
            raise InvalidInput("No signatures provided in consolidated data")
        entries = validate_entries(ConsolidatedSignatureEntry, entries, "signature")
        self._check_writable(document_id, recipient)

        signatures = []
        for raw in entries:
            entry = SignatureEntry.from_dict(raw)
            entry.id = entry.id or str(uuid.uuid4())
            entry.source = entry.source or DEFAULT_SIGNATURE_SOURCE
            entry.timestamp = entry.timestamp or _now_iso()
            signatures.append(entry)
        signature_data = SignatureArray(signatures).to_dict()

        def operation():
            row = self.repository.find_one(document_id, recipient.storage_email)
            if row is None:
                row = self._new_row(document_id, recipient, signature_data, DEFAULT_SIGNATURE_SOURCE)
            else:
                row.signature_data = signature_data
                row.signed_at = datetime.utcnow()
                row.status = SIGNED_STATUS
            return self.repository.save(row).id

        row_id = self._run("save consolidated signatures", operation)
        DocumentService.touch_document(self.session, document_id, status=DocumentStatus.SIGNED)
        logger.info("Saved %s consolidated signatures on document %s", len(signatures), document_id)
        return row_id

    def update_position(self, document_id: int, recipient: Recipient, signature_id: str,
                        position: dict) -> None:
        """Merges ``position`` into the stored position; fields not given are kept."""
        if not signature_id or not position:
            raise InvalidInput("Missing required fields")
        self._check_writable(document_id, recipient)

        def operation():
            row = self.repository.find_one(document_id, recipient.storage_email)
            if row is None:
                raise NotFound("Signature record not found")

            shape = parse_signature_data(row.signature_data)
            if isinstance(shape, SignatureArray):
                index = shape.find(signature_id)
                if index is None:
                    raise NotFound(f"Signature {signature_id} not found")
                entry = shape.signatures[index]
                entry.position = {**entry.position, **position}
                entry.timestamp = _now_iso()
            elif isinstance(shape, LegacySignature):
                shape.position = {**shape.position, **position}
                shape.timestamp = _now_iso()
            else:
                raise NotFound("Signature record holds no signature")

            row.signature_data = shape.to_dict()
            self.repository.save(row)

        self._run("update a signature position", operation)
        DocumentService.touch_document(self.session, document_id)

    def delete_one(self, document_id: int, recipient: Recipient, signature_id: str) -> None:
        """Removes one signature; the row goes away with its last signature."""
        if not signature_id:
            raise InvalidInput("Missing signature ID")
        self._check_writable(document_id, recipient)

        def operation():
            row = self.repository.find_one(document_id, recipient.storage_email)
            if row is None:
                raise NotFound("Signature record not found")

            shape = parse_signature_data(row.signature_data)
            if isinstance(shape, SignatureArray):
                index = shape.find(signature_id)
                if index is None:
                    raise NotFound(f"Signature {signature_id} not found")
                del shape.signatures[index]
                if not shape.signatures:
                    self.repository.delete(row)
                    return
                row.signature_data = shape.to_dict()
                self.repository.save(row)
            elif isinstance(shape, LegacySignature) and signature_id == legacy_entry_id(row):
                self.repository.delete(row)
            else:
                raise NotFound(f"Signature {signature_id} not found")

        self._run("delete a signature", operation)
        DocumentService.touch_document(self.session, document_id)

    def clear_all(self, document_id: int, recipient: Recipient) -> int:
        """
        Deletes the recipient's row, or every row of the document for the
        aggregate recipient. Allowed on closed rounds so a request can be re-opened clean.
        """
        DocumentService.get_document(self.session, document_id)
        deleted = self.repository.delete_by_document(document_id, recipient.filter_email)
        DocumentService.touch_document(self.session, document_id)
        logger.info("Cleared %s signature rows on document %s", deleted, document_id)
        return deleted

    def check(self, document_id: int, recipient: Recipient,
              required_count: Optional[int] = None, include_data: bool = False) -> dict:
        rows = self.repository.find_by_document(document_id, recipient.filter_email)
        count = len(rows)
        result = {
            "hasSignatures": count > 0,
            "signatureCount": count,
            "hasAllSignatures": count >= required_count if required_count else count > 0,
            "requiredSignatureCount": required_count,
        }
        if include_data and rows:
            result["signatures"] = [
                {
                    "id": row.id,
                    "document_id": row.document_id,
                    "recipient_email": row.recipient_email,
                    "status": row.status,
                    "signed_at": row.signed_at.isoformat() if row.signed_at else None,
                    "signature_source": row.signature_source,
                    "signature_data": row.signature_data,
                }
                for row in rows
            ]
        return result
