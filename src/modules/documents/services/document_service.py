import io
import logging
import os
from datetime import datetime
from typing import List, Optional

from PyPDF2 import PdfReader
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from modules.documents.errors import InvalidInput, NotFound
from modules.documents.models.document import Document, DocumentStatus
from modules.documents.models.signing_request import SigningRequest
from modules.documents.repositories.annotation_repository import AnnotationRepository
from modules.documents.repositories.signature_repository import SignatureRepository

logger = logging.getLogger(__name__)


class DocumentService:

    @staticmethod
    def get_document(session: Session, document_id: int) -> Document:
        document = session.get(Document, document_id)
        if not document:
            raise NotFound(f"Document {document_id} not found")
        return document

    @staticmethod
    def list_documents(session: Session, created_by: Optional[str] = None,
                       search: Optional[str] = None, limit: Optional[int] = None) -> List[Document]:
        """Newest first; ``search`` matches part of the file name, case-insensitively."""
        query = session.query(Document)
        if created_by:
            query = query.filter(Document.created_by == str(created_by))
        if search:
            query = query.filter(Document.name.ilike(f"%{search.strip()}%"))
        query = query.order_by(Document.created_at.desc(), Document.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def upload_document(
        session: Session,
        blob_store,
        created_by: str,
        file_contents: bytes,
        filename: str,
        content_type: str,
        max_file_size: Optional[int] = None
    ) -> Document:
        """
        Stores an uploaded PDF and creates its draft document:
        - validates the file
        - picks a name unique among the owner's documents
        - writes the file to the blob store
        - creates the row
        """
        max_file_size = max_file_size or settings.max_file_size

        # 1) Validation
        DocumentService._validate_file(file_contents, filename, content_type, max_file_size)

        # 2) Unique name
        unique_name = DocumentService._get_unique_filename(session, created_by, filename)

        # 3) Store the file
        file_path = blob_store.save(os.path.join(str(created_by), unique_name), file_contents)

        # 4) Row
        document = Document(
            name=unique_name,
            file_path=file_path,
            file_size=len(file_contents),
            created_by=str(created_by),
            status=DocumentStatus.DRAFT,
        )
        session.add(document)
        session.commit()

        logger.info("Document %s uploaded as '%s'", document.id, unique_name)
        return document

    @staticmethod
    def _validate_file(file_contents: bytes, filename: str, content_type: str, max_file_size: int):
        if content_type != "application/pdf":
            raise InvalidInput("The file must be a PDF")

        if not filename or not filename.lower().endswith(".pdf"):
            raise InvalidInput("The file extension must be .pdf")

        if not file_contents:
            raise InvalidInput("The PDF is empty")

        if len(file_contents) > max_file_size:
            raise InvalidInput(f"The maximum size is {max_file_size // (1024 * 1024)} MB")

        try:
            reader = PdfReader(io.BytesIO(file_contents))
            _ = len(reader.pages)
        except Exception:
            raise InvalidInput("Invalid or damaged PDF")

    @staticmethod
    def _get_unique_filename(session: Session, created_by: str, original_name: str) -> str:
        """Returns ``original_name`` or, when the owner already has it, ``base_n.ext`` with the first free n."""
        base, ext = os.path.splitext(original_name)

        existing = [
            row[0] for row in (
                session.query(Document.name)
                .filter(
                    Document.created_by == str(created_by),
                    or_(
                        Document.name == original_name,
                        Document.name.like(f"{base}_%{ext}")
                    )
                )
                .all()
            )
        ]
        if not existing:
            return original_name

        used_numbers = set()
        for existing_name in existing:
            if existing_name == original_name:
                used_numbers.add(0)
                continue
            if not existing_name.startswith(f"{base}_"):
                continue
            suffix = existing_name[len(base) + 1:len(existing_name) - len(ext) if ext else None]
            if suffix.isdigit():
                used_numbers.add(int(suffix))

        next_num = 1
        while next_num in used_numbers:
            next_num += 1

        return f"{base}_{next_num}{ext}"

    @staticmethod
    def touch_document(session: Session, document_id: int,
                       status: Optional[DocumentStatus] = None) -> None:
        """
        Refreshes ``updated_at`` (and optionally the status) after a primary
        write was committed. Failures are logged, never raised.
        """
        try:
            document = session.get(Document, document_id)
            if document is None:
                logger.warning("Document %s vanished before its timestamp update", document_id)
                return
            document.updated_at = datetime.utcnow()
            if status is not None:
                document.status = status
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning("Failed to update document %s: %s", document_id, e)

    @staticmethod
    def delete_document(session: Session, blob_store, document_id: int) -> None:
        """
        Deletes a document and everything hanging off it, children first,
        each step committed on its own.
        """
        document = DocumentService.get_document(session, document_id)
        file_path = document.file_path

        session.query(SigningRequest).filter(SigningRequest.document_id == document_id).delete(
            synchronize_session=False
        )
        session.commit()

        SignatureRepository(session).delete_by_document(document_id)

        try:
            AnnotationRepository(session).delete_by_document(document_id)
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning("Could not delete annotations of document %s: %s", document_id, e)

        session.delete(document)
        session.commit()

        try:
            blob_store.delete(file_path)
        except OSError as e:
            logger.warning("Error deleting %s: %s", file_path, e)

        logger.info("Document %s deleted", document_id)
