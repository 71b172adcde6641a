from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, UploadFile, File, Depends, Query, Response
from sqlalchemy.orm import Session

from database import get_db
from modules.documents.errors import InvalidInput
from modules.documents.models.schemas import (
    CompleteRequest, DispatchRequest, DocumentResponse, SigningRequestResponse, TokenRequest
)
from modules.documents.models.signing_request import SigningRequestStatus
from modules.documents.services.document_service import DocumentService
from modules.documents.services.print_service import PrintService
from modules.documents.services.recipient import decode_token
from modules.documents.services.signing_state_service import SigningStateService
from modules.documents.services.storage import get_blob_store

router = APIRouter(
    tags=["documents"]
)


@router.post("/upload")
async def upload_document(
    user_id: str,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store)
):
    contents = await file.read()
    doc = DocumentService.upload_document(
        db, blob_store, user_id, contents, file.filename, file.content_type
    )
    return {"message": "Document uploaded", "document_id": doc.id}


@router.get("", response_model=List[DocumentResponse])
def list_documents(
    user_id: Optional[str] = None,
    search: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store)
):
    documents = DocumentService.list_documents(db, created_by=user_id, search=search, limit=limit)
    return [
        DocumentResponse.from_document(doc, blob_store.get_public_url(doc.file_path))
        for doc in documents
    ]


@router.get("/requests", response_model=List[SigningRequestResponse])
def list_signing_requests(
    user_id: Optional[str] = None,
    only_mine: bool = False,
    db: Session = Depends(get_db)
):
    """All signing requests; ``only_mine`` keeps the ones ``user_id`` sent."""
    if only_mine and not user_id:
        raise InvalidInput("user_id is required to list only your requests")
    requests = SigningStateService.list_requests(db, created_by=user_id if only_mine else None)
    return [SigningRequestResponse.from_request(r) for r in requests]


@router.get("/requests/{request_id}", response_model=SigningRequestResponse)
def get_signing_request(request_id: int, db: Session = Depends(get_db)):
    return SigningRequestResponse.from_request(SigningStateService.get_request_by_id(db, request_id))


@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(
    document_id: int,
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store)
):
    document = DocumentService.get_document(db, document_id)
    return DocumentResponse.from_document(document, blob_store.get_public_url(document.file_path))


@router.delete("/{document_id}")
def delete_document(
    document_id: int,
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store)
):
    DocumentService.delete_document(db, blob_store, document_id)
    return {"success": True}


@router.post("/{document_id}/dispatch", response_model=SigningRequestResponse)
def dispatch_document(document_id: int, payload: DispatchRequest, db: Session = Depends(get_db)):
    request = SigningStateService.dispatch(
        db, document_id, payload.recipient_email, payload.created_by, payload.recipient_name
    )
    return SigningRequestResponse.from_request(request)


@router.post("/{document_id}/send")
def send_back(document_id: int, payload: CompleteRequest, db: Session = Depends(get_db)):
    """
    Recipient closes the round: ``updateStatus`` marks it signed (all fields
    completed), otherwise the document is returned.
    """
    recipient = decode_token(payload.token)
    target = SigningRequestStatus.SIGNED if payload.updateStatus else SigningRequestStatus.RETURNED
    request = SigningStateService.complete(db, document_id, recipient, target)
    completed_at = request.completed_at or datetime.utcnow()
    return {
        "success": True,
        "message": "Document signed" if payload.updateStatus else "Document sent successfully",
        "status": request.status.value,
        "timestamp": completed_at.isoformat(),
    }


@router.post("/{document_id}/resend", response_model=SigningRequestResponse)
def resend_document(document_id: int, payload: TokenRequest, db: Session = Depends(get_db)):
    recipient = decode_token(payload.token)
    return SigningRequestResponse.from_request(SigningStateService.resend(db, document_id, recipient))


@router.get("/{document_id}/print")
def print_signed_document(
    document_id: int,
    token: Optional[str] = None,
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store)
):
    """Returns the recipient's signed PDF once the request is signed or returned."""
    recipient = decode_token(token)
    signed = PrintService(db, blob_store).final_signed_pdf(document_id, recipient)
    return Response(content=signed.pdf_bytes, media_type="application/pdf", headers=signed.headers())
