# src/modules/documents/controllers/signature_controller.py
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from modules.documents.errors import InvalidInput
from modules.documents.models.schemas import (
    AddSignatureRequest, CheckSignaturesRequest, DeleteSignatureRequest, UpdateSignatureRequest
)
from modules.documents.repositories.signature_repository import SignatureRepository
from modules.documents.services.annotation_normalizer import signature_annotations_from_rows
from modules.documents.services.recipient import decode_token
from modules.documents.services.signature_service import SignatureService

router = APIRouter(
    tags=["signatures"]
)


@router.post("/{document_id}/signature")
def add_signature(
    document_id: int,
    payload: AddSignatureRequest,
    db: Session = Depends(get_db)
):
    """
    Saves signatures in one of two forms:
    - ``consolidatedSignatureData``: the full set, replacing what the recipient had
    - ``signatureDataUrl`` + ``position``: one signature appended to the set
    """
    recipient = decode_token(payload.token)
    if not payload.consolidatedSignatureData and not payload.signatureDataUrl:
        raise InvalidInput("Missing signature data")

    service = SignatureService(db)
    if payload.consolidatedSignatureData:
        record_id = service.add_consolidated(
            document_id, recipient, payload.consolidatedSignatureData.signatures
        )
        return {"success": True, "message": "Signatures saved successfully", "signatureId": record_id}

    if not payload.signatureSource or not payload.position:
        raise InvalidInput("Missing signature source or position")
    signature_id = service.add(
        document_id,
        recipient,
        data_url=payload.signatureDataUrl,
        position=payload.position.model_dump(exclude_unset=True),
        source=payload.signatureSource,
        signature_id=payload.signatureId,
    )
    return {"success": True, "message": "Signature saved successfully", "signatureId": signature_id}


@router.put("/{document_id}/signature")
def update_signature(
    document_id: int,
    payload: UpdateSignatureRequest,
    db: Session = Depends(get_db)
):
    if not payload.signatureId or not payload.token or not payload.position:
        raise InvalidInput("Missing required fields")
    recipient = decode_token(payload.token)
    SignatureService(db).update_position(
        document_id, recipient, payload.signatureId, payload.position.model_dump(exclude_unset=True)
    )
    return {"success": True, "message": "Signature updated successfully"}


@router.delete("/{document_id}/signature")
def delete_signature(
    document_id: int,
    payload: DeleteSignatureRequest,
    db: Session = Depends(get_db)
):
    recipient = decode_token(payload.token)
    service = SignatureService(db)
    if payload.clearAll:
        deleted = service.clear_all(document_id, recipient)
        return {"success": True, "message": "All signatures cleared successfully", "deleted": deleted}
    if payload.signatureId:
        service.delete_one(document_id, recipient, payload.signatureId)
        return {"success": True, "message": "Signature deleted successfully"}
    raise InvalidInput("Missing signature ID or clearAll flag")


@router.post("/{document_id}/signatures/check")
def check_signatures(
    document_id: int,
    payload: CheckSignaturesRequest,
    db: Session = Depends(get_db)
):
    recipient = decode_token(payload.token)
    return SignatureService(db).check(
        document_id, recipient, payload.requiredSignatureCount, payload.includeData
    )


@router.get("/{document_id}/signatures")
def list_signatures(
    document_id: int,
    token: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Signatures as placed annotations; the aggregate token lists every recipient's."""
    recipient = decode_token(token)
    rows = SignatureRepository(db).find_by_document(document_id, recipient.filter_email)
    return {"signatures": [a.to_dict() for a in signature_annotations_from_rows(rows)]}
