from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from modules.documents.errors import InvalidInput
from modules.documents.models.schemas import SaveAnnotationsRequest
from modules.documents.services.annotation_service import AnnotationService
from modules.documents.services.recipient import decode_token

router = APIRouter(
    tags=["annotations"]
)


@router.post("/{document_id}")
def save_annotations(
    document_id: int,
    payload: SaveAnnotationsRequest,
    db: Session = Depends(get_db)
):
    if payload.annotations is None or not payload.token:
        raise InvalidInput("Missing annotations or token")
    recipient = decode_token(payload.token)
    saved = AnnotationService(db).save(document_id, recipient, payload.annotations)
    return {"success": True, "message": "Annotations saved successfully", "saved": saved}


@router.get("/{document_id}")
def list_annotations(
    document_id: int,
    email: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Without ``email`` every recipient's annotations are returned together."""
    return {"annotations": AnnotationService(db).list(document_id, email)}
