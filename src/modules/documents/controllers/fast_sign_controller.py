from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from database import get_db
from modules.documents.services.print_service import PrintService
from modules.documents.services.storage import get_blob_store

router = APIRouter(
    tags=["fast-sign"]
)


@router.get("/{document_id}/print")
def print_fast_signed_document(
    document_id: int,
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store)
):
    """Every recipient's signatures and text on one copy."""
    signed = PrintService(db, blob_store).fast_sign_pdf(document_id)
    return Response(content=signed.pdf_bytes, media_type="application/pdf", headers=signed.headers())
