from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from modules.documents.errors import InvalidInput


class SignaturePosition(BaseModel):
    model_config = ConfigDict(extra="allow")

    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    page: Optional[int] = Field(default=None, ge=1)
    relativeX: Optional[float] = None
    relativeY: Optional[float] = None
    relativeWidth: Optional[float] = None
    relativeHeight: Optional[float] = None


class TextAnnotationEntry(BaseModel):
    """One stored text annotation; unknown client fields are kept as they are."""
    model_config = ConfigDict(extra="allow")

    id: Optional[Union[str, int]] = None
    type: Optional[str] = None
    page: Optional[int] = Field(default=None, ge=1)
    text: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    relativeX: Optional[float] = None
    relativeY: Optional[float] = None
    relativeWidth: Optional[float] = None
    relativeHeight: Optional[float] = None
    fontSize: Optional[float] = Field(default=None, gt=0)


class ConsolidatedSignatureEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[Union[str, int]] = None
    dataUrl: str = Field(min_length=1)
    source: Optional[str] = None
    position: SignaturePosition = Field(default_factory=SignaturePosition)
    timestamp: Optional[str] = None


def validate_entries(model, entries: list, label: str) -> List[dict]:
    """
    Validates client entries against ``model`` and returns them as plain dicts
    (coerced values, only the fields the client sent). Raises InvalidInput.
    """
    validated = []
    for index, entry in enumerate(entries):
        try:
            validated.append(model.model_validate(entry).model_dump(exclude_unset=True))
        except ValidationError as e:
            error = e.errors()[0]
            location = ".".join(str(part) for part in error["loc"]) or "entry"
            raise InvalidInput(f"Invalid {label} #{index + 1} ({location}): {error['msg']}")
    return validated


class ConsolidatedSignatureData(BaseModel):
    signatures: List[dict] = []


class AddSignatureRequest(BaseModel):
    token: Optional[str] = None
    signatureDataUrl: Optional[str] = None
    signatureSource: Optional[str] = None
    signatureId: Optional[str] = None
    position: Optional[SignaturePosition] = None
    consolidatedSignatureData: Optional[ConsolidatedSignatureData] = None


class UpdateSignatureRequest(BaseModel):
    token: Optional[str] = None
    signatureId: Optional[str] = None
    position: Optional[SignaturePosition] = None


class DeleteSignatureRequest(BaseModel):
    token: Optional[str] = None
    signatureId: Optional[str] = None
    clearAll: bool = False


class CheckSignaturesRequest(BaseModel):
    token: Optional[str] = None
    includeData: bool = False
    requiredSignatureCount: Optional[int] = Field(default=None, ge=1)


class SaveAnnotationsRequest(BaseModel):
    token: Optional[str] = None
    annotations: Optional[List[dict]] = None


class DispatchRequest(BaseModel):
    recipient_email: str
    recipient_name: Optional[str] = None
    created_by: str


class CompleteRequest(BaseModel):
    token: Optional[str] = None
    updateStatus: bool = False


class TokenRequest(BaseModel):
    token: Optional[str] = None


class SigningRequestResponse(BaseModel):
    id: int
    document_id: int
    recipient_email: str
    recipient_name: Optional[str] = None
    created_by: Optional[str] = None
    document_name: Optional[str] = None
    status: str
    sent_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None

    @classmethod
    def from_request(cls, request) -> "SigningRequestResponse":
        return cls(
            id=request.id,
            document_id=request.document_id,
            recipient_email=request.recipient_email,
            recipient_name=request.recipient_name,
            created_by=request.created_by,
            document_name=request.document.name if request.document is not None else None,
            status=request.status.value,
            sent_at=request.sent_at,
            signed_at=request.signed_at,
            returned_at=request.returned_at,
        )


class DocumentResponse(BaseModel):
    id: int
    name: str
    file_size: int
    file_url: Optional[str] = None
    created_by: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    signing_requests: List[SigningRequestResponse] = []

    @classmethod
    def from_document(cls, document, file_url: Optional[str] = None) -> "DocumentResponse":
        return cls(
            id=document.id,
            name=document.name,
            file_size=document.file_size,
            file_url=file_url,
            created_by=document.created_by,
            status=document.status.value,
            created_at=document.created_at,
            updated_at=document.updated_at,
            signing_requests=[SigningRequestResponse.from_request(r) for r in document.signing_requests],
        )
