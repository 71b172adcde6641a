from .document import Document, DocumentStatus
from .signing_request import SigningRequest, SigningRequestStatus
from .annotation import DocumentAnnotation
from .signature import DocumentSignature

__all__ = [
    'Document', 'DocumentStatus', 'SigningRequest', 'SigningRequestStatus',
    'DocumentAnnotation', 'DocumentSignature'
]
