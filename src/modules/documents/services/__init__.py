from .annotation_service import AnnotationService
from .document_service import DocumentService
from .print_service import PrintService
from .signature_service import SignatureService
from .signing_state_service import SigningStateService

__all__ = [
    'AnnotationService', 'DocumentService', 'PrintService',
    'SignatureService', 'SigningStateService'
]
