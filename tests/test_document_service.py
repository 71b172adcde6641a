import base64
import os

import pytest

from modules.documents.errors import InvalidInput, NotFound
from modules.documents.models.document import DocumentStatus
from modules.documents.models.signing_request import SigningRequest
from modules.documents.repositories.annotation_repository import AnnotationRepository
from modules.documents.repositories.signature_repository import SignatureRepository
from modules.documents.services.annotation_service import AnnotationService
from modules.documents.services.document_service import DocumentService
from modules.documents.services.recipient import Recipient, decode_token, encode_token
from modules.documents.services.signature_service import SignatureService
from modules.documents.services.signing_state_service import SigningStateService

OWNER = "owner@example.com"
SIGNER = "signer@example.com"


def upload(session, blob_store, content, filename="contract.pdf", content_type="application/pdf", **kwargs):
    return DocumentService.upload_document(session, blob_store, OWNER, content, filename, content_type, **kwargs)


def test_upload_creates_draft_and_stores_file(db_session, blob_store, make_pdf):
    content = make_pdf()
    document = upload(db_session, blob_store, content)

    assert document.status == DocumentStatus.DRAFT
    assert document.file_size == len(content)
    assert document.file_path == os.path.join(OWNER, "contract.pdf")
    assert blob_store.download(document.file_path) == content


def test_upload_picks_first_free_suffix(db_session, blob_store, make_pdf):
    names = [upload(db_session, blob_store, make_pdf()).name for _ in range(3)]
    assert names == ["contract.pdf", "contract_1.pdf", "contract_2.pdf"]


@pytest.mark.parametrize("content, filename, content_type", [
    (b"%PDF-1.4", "contract.pdf", "image/png"),
    (b"%PDF-1.4", "contract.txt", "application/pdf"),
    (b"", "contract.pdf", "application/pdf"),
    (b"not really a pdf", "contract.pdf", "application/pdf"),
])
def test_upload_validation(db_session, blob_store, content, filename, content_type):
    with pytest.raises(InvalidInput):
        upload(db_session, blob_store, content, filename, content_type)


def test_upload_size_limit(db_session, blob_store, make_pdf):
    with pytest.raises(InvalidInput):
        upload(db_session, blob_store, make_pdf(), max_file_size=10)


def test_get_unknown_document(db_session):
    with pytest.raises(NotFound):
        DocumentService.get_document(db_session, 42)


def test_delete_document_removes_children_and_file(db_session, blob_store, document, png_data_url):
    recipient = Recipient.specific(SIGNER)
    SigningStateService.dispatch(db_session, document.id, SIGNER, OWNER)
    SignatureService(db_session).add(document.id, recipient, png_data_url, {"relativeX": 0.1, "relativeY": 0.1})
    AnnotationService(db_session).save(document.id, recipient, [{"id": "t", "text": "x"}])
    document_id, file_path = document.id, document.file_path

    DocumentService.delete_document(db_session, blob_store, document_id)

    assert db_session.query(SigningRequest).count() == 0
    assert SignatureRepository(db_session).find_by_document(document_id) == []
    assert AnnotationRepository(db_session).find_by_document(document_id) == []
    with pytest.raises(NotFound):
        blob_store.download(file_path)


def test_blob_store_rejects_escaping_paths(blob_store):
    with pytest.raises(InvalidInput):
        blob_store.save("../outside.pdf", b"x")


def test_token_round_trip():
    recipient = decode_token(encode_token(SIGNER))
    assert recipient == Recipient.specific(SIGNER)
    assert recipient.storage_email == SIGNER


@pytest.mark.parametrize("email", ["fast-sign-docs@view-all", "fast-sign@local"])
def test_aggregate_tokens(email):
    recipient = decode_token(base64.b64encode(email.encode()).decode())
    assert recipient.is_aggregate
    assert recipient.filter_email is None
    assert recipient.storage_email == "fast-sign@local"


def test_url_safe_token_without_padding():
    assert decode_token("Pz8_YUBiLmM").email == "???a@b.c"


def test_unpadded_token():
    token = encode_token(SIGNER).rstrip("=")
    assert decode_token(token).email == SIGNER


@pytest.mark.parametrize("token", [None, "", "***", base64.b64encode(b"   ").decode()])
def test_bad_tokens(token):
    with pytest.raises(InvalidInput):
        decode_token(token)


def test_list_documents_filters_and_limits(db_session, blob_store, make_pdf):
    upload(db_session, blob_store, make_pdf(), "lease.pdf")
    upload(db_session, blob_store, make_pdf(), "Lease_addendum.pdf")
    DocumentService.upload_document(
        db_session, blob_store, "other@example.com", make_pdf(), "invoice.pdf", "application/pdf"
    )

    assert len(DocumentService.list_documents(db_session)) == 3
    assert {d.name for d in DocumentService.list_documents(db_session, created_by=OWNER)} == {
        "lease.pdf", "Lease_addendum.pdf",
    }
    assert {d.name for d in DocumentService.list_documents(db_session, search="LEASE")} == {
        "lease.pdf", "Lease_addendum.pdf",
    }
    newest = DocumentService.list_documents(db_session, limit=1)
    assert [d.name for d in newest] == ["invoice.pdf"]


def test_list_requests_only_mine(db_session, document):
    SigningStateService.dispatch(db_session, document.id, SIGNER, OWNER)
    SigningStateService.dispatch(db_session, document.id, "second@example.com", "colleague@example.com")

    everyone = SigningStateService.list_requests(db_session)
    assert [r.recipient_email for r in everyone] == ["second@example.com", SIGNER]
    mine = SigningStateService.list_requests(db_session, created_by=OWNER)
    assert [r.recipient_email for r in mine] == [SIGNER]


def test_get_request_by_id(db_session, document):
    request = SigningStateService.dispatch(db_session, document.id, SIGNER, OWNER)
    assert SigningStateService.get_request_by_id(db_session, request.id).recipient_email == SIGNER
    with pytest.raises(NotFound):
        SigningStateService.get_request_by_id(db_session, 999)
