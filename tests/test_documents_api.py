import base64

import pytest

from modules.documents.models.annotation import DocumentAnnotation

OWNER = "owner@example.com"
SIGNER = "signer@example.com"
POSITION = {
    "relativeX": 0.15,
    "relativeY": 0.15,
    "relativeWidth": 0.49,
    "relativeHeight": 0.19,
    "page": 1,
}


def upload(client, content, filename="contract.pdf", content_type="application/pdf"):
    files = {"file": (filename, content, content_type)}
    return client.post("/documents/upload", params={"user_id": OWNER}, files=files)


@pytest.fixture()
def document_id(client, make_pdf):
    resp = upload(client, make_pdf())
    assert resp.status_code == 200, resp.text
    return resp.json()["document_id"]


@pytest.fixture()
def dispatched(client, document_id):
    resp = client.post(f"/documents/{document_id}/dispatch", json={
        "recipient_email": SIGNER,
        "recipient_name": "Sam Signer",
        "created_by": OWNER,
    })
    assert resp.status_code == 200, resp.text
    return document_id


def add_signature(client, document_id, token, data_url, **extra):
    body = {
        "token": token,
        "signatureDataUrl": data_url,
        "signatureSource": "canvas",
        "position": POSITION,
    }
    body.update(extra)
    return client.post(f"/documents/{document_id}/signature", json=body)


def test_upload_rejects_non_pdf(client):
    resp = upload(client, b"This is not a PDF docx", "contract.docx",
                  "application/vnd.openxmlformats-officedocument.wordprocessingml.document")
    assert resp.status_code == 400
    assert "pdf" in resp.text.lower()


def test_upload_rejects_empty_pdf(client):
    resp = upload(client, b"")
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_input"


def test_upload_rejects_damaged_pdf(client):
    resp = upload(client, b"%PDF-1.4 garbage")
    assert resp.status_code == 400


def test_upload_renames_duplicates(client, document_id, make_pdf):
    second = upload(client, make_pdf()).json()["document_id"]
    assert client.get(f"/documents/{second}").json()["name"] == "contract_1.pdf"


def test_get_document(client, dispatched):
    data = client.get(f"/documents/{dispatched}").json()
    assert data["status"] == "sent"
    assert data["file_url"] == "http://testserver/files/owner%40example.com/contract.pdf"
    assert data["signing_requests"][0]["recipient_email"] == SIGNER


def test_get_unknown_document(client):
    resp = client.get("/documents/999")
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_dispatch_twice(client, dispatched):
    resp = client.post(f"/documents/{dispatched}/dispatch", json={
        "recipient_email": SIGNER, "created_by": OWNER,
    })
    assert resp.status_code == 409
    assert resp.json()["code"] == "already_sent"


def test_signing_round_and_print(client, dispatched, signer_token, png_data_url):
    resp = add_signature(client, dispatched, signer_token, png_data_url)
    assert resp.status_code == 200, resp.text
    assert resp.json()["signatureId"]

    early = client.get(f"/documents/{dispatched}/print", params={"token": signer_token})
    assert early.status_code == 400
    assert early.json()["code"] == "not_yet_signed"

    sent = client.post(f"/documents/{dispatched}/send", json={"token": signer_token, "updateStatus": True})
    assert sent.status_code == 200
    assert sent.json()["status"] == "signed"

    printed = client.get(f"/documents/{dispatched}/print", params={"token": signer_token})
    assert printed.status_code == 200
    assert printed.headers["content-type"] == "application/pdf"
    assert printed.content.startswith(b"%PDF")
    assert printed.headers["x-signature-count"] == "1"
    assert printed.headers["x-document-status"] == "signed"
    assert printed.headers["x-signed-by"] == "Sam Signer"
    assert printed.headers["x-signed-date"]
    assert "SIGNED_contract.pdf" in printed.headers["content-disposition"]


def test_send_back_without_signing(client, dispatched, signer_token):
    resp = client.post(f"/documents/{dispatched}/send", json={"token": signer_token})
    assert resp.json()["status"] == "returned"

    again = client.post(f"/documents/{dispatched}/send", json={"token": signer_token})
    assert again.status_code == 409
    assert again.json()["code"] == "already_completed"


def test_writes_rejected_after_completion(client, dispatched, signer_token, png_data_url):
    client.post(f"/documents/{dispatched}/send", json={"token": signer_token, "updateStatus": True})

    resp = add_signature(client, dispatched, signer_token, png_data_url)
    assert resp.status_code == 409
    assert resp.json()["code"] == "already_completed"


def test_resend_reopens(client, dispatched, signer_token, png_data_url):
    client.post(f"/documents/{dispatched}/send", json={"token": signer_token})
    resp = client.post(f"/documents/{dispatched}/resend", json={"token": signer_token})
    assert resp.json()["status"] == "sent"
    assert add_signature(client, dispatched, signer_token, png_data_url).status_code == 200


def test_missing_token(client, document_id, png_data_url):
    resp = add_signature(client, document_id, None, png_data_url)
    assert resp.status_code == 400


def test_missing_position(client, document_id, signer_token, png_data_url):
    resp = add_signature(client, document_id, signer_token, png_data_url, position=None)
    assert resp.status_code == 400


def test_update_and_delete_signature(client, document_id, signer_token, png_data_url):
    signature_id = add_signature(client, document_id, signer_token, png_data_url).json()["signatureId"]

    updated = client.put(f"/documents/{document_id}/signature", json={
        "token": signer_token, "signatureId": signature_id, "position": {"relativeX": 0.4},
    })
    assert updated.status_code == 200

    listed = client.get(f"/documents/{document_id}/signatures", params={"token": signer_token}).json()
    assert listed["signatures"][0]["relativeX"] == 0.4
    assert listed["signatures"][0]["relativeY"] == POSITION["relativeY"]

    deleted = client.request("DELETE", f"/documents/{document_id}/signature", json={
        "token": signer_token, "signatureId": signature_id,
    })
    assert deleted.status_code == 200

    check = client.post(f"/documents/{document_id}/signatures/check", json={"token": signer_token})
    assert check.json()["hasSignatures"] is False


def test_delete_unknown_signature(client, document_id, signer_token, png_data_url):
    add_signature(client, document_id, signer_token, png_data_url)
    resp = client.request("DELETE", f"/documents/{document_id}/signature", json={
        "token": signer_token, "signatureId": "missing",
    })
    assert resp.status_code == 404


def test_consolidated_save_and_check(client, document_id, signer_token, png_data_url):
    resp = client.post(f"/documents/{document_id}/signature", json={
        "token": signer_token,
        "consolidatedSignatureData": {"signatures": [
            {"id": "one", "dataUrl": png_data_url, "position": POSITION},
            {"id": "two", "dataUrl": png_data_url, "position": {**POSITION, "page": 2}},
        ]},
    })
    assert resp.status_code == 200, resp.text

    check = client.post(f"/documents/{document_id}/signatures/check", json={
        "token": signer_token, "includeData": True, "requiredSignatureCount": 1,
    }).json()
    assert check["hasAllSignatures"] is True
    assert len(check["signatures"][0]["signature_data"]["signatures"]) == 2


def test_aggregate_clear_all(client, document_id, png_data_url):
    for email in ("a@example.com", "b@example.com", "c@example.com"):
        token = base64.b64encode(email.encode()).decode()
        assert add_signature(client, document_id, token, png_data_url).status_code == 200

    view_all = base64.b64encode(b"fast-sign-docs@view-all").decode()
    listed = client.get(f"/documents/{document_id}/signatures", params={"token": view_all}).json()
    assert len(listed["signatures"]) == 3

    resp = client.request("DELETE", f"/documents/{document_id}/signature", json={
        "token": view_all, "clearAll": True,
    })
    assert resp.json()["deleted"] == 3


def test_annotations_endpoints(client, document_id, signer_token):
    resp = client.post(f"/annotations/{document_id}", json={
        "token": signer_token,
        "annotations": [
            {"id": "t1", "type": "text", "text": "Sam Signer", "relativeX": 0.1, "relativeY": 0.8},
            {"id": "s1", "type": "signature", "imageData": "data:image/png;base64,xx"},
        ],
    })
    assert resp.status_code == 200
    assert resp.json()["saved"] == 1

    listed = client.get(f"/annotations/{document_id}", params={"email": SIGNER}).json()
    assert [a["id"] for a in listed["annotations"]] == ["t1"]
    assert client.get(f"/annotations/{document_id}").json()["annotations"] == listed["annotations"]


def test_annotations_need_token(client, document_id):
    resp = client.post(f"/annotations/{document_id}", json={"annotations": []})
    assert resp.status_code == 400


def test_fast_sign_print(client, document_id, png_data_url):
    view_all = base64.b64encode(b"fast-sign-docs@view-all").decode()
    add_signature(client, document_id, view_all, png_data_url)

    resp = client.get(f"/fast-sign/{document_id}/print")
    assert resp.status_code == 200
    assert resp.headers["x-document-type"] == "fast_sign"
    assert resp.headers["x-document-status"] == "fast-signed"
    assert resp.headers["x-signature-count"] == "1"


def test_delete_document(client, dispatched, signer_token, png_data_url):
    add_signature(client, dispatched, signer_token, png_data_url)

    assert client.delete(f"/documents/{dispatched}").status_code == 200
    assert client.get(f"/documents/{dispatched}").status_code == 404


def test_annotation_with_bad_page_is_rejected(client, document_id, signer_token):
    resp = client.post(f"/annotations/{document_id}", json={
        "token": signer_token,
        "annotations": [{"id": "t1", "type": "text", "text": "Sam", "page": "two"}],
    })
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_input"
    assert client.get(f"/annotations/{document_id}").json()["annotations"] == []


def test_consolidated_with_bad_page_is_rejected(client, document_id, signer_token, png_data_url):
    resp = client.post(f"/documents/{document_id}/signature", json={
        "token": signer_token,
        "consolidatedSignatureData": {"signatures": [
            {"id": "one", "dataUrl": png_data_url, "position": {**POSITION, "page": "two"}},
        ]},
    })
    assert resp.status_code == 400


def test_stored_bad_page_does_not_break_print(client, session_factory, document_id, png_data_url):
    session = session_factory()
    session.add(DocumentAnnotation(
        document_id=document_id,
        recipient_email=SIGNER,
        annotations=[{"id": "old", "type": "text", "text": "Old", "page": "two"}],
    ))
    session.commit()
    session.close()
    view_all = base64.b64encode(b"fast-sign-docs@view-all").decode()
    add_signature(client, document_id, view_all, png_data_url)

    resp = client.get(f"/fast-sign/{document_id}/print")
    assert resp.status_code == 200
    assert resp.headers["x-signature-count"] == "1"
    assert resp.headers["x-skipped-annotations"] == "1"


def test_list_documents(client, make_pdf):
    upload(client, make_pdf(), "lease.pdf")
    upload(client, make_pdf(), "invoice.pdf")

    listed = client.get("/documents", params={"search": "lease"}).json()
    assert [d["name"] for d in listed] == ["lease.pdf"]
    assert len(client.get("/documents", params={"user_id": OWNER}).json()) == 2
    assert len(client.get("/documents", params={"limit": 1}).json()) == 1
    assert client.get("/documents", params={"limit": 0}).status_code == 422


def test_list_requests(client, dispatched):
    client.post(f"/documents/{dispatched}/dispatch", json={
        "recipient_email": "second@example.com", "created_by": "colleague@example.com",
    })

    everyone = client.get("/documents/requests").json()
    assert len(everyone) == 2
    assert everyone[0]["document_name"] == "contract.pdf"

    mine = client.get("/documents/requests", params={"user_id": OWNER, "only_mine": True}).json()
    assert [r["recipient_email"] for r in mine] == [SIGNER]
    assert client.get("/documents/requests", params={"only_mine": True}).status_code == 400

    request_id = mine[0]["id"]
    assert client.get(f"/documents/requests/{request_id}").json()["created_by"] == OWNER
    assert client.get("/documents/requests/999").status_code == 404
