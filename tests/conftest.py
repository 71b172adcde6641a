import base64
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
import modules.documents.models  # noqa: F401  (registers the tables)
from modules.documents.services.document_service import DocumentService
from modules.documents.services.recipient import encode_token
from modules.documents.services.storage import LocalBlobStore, get_blob_store

OWNER = "owner@example.com"
SIGNER = "signer@example.com"


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "uploads"), "http://testserver/files")


def build_pdf(pages=1, pagesize=letter, text="PDF for signing tests"):
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=pagesize)
    for number in range(1, pages + 1):
        c.drawString(72, 720, f"{text} - page {number}")
        c.showPage()
    c.save()
    return buffer.getvalue()


def build_image_data_url(fmt="PNG", size=(60, 30), color=(20, 40, 200, 255)):
    mode = "RGBA" if fmt == "PNG" else "RGB"
    image = Image.new(mode, size, color[:len(mode)])
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    mime = "image/png" if fmt == "PNG" else "image/jpeg"
    return f"data:{mime};base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture()
def make_pdf():
    return build_pdf


@pytest.fixture()
def png_data_url():
    return build_image_data_url("PNG")


@pytest.fixture()
def jpeg_data_url():
    return build_image_data_url("JPEG")


@pytest.fixture()
def document(db_session, blob_store):
    return DocumentService.upload_document(
        db_session, blob_store, OWNER, build_pdf(pages=2), "contract.pdf", "application/pdf"
    )


@pytest.fixture()
def signer_token():
    return encode_token(SIGNER)


@pytest.fixture()
def client(session_factory, blob_store):
    from main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    yield TestClient(app)
    app.dependency_overrides.clear()
