"""
PDF Compositor - burns signature images and text annotations onto a PDF

Annotations are drawn in list order onto one reportlab overlay per page,
which is then merged over the original page content. A bad annotation is
logged and reported in the result; only an unreadable source or a failed
write aborts the render.
"""

import base64
import binascii
import io
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import List

from PIL import Image
from PyPDF2 import PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from modules.documents.errors import FatalRenderFailure, PartialRenderFailure
from modules.documents.services.annotation_normalizer import SIGNATURE_TYPE, TEXT_TYPE
from modules.documents.services.coordinates import signature_rect, text_origin

logger = logging.getLogger(__name__)

DEFAULT_FONT = "Helvetica"
DEFAULT_FONT_SIZE = 12

JPEG_MIME_TYPES = ("data:image/jpeg", "data:image/jpg")


@dataclass
class RenderResult:
    pdf_bytes: bytes
    signature_count: int = 0
    drawn_count: int = 0
    failures: List[PartialRenderFailure] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)


@dataclass
class _PageBox:
    left: float
    bottom: float
    width: float
    height: float


def decode_data_url(data_url: str) -> bytes:
    """Returns the payload of a base64 ``data:`` URL."""
    header, separator, payload = (data_url or "").partition(",")
    if not separator or not payload:
        raise ValueError("Invalid signature image data")
    try:
        return base64.b64decode(payload)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image payload: {e}")


def image_format(data_url: str) -> str:
    """Image format declared by the data URL; anything not JPEG is read as PNG."""
    header = (data_url or "").split(",", 1)[0].lower()
    if header.startswith(JPEG_MIME_TYPES):
        return "JPEG"
    return "PNG"


def load_signature_image(data_url: str) -> Image.Image:
    image = Image.open(io.BytesIO(decode_data_url(data_url)), formats=[image_format(data_url)])
    image.load()
    return image


def _page_box(page) -> _PageBox:
    box = page.mediabox
    return _PageBox(float(box.left), float(box.bottom), float(box.width), float(box.height))


def _draw_signature(c: canvas.Canvas, annotation, box: _PageBox) -> None:
    if not annotation.image_data:
        raise ValueError("Signature has no image data")
    image = load_signature_image(annotation.image_data)

    rect = signature_rect(annotation, box.width, box.height)
    if rect.width <= 0 or rect.height <= 0:
        raise ValueError(f"Signature falls outside the page ({rect.width:.1f}x{rect.height:.1f})")

    c.drawImage(
        ImageReader(image),
        box.left + rect.x,
        box.bottom + rect.y,
        width=rect.width,
        height=rect.height,
        mask="auto",
    )
    logger.debug("Signature %s drawn at (%.2f, %.2f) size %.2fx%.2f",
                 annotation.id, rect.x, rect.y, rect.width, rect.height)


def _draw_text(c: canvas.Canvas, annotation, box: _PageBox) -> None:
    if not annotation.text:
        raise ValueError("Text annotation has no text")
    x, y = text_origin(annotation, box.width, box.height)
    c.setFillColorRGB(0, 0, 0)
    c.setFont(DEFAULT_FONT, annotation.font_size or DEFAULT_FONT_SIZE)
    c.drawString(box.left + x, box.bottom + y, str(annotation.text))


DRAWERS = {
    SIGNATURE_TYPE: _draw_signature,
    TEXT_TYPE: _draw_text,
}


def _page_index(annotation, page_count: int) -> int:
    """0-based page of ``annotation``; ValueError when it is not a page of this PDF."""
    try:
        page = int(annotation.page or 1)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"invalid page {annotation.page!r}")
    if page < 1 or page > page_count:
        raise ValueError(f"page {page} out of range (PDF has {page_count} pages)")
    return page - 1


def _read_source(pdf_bytes: bytes) -> PdfReader:
    if not pdf_bytes:
        raise FatalRenderFailure("Source PDF is empty")
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        if reader.is_encrypted:
            reader.decrypt("")
        _ = len(reader.pages)
    except Exception as e:
        raise FatalRenderFailure(f"Failed to load PDF document: {e}")
    return reader


def composite(pdf_bytes: bytes, annotations) -> RenderResult:
    """
    Draws ``annotations`` (CompositedAnnotation, 1-based ``page``) onto the PDF.

    Returns the new PDF plus how many signatures made it onto the pages.
    Raises FatalRenderFailure when the source cannot be read or the output
    cannot be written.
    """
    reader = _read_source(pdf_bytes)
    page_count = len(reader.pages)
    failures = []

    by_page = OrderedDict()
    for annotation in annotations:
        try:
            page_index = _page_index(annotation, page_count)
        except ValueError as e:
            logger.warning("Annotation %s skipped: %s", annotation.id, e)
            failures.append(PartialRenderFailure(annotation.id, str(e)))
            continue
        by_page.setdefault(page_index, []).append(annotation)

    signature_count = 0
    drawn_count = 0
    overlays = {}
    for page_index, page_annotations in by_page.items():
        box = _page_box(reader.pages[page_index])
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=(box.left + box.width, box.bottom + box.height))
        drawn_on_page = 0

        for annotation in page_annotations:
            drawer = DRAWERS.get(annotation.type)
            if drawer is None:
                failures.append(PartialRenderFailure(annotation.id, f"unsupported type '{annotation.type}'"))
                continue
            try:
                drawer(c, annotation, box)
            except Exception as e:
                logger.warning("Error adding %s annotation %s to page %s: %s",
                               annotation.type, annotation.id, page_index + 1, e)
                failures.append(PartialRenderFailure(annotation.id, str(e)))
                continue
            drawn_on_page += 1
            if annotation.type == SIGNATURE_TYPE:
                signature_count += 1

        if drawn_on_page:
            c.save()
            buffer.seek(0)
            overlays[page_index] = buffer
            drawn_count += drawn_on_page

    writer = PdfWriter()
    output = io.BytesIO()
    try:
        for page_index, page in enumerate(reader.pages):
            if page_index in overlays:
                page.merge_page(PdfReader(overlays[page_index]).pages[0])
            writer.add_page(page)
        writer.write(output)
    except Exception as e:
        logger.error("Failed to save composited PDF: %s", e, exc_info=True)
        raise FatalRenderFailure(f"Failed to save modified PDF: {e}")

    logger.info("Composited %s annotations (%s signatures), %s skipped",
                drawn_count, signature_count, len(failures))
    return RenderResult(
        pdf_bytes=output.getvalue(),
        signature_count=signature_count,
        drawn_count=drawn_count,
        failures=failures,
    )
