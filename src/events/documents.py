"""PDF operations used to turn an uploaded document into ticket documents.

Two libraries are involved: pypdf copies a page structurally into a new
document (text stays text, barcodes stay vector), pypdfium2 renders pages to
images for previews and for the raster fallback when a page cannot be copied.
"""

import base64
import io
from dataclasses import dataclass

import magic
import pypdfium2 as pdfium
import structlog
from PIL import Image
from pypdf import PdfReader, PdfWriter

from .exceptions import DocumentProcessingError, InvalidPageNumberError

logger = structlog.get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"

# PDF user space unit: 72 points per inch.
POINTS_PER_INCH = 72.0


@dataclass(frozen=True)
class PagePreview:
    """A JPEG thumbnail of one page, ready to embed in a page picker."""

    page_number: int
    data_url: str
    width: float
    height: float


def detect_mime_type(content: bytes) -> str:
    """Detect the MIME type from the file content, not from client headers."""
    return str(magic.from_buffer(content, mime=True))


def _open(content: bytes) -> pdfium.PdfDocument:
    try:
        return pdfium.PdfDocument(content)
    except pdfium.PdfiumError as e:
        raise DocumentProcessingError(f"Could not open PDF: {e}") from e


def _check_page(page_number: int, page_count: int) -> None:
    if not 1 <= page_number <= page_count:
        raise InvalidPageNumberError(f"Page {page_number} does not exist; the document has {page_count} pages.")


def count_pages(content: bytes) -> int:
    """Return the number of pages of a PDF.

    Raises:
        DocumentProcessingError: If the content is not a readable PDF.
    """
    pdf = _open(content)
    try:
        return len(pdf)
    finally:
        pdf.close()


def _render(pdf: pdfium.PdfDocument, page_index: int, scale: float) -> tuple[Image.Image, float, float]:
    page = pdf[page_index]
    try:
        width, height = page.get_size()
        image = page.render(scale=scale).to_pil()
    finally:
        page.close()
    if image.mode != "RGB":
        image = image.convert("RGB")
    return image, width, height


def render_previews(content: bytes, *, scale: float, quality: int) -> list[PagePreview]:
    """Render every page as a JPEG data URL.

    Args:
        content: The PDF bytes.
        scale: Render scale relative to the page size in points.
        quality: JPEG quality, 1-95.

    Raises:
        DocumentProcessingError: If the document cannot be opened or rendered.
    """
    pdf = _open(content)
    previews: list[PagePreview] = []
    try:
        for index in range(len(pdf)):
            try:
                image, width, height = _render(pdf, index, scale)
            except pdfium.PdfiumError as e:
                raise DocumentProcessingError(f"Could not render page {index + 1}: {e}") from e
            buffer = io.BytesIO()
            image.save(buffer, format="JPEG", quality=quality)
            encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
            previews.append(
                PagePreview(
                    page_number=index + 1,
                    data_url=f"data:image/jpeg;base64,{encoded}",
                    width=width,
                    height=height,
                )
            )
    finally:
        pdf.close()
    return previews


def extract_page(content: bytes, page_number: int) -> bytes:
    """Copy one page into a new single-page PDF without rasterizing it.

    Args:
        content: The source PDF bytes.
        page_number: 1-based page number.

    Raises:
        InvalidPageNumberError: If the page does not exist.
        DocumentProcessingError: If the page cannot be copied.
    """
    try:
        reader = PdfReader(io.BytesIO(content))
        if reader.is_encrypted and not reader.decrypt(""):
            raise DocumentProcessingError("The document is password protected.")
        _check_page(page_number, len(reader.pages))
        writer = PdfWriter()
        writer.add_page(reader.pages[page_number - 1])
        buffer = io.BytesIO()
        writer.write(buffer)
    except (InvalidPageNumberError, DocumentProcessingError):
        raise
    except Exception as e:
        # Malformed files surface as arbitrary errors from pypdf (AttributeError, zlib.error, ...).
        raise DocumentProcessingError(f"Could not extract page {page_number}: {e}") from e
    return buffer.getvalue()


def rasterize_page(content: bytes, page_number: int, *, scale: float, quality: int) -> bytes:
    """Render one page to a high-resolution image wrapped in a single-page PDF.

    The resulting page keeps the original page size in points; only its
    content becomes an image.

    Args:
        content: The source PDF bytes.
        page_number: 1-based page number.
        scale: Render scale relative to the page size in points.
        quality: JPEG quality of the embedded image.

    Raises:
        InvalidPageNumberError: If the page does not exist.
        DocumentProcessingError: If the page cannot be rendered.
    """
    pdf = _open(content)
    try:
        _check_page(page_number, len(pdf))
        image, _, _ = _render(pdf, page_number - 1, scale)
    except pdfium.PdfiumError as e:
        raise DocumentProcessingError(f"Could not render page {page_number}: {e}") from e
    finally:
        pdf.close()

    buffer = io.BytesIO()
    # Pixels per inch that map the rendered bitmap back onto the original page size.
    image.save(buffer, format="PDF", resolution=POINTS_PER_INCH * scale, quality=quality)
    return buffer.getvalue()
