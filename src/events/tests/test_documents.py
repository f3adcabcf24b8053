import base64
import io
from unittest.mock import patch

import pytest
from pypdf import PdfReader, PdfWriter

from conftest import SAMPLE_PAGES
from events import documents
from events.exceptions import DocumentProcessingError, InvalidPageNumberError


def _page_sizes(content: bytes) -> list[tuple[float, float]]:
    reader = PdfReader(io.BytesIO(content))
    return [(float(page.mediabox.width), float(page.mediabox.height)) for page in reader.pages]


def test_detect_mime_type_uses_content(three_page_pdf: bytes) -> None:
    assert documents.detect_mime_type(three_page_pdf) == documents.PDF_MIME_TYPE
    assert documents.detect_mime_type(b"just some text, no pdf header") != documents.PDF_MIME_TYPE


def test_count_pages(three_page_pdf: bytes) -> None:
    assert documents.count_pages(three_page_pdf) == 3


def test_count_pages_rejects_garbage() -> None:
    with pytest.raises(DocumentProcessingError):
        documents.count_pages(b"%PDF-1.4 this is not really a pdf")


class TestRenderPreviews:
    def test_one_jpeg_per_page(self, three_page_pdf: bytes) -> None:
        previews = documents.render_previews(three_page_pdf, scale=0.5, quality=80)

        assert [p.page_number for p in previews] == [1, 2, 3]
        for preview, ((width, height), _) in zip(previews, SAMPLE_PAGES, strict=True):
            assert preview.data_url.startswith("data:image/jpeg;base64,")
            assert base64.b64decode(preview.data_url.split(",", 1)[1])[:2] == b"\xff\xd8"
            assert preview.width == pytest.approx(width, abs=1)
            assert preview.height == pytest.approx(height, abs=1)


class TestExtractPage:
    def test_extracted_page_keeps_its_size(self, three_page_pdf: bytes) -> None:
        extracted = documents.extract_page(three_page_pdf, 2)

        sizes = _page_sizes(extracted)
        assert len(sizes) == 1
        assert sizes[0] == pytest.approx(SAMPLE_PAGES[1][0], abs=1)

    @pytest.mark.parametrize("page_number", [0, 4])
    def test_page_out_of_range(self, three_page_pdf: bytes, page_number: int) -> None:
        with pytest.raises(InvalidPageNumberError):
            documents.extract_page(three_page_pdf, page_number)

    def test_unreadable_document(self) -> None:
        with pytest.raises(DocumentProcessingError):
            documents.extract_page(b"definitely not a pdf", 1)

    def test_any_pypdf_failure_becomes_processing_error(self, three_page_pdf: bytes) -> None:
        with patch.object(PdfWriter, "add_page", side_effect=RecursionError("deeply nested object")):
            with pytest.raises(DocumentProcessingError):
                documents.extract_page(three_page_pdf, 1)


class TestRasterizePage:
    def test_raster_page_keeps_original_dimensions(self, three_page_pdf: bytes) -> None:
        rasterized = documents.rasterize_page(three_page_pdf, 3, scale=3.0, quality=95)

        sizes = _page_sizes(rasterized)
        assert len(sizes) == 1
        assert sizes[0] == pytest.approx(SAMPLE_PAGES[2][0], abs=1)

    def test_page_out_of_range(self, three_page_pdf: bytes) -> None:
        with pytest.raises(InvalidPageNumberError):
            documents.rasterize_page(three_page_pdf, 9, scale=1.0, quality=80)
