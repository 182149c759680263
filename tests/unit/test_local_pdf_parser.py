"""Unit tests for the local PDF fallback."""

import io

import pytest
from pypdf import PdfWriter

from offer_pipeline.processors.local_pdf_parser import (
    parse_pdf_locally,
    read_pdf_metadata,
    scan_printable_text,
)


def make_pdf(pages=1, title=None):
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    if title:
        writer.add_metadata({"/Title": title, "/Author": "Autohaus Nord"})
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


class TestReadPdfMetadata:
    """Tests for container metadata parsing."""

    def test_page_count_and_info(self):
        metadata = read_pdf_metadata(make_pdf(pages=3, title="Leasingangebot"))
        assert metadata.page_count == 3
        assert metadata.title == "Leasingangebot"
        assert metadata.author == "Autohaus Nord"

    def test_corrupt_container_raises(self):
        with pytest.raises(Exception):
            read_pdf_metadata(b"this is not a pdf file at all")


class TestScanPrintableText:
    """Tests for the printable byte-run scan."""

    def test_short_runs_dropped(self):
        data = b"BMW\x00\x01Leasing\x02ab\x03Monatsrate"
        assert scan_printable_text(data) == "Leasing Monatsrate"

    def test_latin1_letters_kept(self):
        data = "\x00Größe\x00".encode("latin-1")
        assert scan_printable_text(data) == "Größe"

    def test_only_leading_bytes_scanned(self):
        data = b"\x00" * 100_000 + b"Unsichtbar"
        assert scan_printable_text(data) == ""

    def test_output_capped(self):
        data = (b"abcdefgh\x00" * 10_000)[:100_000]
        assert len(scan_printable_text(data)) == 50_000


class TestParsePdfLocally:
    """Tests for the never-raising fallback entry point."""

    def test_valid_pdf(self):
        result = parse_pdf_locally(make_pdf(pages=2, title="Angebot"))
        assert result.page_count == 2
        assert result.source == "local_fallback"
        assert result.is_approximate is True
        assert result.metadata.title == "Angebot"
        assert "PDF" in result.text

    def test_corrupt_pdf_degrades(self):
        result = parse_pdf_locally(b"garbage bytes without structure")
        assert result.text == ""
        assert result.page_count == 0
        assert result.is_approximate is True
        assert result.extraction_error is None

    def test_no_bytes(self):
        result = parse_pdf_locally(None)
        assert result.text == ""
        assert result.page_count == 0
        assert result.source == "local_fallback"
