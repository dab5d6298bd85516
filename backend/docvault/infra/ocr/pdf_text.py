from __future__ import annotations

from docvault.infra.ocr.text import normalize_text
from docvault.infra.ports.ocr import ExtractionStrategy, StrategyOutput

PDF_TEXT_CONFIDENCE = 95


class PdfTextStrategy(ExtractionStrategy):
    """Reads the native text layer of a PDF with PyMuPDF."""

    method_name = "pymupdf"

    def extract(self, payload: bytes, *, language: str) -> StrategyOutput:
        import fitz  # type: ignore

        doc = fitz.open(stream=payload, filetype="pdf")
        try:
            page_texts = [normalize_text(page.get_text("text")) for page in doc]
            page_count = doc.page_count
        finally:
            doc.close()

        return StrategyOutput(
            text="\n\n".join(item for item in page_texts if item),
            confidence=PDF_TEXT_CONFIDENCE,
            page_count=max(1, page_count),
            method=self.method_name,
        )

    def probe(self) -> str:
        import fitz  # type: ignore

        return f"pymupdf {fitz.VersionBind}"
