from __future__ import annotations

from docvault.infra.ports.ocr import ExtractionStrategy, StrategyOutput


class MockImageStrategy(ExtractionStrategy):
    method_name = "mock-ocr"

    def __init__(self, text: str = "[mock] OCR text", confidence: int = 70):
        self.text = text
        self.confidence = confidence

    def extract(self, payload: bytes, *, language: str) -> StrategyOutput:
        if not payload:
            raise ValueError("Image payload is empty")
        return StrategyOutput(
            text=self.text,
            confidence=self.confidence,
            page_count=1,
            method=self.method_name,
        )
