from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class StrategyOutput:
    text: str
    confidence: int
    page_count: int
    method: str


class ExtractionStrategy(ABC):
    method_name: str = "unknown"

    @abstractmethod
    def extract(self, payload: bytes, *, language: str) -> StrategyOutput:
        """Return extracted text for one stored file, or raise."""

    def probe(self) -> str:
        """Return an engine version string. Raises when the engine is unreachable."""
        return self.method_name
