from __future__ import annotations

import io
import logging
import subprocess

from PIL import Image, UnidentifiedImageError
from pytesseract import pytesseract as tesseract_cli

from docvault.domain.errors import EngineUnavailableError
from docvault.infra.ocr.text import normalize_text
from docvault.infra.ports.ocr import ExtractionStrategy, StrategyOutput
from docvault.infra.tempfiles import TempFileFactory

logger = logging.getLogger(__name__)

# The CLI path does not report a confidence score.
TESSERACT_CONFIDENCE = 70

# psm 3 = fully automatic page segmentation, oem 1 = LSTM engine only.
_ENGINE_CONFIG = "--psm 3 --oem 1"


def _as_png(payload: bytes) -> bytes:
    try:
        image = Image.open(io.BytesIO(payload))
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"Image could not be decoded: {exc}") from exc
    return buffer.getvalue()


def configure_tesseract_cmd(tesseract_cmd: str) -> None:
    """Point pytesseract at the engine binary. The setting is process-wide."""
    tesseract_cli.tesseract_cmd = tesseract_cmd


class TesseractCLIStrategy(ExtractionStrategy):
    """Runs the tesseract binary against a scratch copy of the image.

    The binary is whatever ``configure_tesseract_cmd`` installed at startup.
    """

    method_name = "system-tesseract"

    def __init__(self, *, temp_files: TempFileFactory, timeout_seconds: int = 120):
        self.temp_files = temp_files
        self.timeout_seconds = max(0, int(timeout_seconds))

    @property
    def tesseract_cmd(self) -> str:
        return tesseract_cli.tesseract_cmd

    def probe(self) -> str:
        try:
            version = tesseract_cli.get_tesseract_version()
        # pytesseract exits on an unparseable version banner.
        except (OSError, subprocess.CalledProcessError, SystemExit) as exc:
            logger.error("Tesseract not reachable as %r: %s", self.tesseract_cmd, exc)
            raise EngineUnavailableError(
                f"Tesseract not installed or not in PATH ({self.tesseract_cmd}). "
                "Install Tesseract OCR and ensure it is added to system PATH."
            ) from exc
        return str(version)

    def extract(self, payload: bytes, *, language: str) -> StrategyOutput:
        version = self.probe()
        logger.info("Using tesseract %s", version)

        image_bytes = _as_png(payload)
        paths = self.temp_files.allocate(".png")
        try:
            paths.input_path.write_bytes(image_bytes)
            try:
                tesseract_cli.run_tesseract(
                    str(paths.input_path),
                    str(paths.output_base),
                    extension="txt",
                    lang=language,
                    config=_ENGINE_CONFIG,
                    timeout=self.timeout_seconds,
                )
            except tesseract_cli.TesseractError as exc:
                raise RuntimeError(f"Tesseract exited with status {exc.status}: {exc.message}") from exc
            text = paths.output_path.read_text(encoding="utf-8")
        finally:
            self.temp_files.discard(paths)

        return StrategyOutput(
            text=normalize_text(text),
            confidence=TESSERACT_CONFIDENCE,
            page_count=1,
            method=self.method_name,
        )
