"""Per-invocation scratch paths for the OCR engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from docvault.utils.ids import new_public_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScratchPaths:
    input_path: Path
    output_base: Path

    @property
    def output_path(self) -> Path:
        # The engine appends ".txt" to the base it is given.
        return self.output_base.with_name(f"{self.output_base.name}.txt")


class TempFileFactory:
    def __init__(self, work_dir: Path, *, prefix: str = "ocr-"):
        self.work_dir = Path(work_dir)
        self.prefix = prefix
        self.work_dir.mkdir(parents=True, exist_ok=True)

    def allocate(self, suffix: str = ".png") -> ScratchPaths:
        stem = new_public_id(self.prefix)
        return ScratchPaths(
            input_path=self.work_dir / f"{stem}{suffix}",
            output_base=self.work_dir / stem,
        )

    @staticmethod
    def discard(paths: ScratchPaths) -> None:
        for path in (paths.input_path, paths.output_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.debug("Ignoring cleanup failure for %s: %s", path, exc)
