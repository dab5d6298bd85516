from __future__ import annotations

import io
from pathlib import Path

import pytest
from PIL import Image
from pytesseract import pytesseract as tesseract_cli

from docvault.domain.errors import EngineUnavailableError
from docvault.infra.ocr.tesseract import TesseractCLIStrategy, configure_tesseract_cmd
from docvault.infra.tempfiles import TempFileFactory
from tests.samples import make_image


class FakeEngine:
    def __init__(self, output: str | None = "HELLO WORLD", error: Exception | None = None):
        self.output = output
        self.error = error
        self.calls: list[dict] = []

    def __call__(self, input_filename, output_filename_base, extension, lang, config="", nice=0, timeout=0):
        self.calls.append(
            {
                "input": input_filename,
                "output_base": output_filename_base,
                "extension": extension,
                "lang": lang,
                "config": config,
                "timeout": timeout,
                "input_existed": Path(input_filename).exists(),
                "payload": Path(input_filename).read_bytes(),
            }
        )
        if self.error is not None:
            raise self.error
        if self.output is not None:
            Path(f"{output_filename_base}.txt").write_text(self.output + "\n\f", encoding="utf-8")


def _strategy(tmp_path: Path) -> TesseractCLIStrategy:
    return TesseractCLIStrategy(temp_files=TempFileFactory(tmp_path), timeout_seconds=30)


def test_extracts_text_and_cleans_up(tmp_path: Path, monkeypatch):
    engine = FakeEngine()
    monkeypatch.setattr(tesseract_cli, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(tesseract_cli, "run_tesseract", engine)

    output = _strategy(tmp_path).extract(make_image("JPEG"), language="kor+eng")

    assert output.text == "HELLO WORLD"
    assert output.confidence == 70
    assert output.page_count == 1
    assert output.method == "system-tesseract"

    call = engine.calls[0]
    assert call["input_existed"] is True
    assert call["payload"].startswith(b"\x89PNG")
    assert call["lang"] == "kor+eng"
    assert call["config"] == "--psm 3 --oem 1"
    assert call["extension"] == "txt"
    assert call["timeout"] == 30
    assert Path(call["input"]).name.startswith("ocr-")
    assert list(tmp_path.iterdir()) == []


def test_scratch_names_are_unique_per_invocation(tmp_path: Path, monkeypatch):
    engine = FakeEngine()
    monkeypatch.setattr(tesseract_cli, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(tesseract_cli, "run_tesseract", engine)

    strategy = _strategy(tmp_path)
    strategy.extract(make_image(), language="eng")
    strategy.extract(make_image(size=(8, 8)), language="eng")

    assert engine.calls[0]["input"] != engine.calls[1]["input"]
    assert engine.calls[0]["output_base"] != engine.calls[1]["output_base"]


def test_engine_failure_still_cleans_up(tmp_path: Path, monkeypatch):
    engine = FakeEngine(error=tesseract_cli.TesseractError(1, "Error in pixReadStream"))
    monkeypatch.setattr(tesseract_cli, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(tesseract_cli, "run_tesseract", engine)

    with pytest.raises(RuntimeError, match="Error in pixReadStream"):
        _strategy(tmp_path).extract(make_image(), language="eng")

    assert list(tmp_path.iterdir()) == []


def test_missing_output_file_is_an_error(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(tesseract_cli, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(tesseract_cli, "run_tesseract", FakeEngine(output=None))

    with pytest.raises(FileNotFoundError):
        _strategy(tmp_path).extract(make_image(), language="eng")

    assert list(tmp_path.iterdir()) == []


def test_unavailable_engine_fails_fast(tmp_path: Path, monkeypatch):
    engine = FakeEngine()

    def missing():
        raise tesseract_cli.TesseractNotFoundError()

    monkeypatch.setattr(tesseract_cli, "get_tesseract_version", missing)
    monkeypatch.setattr(tesseract_cli, "run_tesseract", engine)

    with pytest.raises(EngineUnavailableError, match="Tesseract not installed or not in PATH"):
        _strategy(tmp_path).extract(make_image(), language="eng")

    assert engine.calls == []
    assert list(tmp_path.iterdir()) == []


def test_cleanup_ignores_unlink_errors(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(tesseract_cli, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(tesseract_cli, "run_tesseract", FakeEngine())

    def refuse(self, missing_ok=False):
        raise PermissionError("locked")

    monkeypatch.setattr(Path, "unlink", refuse)

    output = _strategy(tmp_path).extract(make_image(), language="eng")

    assert output.text == "HELLO WORLD"


def test_undecodable_image_never_reaches_engine(tmp_path: Path, monkeypatch):
    engine = FakeEngine()
    monkeypatch.setattr(tesseract_cli, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(tesseract_cli, "run_tesseract", engine)

    with pytest.raises(ValueError, match="Image could not be decoded"):
        _strategy(tmp_path).extract(b"not an image", language="eng")

    assert engine.calls == []
    assert list(tmp_path.iterdir()) == []


def test_transparent_image_is_flattened_to_png(tmp_path: Path, monkeypatch):
    engine = FakeEngine()
    monkeypatch.setattr(tesseract_cli, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(tesseract_cli, "run_tesseract", engine)

    _strategy(tmp_path).extract(make_image("PNG", mode="RGBA"), language="eng")

    with Image.open(io.BytesIO(engine.calls[0]["payload"])) as written:
        assert written.format == "PNG"
        assert written.mode == "RGB"


def test_building_strategies_leaves_engine_command_alone(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(tesseract_cli, "tesseract_cmd", "/usr/bin/tesseract")

    first = _strategy(tmp_path)
    TesseractCLIStrategy(temp_files=TempFileFactory(tmp_path / "other"), timeout_seconds=5)

    assert tesseract_cli.tesseract_cmd == "/usr/bin/tesseract"
    assert first.tesseract_cmd == "/usr/bin/tesseract"


def test_configured_command_is_named_when_missing(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(tesseract_cli, "tesseract_cmd", "tesseract")

    def missing():
        raise tesseract_cli.TesseractNotFoundError()

    monkeypatch.setattr(tesseract_cli, "get_tesseract_version", missing)
    configure_tesseract_cmd("/opt/ocr/bin/tesseract")

    with pytest.raises(EngineUnavailableError, match="/opt/ocr/bin/tesseract"):
        _strategy(tmp_path).probe()
