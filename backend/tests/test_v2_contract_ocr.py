import base64

from docvault.main import app
from tests.http_client import SyncASGIClient
from tests.samples import make_image, make_pdf


def _submit(client: SyncASGIClient, file_id: str, **extra) -> dict:
    resp = client.post("/v2/ocr/jobs", json={"fileId": file_id, **extra})
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_upload_contract():
    client = SyncASGIClient(app)

    body = client.upload("Receipt.PNG", b"\x89PNG fake", "image/png")
    assert set(body.keys()) == {"fileId", "name", "contentType", "extension", "mimeType", "size", "url", "createdAt"}
    assert body["fileId"].startswith("file_")
    assert body["contentType"] == "image"
    assert body["extension"] == "png"
    assert body["size"] == 9
    assert body["url"] == f"/uploads/{body['fileId']}/source.png"

    raw = client.get(body["url"])
    assert raw.status_code == 200
    assert raw.content == b"\x89PNG fake"

    fetched = client.get(f"/v2/files/{body['fileId']}")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Receipt.PNG"
    assert client.get("/v2/files/file_missing").status_code == 404


def test_image_job_completes_with_mock_engine():
    client = SyncASGIClient(app)
    file_id = client.upload("scan.png", b"\x89PNG fake", "image/png")["fileId"]

    submitted = _submit(client, file_id)
    assert set(submitted.keys()) == {"jobId", "fileId", "status"}
    assert submitted["jobId"].startswith("job_")
    assert submitted["status"] == "processing"

    job = client.get(f"/v2/ocr/jobs/{submitted['jobId']}").json()
    assert job["status"] == "completed"
    assert job["text"] == "[mock] OCR text"
    assert job["confidence"] == 70
    assert job["pageCount"] == 1
    assert job["error"] is None
    assert job["metadata"]["processingMethod"] == "mock-ocr"

    status = client.get(f"/v2/ocr/status?fileId={file_id}").json()
    assert status["status"] == "completed"
    assert status["progress"] == 100
    assert status["hasText"] is True
    assert status["jobId"] == submitted["jobId"]


def test_pdf_job_reads_embedded_text():
    client = SyncASGIClient(app)
    file_id = client.upload("report.pdf", make_pdf(["first page", "second page"]), "application/pdf")["fileId"]

    _submit(client, file_id)

    result = client.get(f"/v2/ocr/result?fileId={file_id}").json()
    assert result["status"] == "completed"
    assert result["confidence"] == 95
    assert result["pageCount"] == 2
    assert "second page" in result["text"]


def test_unsupported_file_fails_job():
    client = SyncASGIClient(app)
    file_id = client.upload("clip.mp4", b"\x00\x00\x00\x18ftyp", "video/mp4")["fileId"]

    _submit(client, file_id)

    result = client.get(f"/v2/ocr/result?fileId={file_id}").json()
    assert result["status"] == "failed"
    assert result["error"] == "Unsupported file type for OCR: video"
    assert result["text"].startswith("OCR processing failed: ")

    export = client.get(f"/v2/ocr/result/export?fileId={file_id}")
    assert export.status_code == 409


def test_submit_errors_map_to_http_status():
    client = SyncASGIClient(app)
    file_id = client.upload("scan.jpg", b"jpeg", "image/jpeg")["fileId"]

    assert client.post("/v2/ocr/jobs", json={"fileId": "file_missing"}).status_code == 404
    assert client.post("/v2/ocr/jobs", json={"fileId": file_id, "language": "eng;ls"}).status_code == 422
    assert client.post("/v2/ocr/jobs", json={"fileId": ""}).status_code == 422
    assert client.get(f"/v2/ocr/result?fileId={file_id}").status_code == 404


def test_resubmit_keeps_job_identity():
    client = SyncASGIClient(app)
    file_id = client.upload("scan.webp", b"webp", "image/webp")["fileId"]

    first = _submit(client, file_id)
    second = _submit(client, file_id, language="kor+eng")

    assert first["jobId"] == second["jobId"]
    result = client.get(f"/v2/ocr/result?fileId={file_id}").json()
    assert result["status"] == "completed"
    assert result["language"] == "kor+eng"


def test_status_for_file_without_job_is_pending():
    client = SyncASGIClient(app)
    file_id = client.upload("later.png", b"png", "image/png")["fileId"]

    status = client.get(f"/v2/ocr/status?fileId={file_id}").json()
    assert status["status"] == "pending"
    assert status["progress"] == 0
    assert status["jobId"] is None


def test_export_completed_text():
    client = SyncASGIClient(app)
    file_id = client.upload("invoice.png", b"png", "image/png")["fileId"]
    _submit(client, file_id)

    export = client.get(f"/v2/ocr/result/export?fileId={file_id}")
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/plain")
    assert export.headers["content-disposition"] == 'attachment; filename="invoice-ocr.txt"'
    assert export.text == "[mock] OCR text"


def test_admin_job_list_and_engine_status():
    client = SyncASGIClient(app)
    file_id = client.upload("listed.png", b"png", "image/png")["fileId"]
    job_id = _submit(client, file_id)["jobId"]

    listing = client.get("/v2/admin/ocr-jobs?limit=5").json()
    assert listing["count"] <= 5
    assert listing["jobs"][0]["jobId"] == job_id

    assert client.get("/v2/admin/ocr-jobs?limit=0").status_code == 422

    engine = client.get("/v2/ocr/engine").json()
    assert engine == {
        "backend": "mock",
        "method": "mock-ocr",
        "available": True,
        "version": "mock-ocr",
        "error": None,
    }


def test_save_completed_result_as_text_file():
    client = SyncASGIClient(app)
    file_id = client.upload("contract.png", b"png", "image/png")["fileId"]
    _submit(client, file_id)

    resp = client.post("/v2/ocr/result/save", json={"fileId": file_id, "fileName": "contract-text"})
    assert resp.status_code == 200, resp.text
    saved = resp.json()
    assert saved["fileId"] != file_id
    assert saved["name"] == "contract-text.txt"
    assert saved["contentType"] == "document"
    assert saved["extension"] == "txt"
    assert saved["mimeType"] == "text/plain"
    assert saved["size"] == len("[mock] OCR text")

    raw = client.get(saved["url"])
    assert raw.content == b"[mock] OCR text"


def test_save_without_text_is_not_found():
    client = SyncASGIClient(app)
    pending_id = client.upload("pending.png", b"png", "image/png")["fileId"]
    failed_id = client.upload("clip.webm", b"webm", "video/webm")["fileId"]
    _submit(client, failed_id)

    for file_id in (pending_id, failed_id):
        resp = client.post("/v2/ocr/result/save", json={"fileId": file_id, "fileName": "out"})
        assert resp.status_code == 404
        assert resp.json()["detail"] == "OCR result not found or processing not complete"

    missing_name = client.post("/v2/ocr/result/save", json={"fileId": pending_id, "fileName": ""})
    assert missing_name.status_code == 422


def test_process_image_runs_inline():
    client = SyncASGIClient(app)
    encoded = base64.b64encode(make_image()).decode("ascii")

    resp = client.post("/v2/ocr/process-image", json={"image": encoded, "language": "kor+eng"})
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"text": "[mock] OCR text", "confidence": 70, "source": "mock-ocr", "pageCount": 1}

    data_url = client.post("/v2/ocr/process-image", json={"image": f"data:image/png;base64,{encoded}"})
    assert data_url.status_code == 200


def test_process_image_rejects_bad_input():
    client = SyncASGIClient(app)
    encoded = base64.b64encode(b"img").decode("ascii")

    assert client.post("/v2/ocr/process-image", json={"image": "not base64!"}).status_code == 400
    assert client.post("/v2/ocr/process-image", json={"image": "data:image/png;base64,"}).status_code == 400
    assert client.post("/v2/ocr/process-image", json={"image": ""}).status_code == 422
    assert client.post("/v2/ocr/process-image", json={"image": encoded, "language": "eng;id"}).status_code == 422
