"""Endpoint tests for /generate-pdf."""
from utils.exceptions import ReportError, WordPressError


def test_generate_pdf_success(client, fake_report):
    response = client.post("/generate-pdf", json={"postId": 42, "session_ID": "abc-123"})
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "PDF generated successfully.",
        "pdfLink": "https://drive.google.com/file/d/pdf123/view",
        "docLink": "https://docs.google.com/document/d/doc123/edit",
    }
    assert fake_report.calls == [(42, "abc-123")]


def test_generate_pdf_accepts_string_post_id(client, fake_report):
    response = client.post("/generate-pdf", json={"postId": "42"})
    assert response.status_code == 200
    assert fake_report.calls == [("42", None)]


def test_generate_pdf_requires_post_id(client, fake_report):
    response = client.post("/generate-pdf", json={"session_ID": "abc"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "postId is required."
    assert fake_report.calls == []


def test_generate_pdf_blank_post_id(client):
    response = client.post("/generate-pdf", json={"postId": "  "})
    assert response.status_code == 400


def test_generate_pdf_report_failure(client, fake_report):
    fake_report.error = ReportError("Error exporting the document to PDF", detail="403 Forbidden")
    response = client.post("/generate-pdf", json={"postId": 7})
    assert response.status_code == 500
    body = response.json()
    assert body == {
        "success": False,
        "message": "Error exporting the document to PDF",
        "error": "403 Forbidden",
    }


def test_generate_pdf_wordpress_failure(client, fake_report):
    fake_report.error = WordPressError("WordPress request failed with status 404")
    response = client.post("/generate-pdf", json={"postId": 7})
    assert response.status_code == 500
    assert response.json()["message"] == "WordPress request failed with status 404"


def test_generate_pdf_unexpected_error(client, fake_report):
    fake_report.error = RuntimeError("boom")
    response = client.post("/generate-pdf", json={"postId": 7})
    assert response.status_code == 500
    assert response.json()["message"] == "Internal server error"
