import base64

from accessibility_scanner.features.scan.exceptions import EnqueueFailure
from accessibility_scanner.features.scan.services.broker.job_broker import JobState, JobStatus

from conftest import make_result, make_violation


def test_scan_website_accepts_and_enqueues(client, fake_broker):
    response = client.post("/scan-website", json={"url": "example.com"})
    assert response.status_code == 202

    payload = response.json()
    assert payload["status"] == "success"
    job_id = payload["data"]["jobId"]
    assert payload["data"]["submittedUrl"] == "https://example.com"
    assert payload["message"] == f"Scan request accepted and enqueued. Job ID: {job_id}"

    fake_broker.enqueue.assert_called_once()
    job, _ = fake_broker.enqueue.call_args.args
    assert job.id == job_id


def test_scan_website_rejects_invalid_url(client, fake_broker):
    response = client.post("/scan-website", json={"url": "http://"})
    assert response.status_code == 400

    payload = response.json()
    assert payload["status"] == "error"
    assert payload["message"].startswith("Invalid URL format")
    assert payload["data"]["errors"][0]["field"] == "url"
    fake_broker.enqueue.assert_not_called()


def test_scan_website_rejects_text_that_is_not_a_url(client, fake_broker):
    response = client.post("/scan-website", json={"url": "not a url"})
    assert response.status_code == 400

    payload = response.json()
    assert payload["status"] == "error"
    assert payload["data"]["errors"][0]["value"] == "not a url"
    fake_broker.enqueue.assert_not_called()


def test_scan_website_rejects_empty_url(client, fake_broker):
    response = client.post("/scan-website", json={"url": ""})
    assert response.status_code == 400
    assert response.json()["message"] == "URL cannot be empty"
    fake_broker.enqueue.assert_not_called()


def test_scan_website_malformed_body(client, fake_broker):
    response = client.post("/scan-website", json={"address": "example.com"})
    assert response.status_code == 422
    fake_broker.enqueue.assert_not_called()


def test_scan_website_enqueue_failure(client, fake_broker):
    fake_broker.enqueue.side_effect = EnqueueFailure("Failed to enqueue job abc: Connection refused")

    response = client.post("/scan-website", json={"url": "example.com"})
    assert response.status_code == 500
    assert response.json()["message"] == "Failed to enqueue scan request. Please try again later."


def test_scan_results_unknown_job(client):
    response = client.get("/scan-results/does-not-exist")
    assert response.status_code == 404
    assert response.json()["status"] == "error"


def test_scan_results_success(client, store):
    store.save(make_result("job-1", violations=[make_violation(impact="critical"), make_violation("label", "minor")]))

    response = client.get("/scan-results/job-1")
    assert response.status_code == 200

    data = response.json()["data"]
    assert data["jobId"] == "job-1"
    assert data["success"] is True
    assert data["pageTitle"] == "Example Domain"
    assert [v["ruleId"] for v in data["violations"]] == ["image-alt", "label"]
    assert data["violations"][0]["affectedNodes"][0]["targetSelectors"] == ["img:nth-child(1)"]
    assert data["score"] == 89
    assert data["healthLabel"] == "Good"
    assert data["errorMessage"] is None


def test_scan_results_failure(client, store):
    store.save(make_result("job-2", success=False))

    data = client.get("/scan-results/job-2").json()["data"]
    assert data["success"] is False
    assert data["violations"] is None
    assert data["errorMessage"] == "Timeout loading page https://example.com after 30s"
    assert data["score"] == 0
    assert data["healthLabel"] == "Scan Failed"


def test_scan_results_screenshot_is_base64(client, store):
    store.save(make_result("job-3", screenshot=b"\x89PNG\r\n\x1a\nfake"))

    data = client.get("/scan-results/job-3").json()["data"]
    assert base64.b64decode(data["screenshot"]) == b"\x89PNG\r\n\x1a\nfake"


def test_scan_results_are_stable_across_reads(client, store):
    store.save(make_result("job-4"))

    first = client.get("/scan-results/job-4")
    second = client.get("/scan-results/job-4")
    assert first.status_code == 200
    assert first.content == second.content


def test_export_report(client, store):
    store.save(make_result("job-5", page_title="<Example & Co>"))

    response = client.get("/export-report/job-5")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "image-alt" in response.text
    assert "&lt;Example &amp; Co&gt;" in response.text
    assert "<Example & Co>" not in response.text


def test_export_report_unknown_job(client):
    response = client.get("/export-report/missing")
    assert response.status_code == 404


def test_scan_job_state(client, fake_broker):
    fake_broker.job_state.return_value = JobState(job_id="job-6", status=JobStatus.leased, attempts=2)

    response = client.get("/scan-jobs/job-6")
    assert response.status_code == 200
    assert response.json()["data"] == {"jobId": "job-6", "status": "leased", "attempts": 2}
