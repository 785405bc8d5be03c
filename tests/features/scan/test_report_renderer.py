import base64

from accessibility_scanner.features.scan.services.query.result_query import ResultQueryService
from accessibility_scanner.features.scan.services.report.report_renderer import render_report

from conftest import make_result, make_violation


def test_report_for_successful_scan(store):
    store.save(make_result(
        "job-1",
        violations=[make_violation("image-alt", "critical", nodes=2), make_violation("label", "serious")],
        screenshot=b"png-bytes",
    ))
    report = ResultQueryService(store).get_report("job-1")

    html = render_report(report)

    assert "Accessibility report" in html
    assert "https://example.com" in html
    assert "85" in html and "Good" in html
    assert "image-alt" in html and "label" in html
    assert "img:nth-child(2)" in html
    assert "data:image/png;base64," + base64.b64encode(b"png-bytes").decode("ascii") in html


def test_report_for_failed_scan(store):
    store.save(make_result("job-2", success=False))
    report = ResultQueryService(store).get_report("job-2")

    html = render_report(report)

    assert "The scan could not be completed." in html
    assert "Timeout loading page https://example.com after 30s" in html
    assert "Scan Failed" in html


def test_report_without_violations(store):
    store.save(make_result("job-3", violations=[]))

    html = render_report(ResultQueryService(store).get_report("job-3"))

    assert "No accessibility violations were detected." in html
    assert "Excellent" in html


def test_query_service_unknown_job(store):
    query = ResultQueryService(store)
    assert query.get_result("missing") is None
    assert query.get_report("missing") is None
