"""Renders a stored scan result as a standalone HTML report."""
import base64
import os
from collections import Counter

from jinja2 import Environment, FileSystemLoader, select_autoescape

from accessibility_scanner.features.scan.schemas.scan import ViolationImpact
from accessibility_scanner.features.scan.services.query.result_query import ScanReport

template_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "template")

env = Environment(
    loader=FileSystemLoader(template_dir),
    autoescape=select_autoescape(["html"]),
)

IMPACT_ORDER = [impact.value for impact in (
    ViolationImpact.critical,
    ViolationImpact.serious,
    ViolationImpact.moderate,
    ViolationImpact.minor,
)]


def render_report(report: ScanReport) -> str:
    result = report.result
    violations = result.violations or []

    impact_counts = Counter(v.impact.value if v.impact else "unknown" for v in violations)
    screenshot_data_uri = None
    if result.screenshot:
        screenshot_data_uri = "data:image/png;base64," + base64.b64encode(result.screenshot).decode("ascii")

    template = env.get_template("report.html")
    return template.render(
        result=result,
        violations=violations,
        score=report.score.score,
        health_label=report.score.health_label,
        impact_order=IMPACT_ORDER,
        impact_counts=impact_counts,
        affected_node_total=sum(len(v.affected_nodes) for v in violations),
        screenshot_data_uri=screenshot_data_uri,
    )
