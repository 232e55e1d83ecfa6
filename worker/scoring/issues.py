"""Rule-based issue detection.

Scans the Lighthouse, HTML and technical sections of a measurement for known
failure patterns and emits one Issue per match with a fixed severity and
impact.
"""

from dataclasses import dataclass
from enum import StrEnum

from worker.collector.models import RawMeasurement
from worker.config import ScoringConfig


class IssueSeverity(StrEnum):
    """Issue severity levels."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


SEVERITY_ORDER = {
    IssueSeverity.CRITICAL: 0,
    IssueSeverity.WARNING: 1,
    IssueSeverity.INFO: 2,
}


@dataclass(frozen=True)
class Issue:
    """A single detected problem with its remediation."""

    type: str  # performance, seo, accessibility, security, mobile, content
    severity: IssueSeverity
    message: str
    remediation: str
    impact: float  # 0-100

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "severity": self.severity.value,
            "message": self.message,
            "remediation": self.remediation,
            "impact": self.impact,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Issue":
        return cls(
            type=data["type"],
            severity=IssueSeverity(data["severity"]),
            message=data["message"],
            remediation=data["remediation"],
            impact=float(data["impact"]),
        )


def detect_issues(measurement: RawMeasurement, config: ScoringConfig) -> list[Issue]:
    """
    Detect issues in a measurement.

    Args:
        measurement: Validated raw measurement
        config: Scoring thresholds

    Returns:
        Issues ranked by impact (highest first), ties kept in rule order
    """
    issues: list[Issue] = []

    # Performance audits
    lighthouse = measurement.lighthouse
    if lighthouse is not None:
        fcp = lighthouse.audit("first-contentful-paint")
        if fcp is not None and fcp < config.audit_pass_score:
            issues.append(
                Issue(
                    type="performance",
                    severity=IssueSeverity.CRITICAL,
                    message="Slow First Contentful Paint",
                    remediation="Optimize server response time, reduce render-blocking resources",
                    impact=15,
                )
            )

        lcp = lighthouse.audit("largest-contentful-paint")
        if lcp is not None and lcp < config.audit_pass_score:
            issues.append(
                Issue(
                    type="performance",
                    severity=IssueSeverity.WARNING,
                    message="Large images or videos delaying LCP",
                    remediation="Optimize images, use next-gen formats, implement lazy loading",
                    impact=10,
                )
            )

    html = measurement.html
    if html is not None:
        if not html.meta.title:
            issues.append(
                Issue(
                    type="seo",
                    severity=IssueSeverity.CRITICAL,
                    message="Missing page title",
                    remediation="Add a unique, descriptive title tag (50-60 characters)",
                    impact=20,
                )
            )

        if not html.meta.description:
            issues.append(
                Issue(
                    type="seo",
                    severity=IssueSeverity.WARNING,
                    message="Missing meta description",
                    remediation="Write a compelling meta description (120-160 characters)",
                    impact=10,
                )
            )

        h1_count = html.headings.h1
        if h1_count != 1:
            issues.append(
                Issue(
                    type="seo",
                    severity=IssueSeverity.WARNING,
                    message="Missing H1 tag" if h1_count == 0 else "Multiple H1 tags",
                    remediation="Ensure exactly one H1 tag per page with primary keyword",
                    impact=15,
                )
            )

        missing_alt = html.images.without_alt
        if missing_alt > 0:
            issues.append(
                Issue(
                    type="accessibility",
                    severity=IssueSeverity.WARNING,
                    message=f"{missing_alt} images missing alt text",
                    remediation="Add descriptive alt text to all images",
                    impact=8,
                )
            )

        if not html.technical.responsive:
            issues.append(
                Issue(
                    type="mobile",
                    severity=IssueSeverity.WARNING,
                    message="No responsive viewport meta tag",
                    remediation='Add <meta name="viewport" content="width=device-width, initial-scale=1">',
                    impact=10,
                )
            )

        if not html.meta.canonical:
            issues.append(
                Issue(
                    type="seo",
                    severity=IssueSeverity.INFO,
                    message="Missing canonical tag",
                    remediation="Declare the preferred URL with a canonical link element",
                    impact=5,
                )
            )

        if html.content.word_count < config.thin_content_words:
            issues.append(
                Issue(
                    type="content",
                    severity=IssueSeverity.INFO,
                    message=f"Thin content ({html.content.word_count} words)",
                    remediation="Expand the page with useful, original copy",
                    impact=5,
                )
            )

    if not _uses_https(measurement):
        issues.append(
            Issue(
                type="security",
                severity=IssueSeverity.CRITICAL,
                message="Site not using HTTPS",
                remediation="Install SSL certificate and redirect all HTTP traffic to HTTPS",
                impact=25,
            )
        )

    # Stable sort keeps rule order for equal impact
    return sorted(issues, key=lambda i: -i.impact)


def _uses_https(measurement: RawMeasurement) -> bool:
    if measurement.html is not None:
        return measurement.html.technical.https
    return measurement.url.lower().startswith("https://")
