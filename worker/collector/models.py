"""Raw measurement models returned by metric collectors.

Measurements are validated on the way in and frozen afterwards. Each
top-level section is optional: a missing section means the provider behind
it returned nothing (timeout, quota, unsupported page) and the scoring
engine substitutes a documented default.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from api.exceptions import MeasurementValidationError


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class MetaTags(_Frozen):
    """Head metadata of the page."""

    title: str | None = None
    description: str | None = None
    viewport: str | None = None
    canonical: str | None = None
    robots: str | None = None
    lang: str | None = None


class HeadingCounts(_Frozen):
    h1: int = Field(0, ge=0)
    h2: int = Field(0, ge=0)
    h3: int = Field(0, ge=0)


class LinkCounts(_Frozen):
    internal: int = Field(0, ge=0)
    external: int = Field(0, ge=0)
    nofollow: int = Field(0, ge=0)
    broken: int = Field(0, ge=0)


class ImageStats(_Frozen):
    """Image counts; `checked`/`optimized` come from the image format check."""

    total: int = Field(0, ge=0)
    with_alt: int = Field(0, ge=0)
    checked: int = Field(0, ge=0)
    optimized: int = Field(0, ge=0)

    @property
    def without_alt(self) -> int:
        return max(0, self.total - self.with_alt)

    @property
    def alt_coverage(self) -> float:
        """Share of images with alt text (1.0 when the page has no images)."""
        if self.total == 0:
            return 1.0
        return min(1.0, self.with_alt / self.total)


class ContentStats(_Frozen):
    word_count: int = Field(0, ge=0)
    readability_grade: float | None = Field(None, ge=0)
    keyword_density: float | None = Field(None, ge=0)  # percent
    has_schema: bool = False
    schema_types: tuple[str, ...] = ()


class TechnicalFlags(_Frozen):
    https: bool = False
    responsive: bool = False
    amp: bool = False


class HtmlAnalysis(_Frozen):
    """Facts extracted from the page HTML."""

    meta: MetaTags = Field(default_factory=MetaTags)
    headings: HeadingCounts = Field(default_factory=HeadingCounts)
    links: LinkCounts = Field(default_factory=LinkCounts)
    images: ImageStats = Field(default_factory=ImageStats)
    content: ContentStats = Field(default_factory=ContentStats)
    technical: TechnicalFlags = Field(default_factory=TechnicalFlags)


class LighthouseScores(_Frozen):
    """Lighthouse category scores (0..1) and individual audit scores."""

    performance: float | None = Field(None, ge=0, le=1)
    accessibility: float | None = Field(None, ge=0, le=1)
    best_practices: float | None = Field(None, ge=0, le=1, alias="best-practices")
    seo: float | None = Field(None, ge=0, le=1)
    mobile_friendly: float | None = Field(None, ge=0, le=1)
    audits: dict[str, float] = Field(default_factory=dict)

    def audit(self, audit_id: str) -> float | None:
        return self.audits.get(audit_id)


class CoreWebVitals(_Frozen):
    """Field/lab timings in milliseconds (CLS is unitless)."""

    lcp_ms: float | None = Field(None, ge=0)
    fid_ms: float | None = Field(None, ge=0)
    cls: float | None = Field(None, ge=0)
    fcp_ms: float | None = Field(None, ge=0)
    ttfb_ms: float | None = Field(None, ge=0)
    load_ms: float | None = Field(None, ge=0)
    dom_interactive_ms: float | None = Field(None, ge=0)


class BacklinkProfile(_Frozen):
    domain_authority: float = Field(0, ge=0, le=100)
    page_authority: float = Field(0, ge=0, le=100)
    backlinks: int = Field(0, ge=0)
    referring_domains: int = Field(0, ge=0)
    spam_score: float = Field(0, ge=0)


class CompetitorBenchmark(_Frozen):
    """Competitor comparison entry supplied by the collector."""

    name: str
    score: float = Field(ge=0, le=100)
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "strengths": list(self.strengths),
            "weaknesses": list(self.weaknesses),
        }


class RawMeasurement(_Frozen):
    """All measurements collected for one URL."""

    url: str
    fetched_at: datetime | None = None
    html: HtmlAnalysis | None = None
    lighthouse: LighthouseScores | None = None
    vitals: CoreWebVitals | None = None
    backlinks: BacklinkProfile | None = None

    @property
    def data_sources(self) -> list[str]:
        """Names of the providers that returned data."""
        sources = []
        if self.lighthouse is not None:
            sources.append("Lighthouse")
        if self.html is not None:
            sources.append("HTML Analysis")
        if self.vitals is not None:
            sources.append("Performance Metrics")
        if self.backlinks is not None:
            sources.append("Backlink APIs")
        return sources

    @classmethod
    def parse(cls, payload: Any) -> "RawMeasurement":
        """
        Validate a collector payload.

        Raises:
            MeasurementValidationError: If the payload has the wrong shape.
        """
        if not isinstance(payload, dict):
            raise MeasurementValidationError(
                f"Measurement payload must be an object, got {type(payload).__name__}"
            )
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(loc) for loc in first.get("loc", ()))
            raise MeasurementValidationError(
                f"Invalid measurement: {field or 'payload'}: {first.get('msg', 'invalid value')}",
                field=field or None,
            ) from e
