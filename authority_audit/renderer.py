from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .schemas import Badge, ScoreReport

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

# The badge enum is fixed; each weighting profile has its own wording.
BADGE_LABELS = {
    "balanced": {
        Badge.EXCEPTIONAL: "EXCEPTIONAL",
        Badge.STRONG: "STRONG",
        Badge.SOLID_FOUNDATION: "GOOD START",
        Badge.NEEDS_REFINEMENT: "NEEDS WORK",
        Badge.REQUIRES_ATTENTION: "CRITICAL",
    },
    "authority": {
        Badge.EXCEPTIONAL: "EXCEPTIONAL",
        Badge.STRONG: "STRONG",
        Badge.SOLID_FOUNDATION: "BUILDING MOMENTUM",
        Badge.NEEDS_REFINEMENT: "NEEDS REFINEMENT",
        Badge.REQUIRES_ATTENTION: "REQUIRES ATTENTION",
    },
}


def score_color(score: int) -> str:
    if score >= 80:
        return "#10B981"  # green
    if score >= 60:
        return "#3B82F6"  # blue
    if score >= 40:
        return "#F59E0B"  # amber
    return "#EF4444"  # red


def score_emoji(score: int) -> str:
    if score >= 80:
        return "\U0001F680"
    if score >= 60:
        return "\U0001F4AA"
    if score >= 40:
        return "\U0001F4C8"
    return "\U0001F331"


class ReportRenderer:
    """Render a ``ScoreReport`` as the HTML scorecard fragment."""

    def __init__(self, templates_dir: Path = TEMPLATES_DIR, profile: str = "authority"):
        self.labels = BADGE_LABELS[profile]
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters["score_color"] = score_color
        self.env.filters["score_emoji"] = score_emoji

    def badge_label(self, badge: Badge) -> str:
        return self.labels[badge]

    def render(self, report: ScoreReport, name: str = "", cta_url: str = "") -> str:
        """``cta_url`` is the strategy-call link; the button is left out when empty."""
        template = self.env.get_template("report.html")
        return template.render(
            report=report,
            name=name,
            cta_url=cta_url,
            badge_label=self.badge_label(report.badge),
            breakdown=[
                ("Clarity", report.clarity, "How clear is your value proposition and messaging"),
                ("Credibility", report.credibility, "What trust signals and social proof you show"),
                ("Visibility", report.visibility, "How discoverable and active you are online"),
            ],
        )
