import base64
import binascii
import logging
from typing import Dict, Optional

from .completion import CompletionProvider
from .normalizer import normalize
from .schemas import AnalyzeRequest, ScoreReport, ScoreWeights, SiteSignals
from .scraper import (
    PageFetcher,
    extract_site_signals,
    extract_visible_text,
    instagram_url,
    linkedin_url,
)

logger = logging.getLogger(__name__)

HTML_PREVIEW_CHARS = 5000
SOCIAL_PREVIEW_CHARS = 1500

AUDIT_PROMPT = """\
You are a professional brand strategist conducting an online authority audit.

CONTEXT:
- Client Name: {name}
- Website: {website}
- Instagram: {instagram}
- LinkedIn: {linkedin}

WEBSITE ANALYSIS:
- Title: {title}
- Description: {description}
- Has Testimonials: {has_testimonials}
- Has Case Studies: {has_case_studies}
- Has About Section: {has_about_section}
- Has Contact Info: {has_contact_info}
- Content Volume: {word_count} words

{website_preview}

{social_preview}

Please analyze their online authority and provide scores:

CLARITY (0-100): How clear is their value proposition, target audience, and offering?
- 80-100: Crystal clear who they help and how
- 60-79: Generally clear but could be more specific
- 40-59: Somewhat vague or generic
- 0-39: Unclear or missing

CREDIBILITY (0-100): What trust signals and social proof exist?
- 80-100: Strong testimonials, case studies, professional design
- 60-79: Some proof elements present
- 40-59: Limited credibility signals
- 0-39: No visible trust factors

VISIBILITY (0-100): How discoverable and active are they online?
- 80-100: Active on multiple platforms with consistent presence
- 60-79: Present on some platforms
- 40-59: Limited online presence
- 0-39: Hard to find online

Overall = (Clarity x {w_clarity}) + (Credibility x {w_credibility}) + (Visibility x {w_visibility})

Respond ONLY with valid JSON in this exact structure (no markdown, no code fences):
{{
  "clarity": <integer from 0 to 100>,
  "credibility": <integer from 0 to 100>,
  "visibility": <integer from 0 to 100>,
  "interpretation": "<1-2 sentences about their current authority position>",
  "summary": "<2-3 paragraphs: what's working, what's missing, the biggest opportunity>",
  "actions": [
    "<specific action to improve clarity>",
    "<specific action to build credibility>",
    "<specific action to increase visibility>"
  ]
}}
"""


def build_prompt(
    request: AnalyzeRequest,
    signals: SiteSignals,
    website_html: str,
    weights: ScoreWeights,
    social: Optional[Dict[str, str]] = None,
) -> str:
    if website_html:
        website_preview = (
            f"Website HTML Preview (first {HTML_PREVIEW_CHARS} chars):\n"
            f"{website_html[:HTML_PREVIEW_CHARS]}"
        )
    else:
        website_preview = "No website content available"

    social_preview = "\n\n".join(
        f"{platform.upper()} PROFILE (visible text):\n{text[:SOCIAL_PREVIEW_CHARS]}"
        for platform, text in (social or {}).items()
        if text.strip()
    )

    return AUDIT_PROMPT.format(
        name=request.name or "Not provided",
        website=request.website or "Not provided",
        instagram=request.instagram or "Not provided",
        linkedin=request.linkedin or "Not provided",
        title=signals.title or "Not found",
        description=signals.description or "Not found",
        has_testimonials=signals.has_testimonials,
        has_case_studies=signals.has_case_studies,
        has_about_section=signals.has_about_section,
        has_contact_info=signals.has_contact_info,
        word_count=signals.word_count,
        website_preview=website_preview,
        social_preview=social_preview or "No social profile content available",
        w_clarity=weights.clarity,
        w_credibility=weights.credibility,
        w_visibility=weights.visibility,
    )


def _decode_screenshot(screenshot_base64: Optional[str]) -> Optional[bytes]:
    if not screenshot_base64:
        return None
    try:
        return base64.b64decode(screenshot_base64, validate=True)
    except (binascii.Error, ValueError):
        logger.warning("Ignoring screenshot that is not valid base64")
        return None


async def _fetch_social(
    request: AnalyzeRequest, fetcher: PageFetcher
) -> Dict[str, str]:
    profiles = {}
    if request.instagram and request.instagram.strip():
        profiles["instagram"] = instagram_url(request.instagram)
    if request.linkedin and request.linkedin.strip():
        profiles["linkedin"] = linkedin_url(request.linkedin)

    social = {}
    for platform, url in profiles.items():
        snapshot = await fetcher.fetch(url, render=False)
        social[platform] = extract_visible_text(snapshot.html)
    return social


async def run_analysis(
    request: AnalyzeRequest,
    fetcher: PageFetcher,
    provider: CompletionProvider,
    weights: ScoreWeights,
    *,
    fetch_social: bool = True,
) -> ScoreReport:
    """Fetch the subject's pages, ask the model for scores, normalize the reply.

    Raises ``CompletionProviderUnavailable`` or ``MalformedCompletion``; page
    fetch problems are absorbed by the fetcher.
    """
    snapshot = await fetcher.fetch(request.website)
    signals = extract_site_signals(snapshot.html)
    logger.info("Signals for %s: %s", snapshot.url, signals.model_dump())

    social = await _fetch_social(request, fetcher) if fetch_social else {}

    prompt = build_prompt(request, signals, snapshot.html, weights, social)
    raw = await provider.complete(prompt, _decode_screenshot(snapshot.screenshot_base64))
    return normalize(raw, weights)
