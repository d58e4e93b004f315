import base64
import logging
import re
from typing import Optional
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from .schemas import PageSnapshot, SiteSignals

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5000
SCROLL_SETTLE_MS = 1000  # lets lazy-loaded sections render after scrolling
SCREENSHOT_QUALITY = 70

_USER_AGENT = "Mozilla/5.0 (compatible; AuthorityAuditBot/1.0)"

try:
    from playwright.async_api import async_playwright

    PLAYWRIGHT_AVAILABLE = True
except ImportError:
    PLAYWRIGHT_AVAILABLE = False
    logger.warning(
        "Playwright not installed; pages will be fetched without rendering"
    )

_TESTIMONIALS_RE = re.compile(r"testimonial|review|feedback|\"what.*say", re.I)
_CASE_STUDIES_RE = re.compile(
    r"case\s+stud|portfolio|work\s+with|success\s+stor|client.*result", re.I
)
_ABOUT_RE = re.compile(
    r"<(?:section|div)[^>]*(?:id|class)=[\"'][^\"']*about[^\"']*[\"']", re.I
)
_CONTACT_RE = re.compile(r"contact|email|phone|get\s+in\s+touch", re.I)


def normalize_website(url: str) -> str:
    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


def _handle(value: str) -> str:
    return value.strip().lstrip("@").strip("/")


def instagram_url(value: str) -> str:
    """Profile URL for an Instagram handle (``@name``, ``name`` or a full URL)."""
    value = value.strip()
    if urlparse(value).netloc or "instagram.com" in value.lower():
        return normalize_website(value)
    return f"https://www.instagram.com/{_handle(value)}/"


def linkedin_url(value: str) -> str:
    """Profile URL for a LinkedIn handle; bare names are treated as /in/ slugs."""
    value = value.strip()
    if urlparse(value).netloc or "linkedin.com" in value.lower():
        return normalize_website(value)
    return f"https://www.linkedin.com/in/{_handle(value)}/"


def extract_visible_text(html: str) -> str:
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(separator="\n", strip=True)
    return re.sub(r"\n{3,}", "\n\n", text)


def extract_site_signals(html: str) -> SiteSignals:
    """Cheap trust/clarity heuristics that give the model something concrete."""
    if not html:
        return SiteSignals()

    soup = BeautifulSoup(html, "lxml")
    title = soup.title.get_text(strip=True) if soup.title else ""
    meta = soup.find("meta", attrs={"name": re.compile("^description$", re.I)})
    description = (meta.get("content") or "").strip() if meta else ""

    return SiteSignals(
        title=title,
        description=description,
        has_testimonials=bool(_TESTIMONIALS_RE.search(html)),
        has_case_studies=bool(_CASE_STUDIES_RE.search(html)),
        has_about_section=bool(_ABOUT_RE.search(html)),
        has_contact_info=bool(_CONTACT_RE.search(html)),
        word_count=len(extract_visible_text(html).split()),
    )


class PageFetcher:
    """Fetch a page's HTML, optionally rendered in headless Chromium.

    ``fetch`` never raises: on failure the returned HTML is a comment
    describing what went wrong, so prompt building can carry on.
    """

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        render: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout_ms = timeout_ms
        self.render = render
        self._transport = transport

    async def fetch(
        self,
        url: str,
        render: Optional[bool] = None,
        timeout_ms: Optional[int] = None,
    ) -> PageSnapshot:
        url = normalize_website(url)
        render = self.render if render is None else render
        timeout_ms = timeout_ms or self.timeout_ms

        if render and PLAYWRIGHT_AVAILABLE:
            try:
                snapshot = await self._fetch_with_playwright(url, timeout_ms)
                logger.info("Rendered %s (%d chars)", url, len(snapshot.html))
                return snapshot
            except Exception as exc:
                logger.warning("Render failed for %s, falling back to fetch: %s", url, exc)

        return PageSnapshot(url=url, html=await self._fetch_static(url, timeout_ms))

    async def _fetch_static(self, url: str, timeout_ms: int) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=timeout_ms / 1000,
                follow_redirects=True,
                headers={"User-Agent": _USER_AGENT},
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("Fetch failed for %s: %s", url, exc)
            return f"<!-- Unable to fetch website: {exc} -->\n"

        if not response.is_success:
            logger.warning("Fetch of %s returned %d", url, response.status_code)
            return f"<!-- Website returned {response.status_code} -->\n"

        logger.info("Fetched %s (%d chars)", url, len(response.text))
        return response.text

    async def _fetch_with_playwright(self, url: str, timeout_ms: int) -> PageSnapshot:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True, args=["--no-sandbox"])
            try:
                page = await browser.new_page(user_agent=_USER_AGENT)
                await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
                await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
                await page.wait_for_timeout(SCROLL_SETTLE_MS)
                html = await page.content()
                screenshot = await page.screenshot(
                    type="jpeg", quality=SCREENSHOT_QUALITY, full_page=False
                )
            finally:
                await browser.close()

        return PageSnapshot(
            url=url,
            html=html,
            screenshot_base64=base64.b64encode(screenshot).decode("utf-8"),
            rendered=True,
        )
