import logging

logger = logging.getLogger(__name__)

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from .analysis import run_analysis
from .completion import CompletionProvider, CompletionProviderUnavailable
from .config import Settings, get_settings
from .normalizer import MalformedCompletion
from .renderer import TEMPLATES_DIR, ReportRenderer
from .schemas import AnalyzeRequest
from .scraper import PageFetcher

PROVIDER_TIP = (
    "Check that ANTHROPIC_API_KEY is set and the model provider is reachable."
)
MALFORMED_TIP = (
    "The analysis service returned an unreadable response. Please try again."
)
GENERIC_TIP = "The analysis service encountered an error. Please try again."

# --- Rate limiting ---
RATE_LIMIT_PER_IP = get_settings().rate_limit_per_ip

limiter = Limiter(key_func=get_remote_address)

app = FastAPI(title="Online Authority Audit")
app.state.limiter = limiter
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


class InvalidRequest(Exception):
    """Raised when the analyze request is missing required input."""


def get_fetcher(settings: Settings = Depends(get_settings)) -> PageFetcher:
    return PageFetcher(timeout_ms=settings.fetch_timeout_ms, render=settings.render_pages)


def get_provider(settings: Settings = Depends(get_settings)) -> CompletionProvider:
    return CompletionProvider(settings)


def get_renderer(settings: Settings = Depends(get_settings)) -> ReportRenderer:
    return ReportRenderer(profile=settings.score_weights)


def _analysis_failed(details: str, tip: str) -> JSONResponse:
    return JSONResponse(
        {"error": "Analysis failed", "details": details, "tip": tip},
        status_code=500,
    )


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        {
            "error": "Rate limit exceeded",
            "details": "Please slow down and try again later.",
        },
        status_code=429,
    )


@app.exception_handler(InvalidRequest)
async def invalid_request_handler(request: Request, exc: InvalidRequest):
    return JSONResponse(
        {"error": "Invalid request", "details": str(exc)}, status_code=400
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        if error.get("type") == "json_invalid":
            problems.append("Request body must be valid JSON.")
            continue
        # loc starts with "body"; the rest is the field path
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        problems.append(f"{field}: {error['msg']}" if field else error["msg"])
    return JSONResponse(
        {
            "error": "Invalid request",
            "details": "; ".join(problems) or "Request body must be a JSON object.",
        },
        status_code=400,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error = "Method not allowed" if exc.status_code == 405 else exc.detail
    return JSONResponse(
        {"error": error}, status_code=exc.status_code, headers=exc.headers
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse)
async def index(request: Request):
    return templates.TemplateResponse(request, "index.html")


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.post("/analyze")
@limiter.limit(RATE_LIMIT_PER_IP)
async def analyze(
    request: Request,
    payload: AnalyzeRequest,
    settings: Settings = Depends(get_settings),
    fetcher: PageFetcher = Depends(get_fetcher),
    provider: CompletionProvider = Depends(get_provider),
    renderer: ReportRenderer = Depends(get_renderer),
):
    # --- Validate inputs ---
    if not payload.website or not payload.website.strip():
        raise InvalidRequest("A website URL is required.")

    logger.info("Analysis requested for %r (%s)", payload.name, payload.website)

    # --- Fetch, score, normalize ---
    try:
        report = await run_analysis(
            payload,
            fetcher,
            provider,
            settings.weights,
            fetch_social=settings.fetch_social_profiles,
        )
    except CompletionProviderUnavailable as exc:
        logger.error("Completion provider unavailable: %s", exc)
        return _analysis_failed(str(exc), PROVIDER_TIP)
    except MalformedCompletion as exc:
        logger.warning("Malformed completion: %s; text=%r", exc, exc.text[:500])
        return _analysis_failed(f"Malformed completion: {exc}", MALFORMED_TIP)
    except Exception:
        logger.exception("Unexpected error during authority analysis")
        return _analysis_failed("Unexpected error during analysis.", GENERIC_TIP)

    # --- Respond ---
    # HTMX requests get the rendered scorecard; API clients get JSON.
    if request.headers.get("HX-Request"):
        return HTMLResponse(
            renderer.render(report, name=payload.name, cta_url=settings.cta_url)
        )
    return JSONResponse(
        report.model_dump(mode="json"), headers={"Cache-Control": "no-cache"}
    )
