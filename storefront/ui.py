# storefront/ui.py
from dataclasses import asdict, is_dataclass
from decimal import Decimal
from enum import Enum
from urllib.parse import urlsplit

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse

from storefront.config import settings
from storefront.exceptions import ValidationError
from storefront.schemas import ListingQuery, parse_input


def _money(value: Decimal) -> str:
    return str(value.quantize(Decimal("0.01")))


ENCODERS = {
    Decimal: _money,
    Enum: lambda member: member.value,
}


def to_props(value):
    if is_dataclass(value) and not isinstance(value, type):
        value = asdict(value)
    return jsonable_encoder(value, custom_encoder=ENCODERS)


def flash(request: Request, kind: str, message: str) -> None:
    request.session.setdefault("flash", {})[kind] = message


def flash_errors(request: Request, errors: dict[str, str]) -> None:
    request.session["errors"] = dict(errors)


def common_props(request: Request, extra: dict | None = None) -> dict:
    user = request.session.get("user")
    base = {
        "app_name": settings.APP_NAME,
        "auth": {"user": user},
        "flash": request.session.pop("flash", {}),
        "errors": request.session.pop("errors", {}),
    }
    if extra:
        base.update(extra)
    return base


def render_page(request: Request, component: str, props: dict | None = None, status_code: int = 200):
    """Page object consumed by the client-side component tree."""
    return JSONResponse(
        {
            "component": component,
            "props": to_props(common_props(request, props)),
            "url": str(request.url.path)
            + (f"?{request.url.query}" if request.url.query else ""),
        },
        status_code=status_code,
    )


def _same_origin(request: Request, url: str) -> bool:
    parts = urlsplit(url)
    if not parts.scheme and not parts.netloc:
        return url.startswith("/") and not url.startswith("//") and "\\" not in url
    return parts.scheme in ("http", "https") and parts.netloc in (
        request.url.netloc,
        urlsplit(settings.BASE_URL).netloc,
    )


def back(request: Request, fallback: str = "/") -> RedirectResponse:
    """Redirect to the referring page of this site, or to `fallback`."""
    referer = request.headers.get("referer")
    if not referer or not _same_origin(request, referer):
        referer = fallback
    return RedirectResponse(referer, status_code=302)


def redirect(path: str) -> RedirectResponse:
    return RedirectResponse(path, status_code=302)


def listing_query(request: Request, **defaults):
    """Parse listing query parameters, falling back to defaults for bad input."""
    data = {**defaults, **{k: v for k, v in request.query_params.items() if v != ""}}
    try:
        return parse_input(ListingQuery, data)
    except ValidationError:
        return ListingQuery.model_validate(defaults)
