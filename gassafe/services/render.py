from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Final, Optional

from fastapi import Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from gassafe.config import settings
from gassafe.services.formatting import format_date, format_price

logger = logging.getLogger("gassafe.services.render")

BACKEND_BASE_DIR: Final[Path] = Path(__file__).resolve().parent.parent
TEMPLATE_DIR: Final[Path] = BACKEND_BASE_DIR / "templates"

logger.debug("Template dir: %s", TEMPLATE_DIR)

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
templates.env.filters["price"] = format_price
templates.env.filters["day"] = format_date
templates.env.globals["app_name"] = settings.app_name


def render_template(
    request: Request,
    name: str,
    context: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
) -> HTMLResponse:
    """
    Thin wrapper around Starlette's TemplateResponse so routers can
    render Jinja templates with a consistent API.
    """
    if not isinstance(request, Request):
        raise ValueError("render_template needs the FastAPI Request instance.")
    return templates.TemplateResponse(
        request,
        name,
        dict(context or {}),
        status_code=status_code,
    )
