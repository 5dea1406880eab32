# casa_cart/api/handlers.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from casa_cart.domain.errors import ShopError
from casa_cart.utils.logging import get_logger

logger = get_logger(__name__)


def _error_body(error: str, details: str, retryable: bool) -> dict:
    return {"success": False, "error": error, "details": details, "retryable": retryable}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError):
        if exc.http_status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.details}")
        return JSONResponse(
            status_code=exc.http_status,
            content=_error_body(exc.error, exc.details, exc.retryable),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(status_code=400, content=_error_body("Validation failed", details, False))
