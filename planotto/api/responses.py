import logging

from fastapi.responses import JSONResponse

from planotto.services.payments.errors import BillingError

logger = logging.getLogger(__name__)


def error_response(error: str, status: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status, content={"ok": False, "error": error})


def billing_error_response(exc: BillingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("billing request failed: %s", exc.message)
    return error_response(exc.message, status=exc.status_code)


def unexpected_error_response(exc: Exception, fallback: str) -> JSONResponse:
    logger.exception("%s: %s", fallback, exc)
    return error_response(str(exc) or fallback, status=500)
