import logging
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """
    An error that maps onto an HTTP response.

    `message` is what the client sees. `cause` is the underlying error and is
    only ever written to the server log.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class BadRequest(APIError):
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthenticated(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(APIError):
    # Ownership failures answer 401 like every other auth failure
    status_code = status.HTTP_401_UNAUTHORIZED


class Internal(APIError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(
    status_code: int, message: str, err: Optional[BaseException] = None
) -> JSONResponse:
    if status_code >= 500:
        logger.error(
            "Responding with %s error: %s",
            status_code,
            message,
            exc_info=(type(err), err, err.__traceback__) if err else None,
        )
    elif err is not None:
        logger.warning("Responding with %s: %s (%s)", status_code, message, err)

    return JSONResponse(status_code=status_code, content={"error": message})


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return error_response(exc.status_code, exc.message, exc.cause)
