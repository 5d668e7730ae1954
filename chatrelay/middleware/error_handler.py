from typing import Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.middleware.base import BaseHTTPMiddleware

from chatrelay.core.config import settings
from chatrelay.core.errors import BaseCustomException, ErrorResponse
from chatrelay.core.logging import get_logger

logger = get_logger(__name__)


async def custom_exception_handler(request: Request, exc: BaseCustomException) -> JSONResponse:
    """커스텀 예외를 표준 에러 응답으로 변환"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(BaseCustomException, custom_exception_handler)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    통합 에러 처리 미들웨어

    라우터에서 처리되지 않은 예외를 표준화된 에러 응답으로 변환합니다.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except BaseCustomException as e:
            return JSONResponse(status_code=e.status_code, content=e.to_dict())

        except PyMongoError as e:
            # MongoDB 연결/작업 에러
            logger.error(f"MongoDB error: {type(e).__name__}: {e}")
            error_response = ErrorResponse(
                error="store_error",
                message="Session store unavailable",
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                details={"detail": str(e)} if settings.debug else None
            )
            return JSONResponse(
                status_code=error_response.status_code,
                content=error_response.model_dump()
            )

        except Exception as e:
            logger.error(f"Unhandled error: {type(e).__name__}: {e}", exc_info=True)
            error_response = ErrorResponse(
                error="internal_server_error",
                message="An unexpected error occurred",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                details={"type": type(e).__name__, "detail": str(e)} if settings.debug else None
            )
            return JSONResponse(
                status_code=error_response.status_code,
                content=error_response.model_dump()
            )
