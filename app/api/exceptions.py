"""
API异常处理器
业务异常统一转换为 {success, error_code, message, details} 结构的JSON响应
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import BusinessException

logger = logging.getLogger(__name__)

__all__ = [
    "BusinessException",
    "business_exception_handler",
    "validation_exception_handler",
    "http_exception_handler",
    "database_exception_handler",
    "general_exception_handler",
]


def _error_body(error_code: str, message: str, details=None) -> dict:
    return {
        "success": False,
        "error_code": error_code,
        "message": message,
        "details": details or {},
    }


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    """业务异常"""
    if exc.status_code >= 500:
        logger.error(f"业务异常 {exc.code}: {exc.message}")
    else:
        logger.info(f"业务异常 {exc.code} {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """请求参数校验失败"""
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder(_error_body(
            "REQUEST_VALIDATION_ERROR",
            "Request validation failed",
            {"errors": exc.errors()}
        ))
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body("HTTP_ERROR", str(exc.detail))
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """数据库异常（不向调用方暴露SQL细节）"""
    logger.error(f"数据库异常 {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("DATABASE_ERROR", "Database error")
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"未处理的异常 {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("INTERNAL_ERROR", "Internal server error")
    )
