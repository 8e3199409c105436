# app/core/responses.py
# Единый конверт успешного ответа: statusCode, data, message, success.
from typing import Any

from fastapi.responses import JSONResponse


def api_response(status_code: int, data: Any, message: str = "Success") -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "data": data,
            "message": message,
            "success": status_code < 400,
        },
    )
