from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class AnalyticsUnavailableError(ApiError):
    """Raised when the analytics stores cannot serve a request at all."""

    def __init__(self, message: str = "Analytics data is temporarily unavailable."):
        super().__init__(status_code=503, code="ANALYTICS_UNAVAILABLE", message=message)


def company_not_found(company_id: int) -> ApiError:
    return ApiError(status_code=404, code="COMPANY_NOT_FOUND", message=f"Company {company_id} not found.")


def employee_not_found(user_id: int) -> ApiError:
    return ApiError(status_code=404, code="EMPLOYEE_NOT_FOUND", message=f"Employee {user_id} not found.")


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
