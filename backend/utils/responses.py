from typing import Optional

from fastapi.responses import JSONResponse


def success_response(data=None, message="OK", status=200):
    return JSONResponse(
        status_code=status,
        content={
            "ok": True,
            "data": data if data is not None else {},
            "error": None,
            "message": message,
        }
    )


def error_response(error_code, status=400, message="An error occurred", data=None):
    return JSONResponse(
        status_code=status,
        content={
            "ok": False,
            "data": data or {},
            "error": error_code,
            "message": message,
        }
    )


def result_response(result: dict, error_status: int = 400, error_code: Optional[str] = None):
    """
    Map a normalized service result ({"data"|"error", "is_error", optional "code"})
    onto success_response / error_response.
    """
    if result.get("is_error"):
        return error_response(
            error_code or result.get("code", "REQUEST_FAILED"),
            status=result.get("status", error_status),
            message=result.get("error", "Unknown error"),
            data=result.get("data"),
        )
    return success_response(result.get("data"))
