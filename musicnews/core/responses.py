from typing import Any


def success_response(data: Any, meta: dict | None = None) -> dict:
    return {
        "data": data,
        "error": None,
        "meta": meta or {},
    }


def error_response(code: str, message: str, trace_id: str, status: int = 400, details: dict | None = None) -> tuple[dict, int]:
    return (
        {
            "data": None,
            "error": {
                "code": code,
                "message": message,
                "trace_id": trace_id,
                "details": details or {},
            },
            "meta": {},
        },
        status,
    )


def partial_response(
    data: Any, code: str, message: str | None, trace_id: str, details: dict | None = None, meta: dict | None = None
) -> tuple[dict, int]:
    """Envelope carrying data together with an optional error; 500 whenever an error is present."""
    if not message:
        return success_response(data, meta), 200
    return (
        {
            "data": data,
            "error": {
                "code": code,
                "message": message,
                "trace_id": trace_id,
                "details": details or {},
            },
            "meta": meta or {},
        },
        500,
    )
