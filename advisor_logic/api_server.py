"""HTTP API exposing the advisor data tools to the orchestration service."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Optional

from fastapi import Body, FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .advisor_tools import AdvisorTools, list_tools


class ApiError(RuntimeError):
    def __init__(self, *, status_code: int, error_code: str, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details


logger = logging.getLogger(__name__)
app = FastAPI(title="Advisor Data Tools API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_tools() -> AdvisorTools:
    return AdvisorTools.from_env()


@app.exception_handler(ApiError)
async def api_error_handler(_, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "errorCode": exc.error_code,
            "error": exc.message,
            "details": exc.details,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "errorCode": "VALIDATION_ERROR",
            "error": "Request body must be a JSON object of tool arguments.",
            "details": {"errors": jsonable_encoder(exc.errors())},
        },
    )


@app.get("/api/v1/tools")
def get_tool_catalog() -> dict:
    return {"success": True, "tools": list_tools()}


@app.post("/api/v1/tools/{tool_name}")
def post_run_tool(tool_name: str, arguments: Optional[dict[str, Any]] = Body(default=None)) -> dict:
    result = get_tools().run_tool(tool_name, arguments or {})
    if result.get("errorCode") == "UNKNOWN_TOOL":
        raise ApiError(
            status_code=404,
            error_code="UNKNOWN_TOOL",
            message=result["error"],
            details={"available": result.get("available", [])},
        )

    logger.info("tool_call tool=%s success=%s source=%s", tool_name, result["success"], result.get("source"))
    return result
