from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from hypercorn.asyncio import serve
from hypercorn.config import Config
from pydantic import BaseModel, Field

from ...api import ApiFunction, call_api, get_api_functions
from ...bootstrap import configure_logging
from ...config import get_settings

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Facility Calendar Local API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ApiCallRequest(BaseModel):
    arguments: Dict[str, Any] = Field(default_factory=dict)


def _describe(api_function: ApiFunction) -> dict:
    return {
        "name": api_function.name,
        "description": api_function.description,
        "category": api_function.category,
        "tags": list(api_function.tags),
        "parameters": api_function.parameter_schema,
    }


@app.get("/api/health")
async def health() -> JSONResponse:
    settings = get_settings()
    return JSONResponse(
        {
            "status": "ok",
            "timeZone": settings.facility.timezone,
            "calendarServer": settings.api.base_url,
            "slotMinutes": settings.grid.slot_minutes,
        }
    )


@app.get("/api/functions")
async def list_api_functions(category: Optional[str] = None) -> JSONResponse:
    functions = [
        _describe(func) for func in get_api_functions() if category is None or func.category == category
    ]
    return JSONResponse({"functions": functions})


@app.post("/api/functions/{function_name}")
async def invoke_api_function(function_name: str, request: ApiCallRequest) -> JSONResponse:
    try:
        result = call_api(function_name, **request.arguments)
    except KeyError as exc:
        logger.warning("Unknown scheduling function requested: %s", function_name)
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (TypeError, ValueError) as exc:
        logger.warning("Scheduling function %s rejected its arguments: %s", function_name, exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.debug("Scheduling function %s answered", function_name)
    return JSONResponse({"name": function_name, "result": result})


def run_local_server(host: str = "127.0.0.1", port: int = 8000) -> None:
    config = Config()
    config.bind = [f"{host}:{port}"]
    config.accesslog = logging.getLogger("facility_calendar.access")
    logger.info("Serving scheduling functions on %s:%s (zone %s)", host, port, get_settings().facility.timezone)
    asyncio.run(serve(app, config))
