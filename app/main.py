"""FastAPI app for the funnel studio engine."""

from __future__ import annotations

import os
import sys
import json
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


_load_env_file(ROOT / "app" / ".env")

import time
import logging

from funnelcore.node_model import collect_bindings

from app.funnel_io import dumps_document, load_default_document
from funnel_store import FunnelStore
from mutation_history import DEFAULT_HISTORY_CAP


APP_ENV = os.getenv("APP_ENV", os.getenv("ENV", "dev")).strip().lower() or "dev"
IS_DEV = APP_ENV == "dev"
LOG_LEVEL = os.getenv("FUNNEL_LOG_LEVEL", "INFO").strip().upper() or "INFO"
_CORS_ORIGINS = {origin.strip() for origin in os.getenv("FUNNEL_CORS_ORIGINS", "").split(",") if origin.strip()}
REQ_SLOW_MS = float(os.getenv("FUNNEL_REQ_SLOW_MS", "250"))

app = FastAPI(title="Funnel Studio")
logger = logging.getLogger("funnel.api")
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))


def _history_cap(raw: str | None) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_HISTORY_CAP
    try:
        cap = int(raw)
    except ValueError:
        cap = 0
    if cap < 1:
        logger.warning("invalid_history_cap value=%r fallback=%s", raw, DEFAULT_HISTORY_CAP)
        return DEFAULT_HISTORY_CAP
    return cap


HISTORY_CAP = _history_cap(os.getenv("FUNNEL_HISTORY_CAP"))

store = FunnelStore(load_default_document(), history_cap=HISTORY_CAP)
logger.info("funnel_store_ready app_env=%s history_cap=%s graph_hash=%s", APP_ENV, HISTORY_CAP, store.head())

app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(_CORS_ORIGINS),
    allow_origin_regex=r"http://localhost:\d+|http://127\.0\.0\.1:\d+" if IS_DEV else None,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    total_ms = (time.perf_counter() - start) * 1000
    route = request.scope.get("route")
    route_name = getattr(route, "name", None) or "unknown"
    logger.info("%s %s %s route=%s total_ms=%.1f", request.method, request.url.path, response.status_code, route_name, total_ms)
    if total_ms >= REQ_SLOW_MS:
        logger.warning(
            "slow_request method=%s path=%s route=%s total_ms=%.1f status=%s",
            request.method,
            request.url.path,
            route_name,
            total_ms,
            response.status_code,
        )
    if IS_DEV:
        response.headers["X-Req-MS"] = f"{total_ms:.1f}"
        response.headers["X-Graph-Hash"] = store.head()
    return response


_STATUS_BY_SUFFIX = (
    ("_UNKNOWN", 404),
    ("_EXISTS", 409),
    ("_IN_USE", 409),
    ("_RESERVED", 409),
    ("_LAST", 409),
)


@app.get("/health")
async def health() -> dict:
    return {"ok": True}


def _error_response(code: str, message: str, path: str | None = None, detail: dict | None = None, status: int = 400) -> JSONResponse:
    body = {
        "ok": False,
        "errors": [{"code": code, "message": message, "path": path, "detail": detail}],
        "warnings": [],
    }
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _ok_response(payload: dict, warnings: list | None = None, status: int = 200) -> JSONResponse:
    body = {"ok": True, **payload, "errors": [], "warnings": warnings or []}
    return JSONResponse(jsonable_encoder(body), status_code=status)


def _error_status(errors: list) -> int:
    code = errors[0].get("code") if errors and isinstance(errors[0], dict) else ""
    for suffix, status in _STATUS_BY_SUFFIX:
        if isinstance(code, str) and code.endswith(suffix):
            return status
    return 400


def _store_response(result: dict, status: int = 200) -> JSONResponse:
    if result.get("ok"):
        payload = {key: value for key, value in result.items() if key not in {"ok", "errors", "warnings"}}
        return _ok_response(payload, result.get("warnings"), status=status)
    return JSONResponse(jsonable_encoder(result), status_code=_error_status(result.get("errors") or []))


async def _read_json(request: Request) -> tuple[object, JSONResponse | None]:
    raw = await request.body()
    if not raw.strip():
        return None, None
    try:
        return json.loads(raw), None
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        return None, _error_response("REQUEST_JSON_INVALID", f"Invalid JSON body: {exc}", "body")


def _attachment(text: str, filename: str) -> Response:
    return Response(
        content=text,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# --- graph ---


@app.get("/funnel")
async def get_funnel() -> JSONResponse:
    return _ok_response({"graph": store.get_graph(), "graph_hash": store.head(), "history": store.history_depth()})


@app.get("/funnel/validate")
async def validate_funnel() -> JSONResponse:
    result = store.validate()
    return _ok_response({"valid": result["ok"], "issues": result["issues"], "graph_hash": result["graph_hash"]})


@app.post("/funnel/import")
async def import_funnel(request: Request) -> JSONResponse:
    raw = await request.body()
    result = store.load_document(raw)
    return _store_response(result)


@app.get("/funnel/export")
async def export_funnel(force: bool = False) -> Response:
    result = store.export_document()
    if not result["ok"] and not force:
        logger.info("funnel_export_blocked errors=%s", len(result["errors"]))
        return JSONResponse(jsonable_encoder(result), status_code=409)
    return _attachment(dumps_document(result["document"]), result["filename"])


# --- pages ---


@app.post("/pages")
async def add_page(request: Request) -> JSONResponse:
    body, error = await _read_json(request)
    if error is not None:
        return error
    if not isinstance(body, dict):
        return _error_response("REQUEST_INVALID", "body must be object", "body")
    result = store.add_page(body.get("page_id"), body.get("page"), body.get("index"))
    return _store_response(result, status=201)


@app.post("/pages/order")
async def reorder_pages(request: Request) -> JSONResponse:
    body, error = await _read_json(request)
    if error is not None:
        return error
    order = body.get("order") if isinstance(body, dict) else body
    return _store_response(store.reorder_pages(order))


@app.put("/pages/{page_id}")
async def set_page(page_id: str, request: Request) -> JSONResponse:
    body, error = await _read_json(request)
    if error is not None:
        return error
    return _store_response(store.set_page(page_id, body))


@app.post("/pages/{page_id}/duplicate")
async def duplicate_page(page_id: str) -> JSONResponse:
    return _store_response(store.duplicate_page(page_id), status=201)


@app.delete("/pages/{page_id}")
async def delete_page(page_id: str) -> JSONResponse:
    return _store_response(store.delete_page(page_id))


@app.get("/pages/{page_id}/render")
async def render_page(page_id: str) -> Response:
    result = store.render(page_id)
    if not result["ok"]:
        return _store_response(result)
    return HTMLResponse(result["html"])


@app.get("/pages/{page_id}/export")
async def export_page(page_id: str) -> Response:
    result = store.export_page(page_id)
    if not result["ok"]:
        return _store_response(result)
    return _attachment(dumps_document(result["document"]), result["filename"])


# --- templates ---


@app.put("/templates")
async def set_templates(request: Request) -> JSONResponse:
    body, error = await _read_json(request)
    if error is not None:
        return error
    return _store_response(store.set_templates(body))


@app.delete("/templates/{name}")
async def delete_template(name: str) -> JSONResponse:
    return _store_response(store.delete_template(name))


@app.get("/templates/{name}/bindings")
async def template_bindings(name: str) -> JSONResponse:
    graph = store.get_graph()
    template = graph.get("templates", {}).get(name)
    if template is None:
        return _error_response("FUNNEL_TEMPLATE_UNKNOWN", f'Template "{name}" not found', "name", status=404)
    return _ok_response({"name": name, "bindings": collect_bindings(template)})


@app.post("/templates/{name}/preview")
async def preview_template(name: str, request: Request) -> Response:
    body, error = await _read_json(request)
    if error is not None:
        return error
    data = body.get("template_data") if isinstance(body, dict) else None
    result = store.render_template(name, data)
    if not result["ok"]:
        return _store_response(result)
    return HTMLResponse(result["html"])


# --- routing, theme, layout ---


@app.patch("/event_routing")
async def patch_event_routing(request: Request) -> JSONResponse:
    body, error = await _read_json(request)
    if error is not None:
        return error
    return _store_response(store.set_event_routing(body))


@app.patch("/broadcast_targets")
async def patch_broadcast_targets(request: Request) -> JSONResponse:
    body, error = await _read_json(request)
    if error is not None:
        return error
    return _store_response(store.set_broadcast_targets(body))


@app.put("/theme")
async def set_theme(request: Request) -> JSONResponse:
    body, error = await _read_json(request)
    if error is not None:
        return error
    return _store_response(store.set_theme(body))


@app.get("/theme/export")
async def export_theme() -> Response:
    result = store.export_theme()
    return _attachment(dumps_document(result["document"]), result["filename"])


@app.put("/layout")
async def set_layout(request: Request) -> JSONResponse:
    body, error = await _read_json(request)
    if error is not None:
        return error
    return _store_response(store.set_layout(body))


@app.put("/split_test")
async def set_split_test(request: Request) -> JSONResponse:
    body, error = await _read_json(request)
    if error is not None:
        return error
    return _store_response(store.set_split_test(body))


# --- history and flow ---


@app.post("/history/undo")
async def undo() -> JSONResponse:
    return _store_response(store.undo())


@app.post("/history/redo")
async def redo() -> JSONResponse:
    return _store_response(store.redo())


@app.get("/history")
async def list_history() -> JSONResponse:
    return _ok_response({"history": store.list_history(), "depth": store.history_depth()})


@app.get("/flow")
async def flow() -> JSONResponse:
    return _store_response(store.flow())


@app.post("/events/{name}/next")
async def next_path(name: str, request: Request) -> JSONResponse:
    body, error = await _read_json(request)
    if error is not None:
        return error
    answers = body.get("answers") if isinstance(body, dict) else None
    return _store_response(store.next_path(name, answers))
