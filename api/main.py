from __future__ import annotations

import logging
import math
import os
from typing import Literal

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import ExportScopeModel, GroupsRequest, MetaListResponse, MetaSlotsResponse, TrendFiltersModel
from trendboard.data import category_options, slot_options
from trendboard.dates import current_and_previous_week
from trendboard.export import export_filename, export_rows, export_scope_options, export_workbook, select_export_trends
from trendboard.filters import TrendFilters, normalize_export_scope, normalize_filters
from trendboard.metrics_groups import compute_groups
from trendboard.metrics_overview import compute_overview
from trendboard.metrics_sources import compute_sources
from trendboard.store import dashboard_context, load_dashboard_data

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(title="Trend Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _filters_from_model(model: TrendFiltersModel) -> TrendFilters:
    return normalize_filters(model.model_dump())


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                type(pd.NaT): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/categories", response_model=MetaListResponse)
def meta_categories():
    try:
        data_ctx = load_dashboard_data()
        return _json({"values": category_options(data_ctx["trends"])})
    except Exception as exc:
        logger.exception("meta_categories failed")
        return _error(exc)


@app.get("/meta/slots", response_model=MetaSlotsResponse)
def meta_slots(group_by: Literal["week", "day", "month"] = Query(default="week")):
    try:
        data_ctx = load_dashboard_data()
        return _json({"group_by": group_by, "slots": slot_options(data_ctx["trends"], group_by)})
    except Exception as exc:
        logger.exception("meta_slots failed")
        return _error(exc)


@app.get("/meta/weeks")
def meta_weeks():
    current_week, previous_week = current_and_previous_week()
    return _json({"current_week": current_week, "previous_week": previous_week})


@app.get("/meta/export-scopes")
def meta_export_scopes():
    try:
        data_ctx = load_dashboard_data()
        return _json(export_scope_options(data_ctx["trends"]))
    except Exception as exc:
        logger.exception("meta_export_scopes failed")
        return _error(exc)


@app.post("/overview")
def overview(filters: TrendFiltersModel):
    try:
        f = _filters_from_model(filters)
        ctx = dashboard_context(f)
        return _json(compute_overview(f, ctx))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.post("/groups")
def groups(request: GroupsRequest):
    try:
        f = _filters_from_model(request.filters)
        ctx = dashboard_context(f)
        return _json(compute_groups(f, ctx, expanded=request.expanded))
    except Exception as exc:
        logger.exception("groups failed")
        return _error(exc)


@app.post("/sources")
def sources(filters: TrendFiltersModel):
    try:
        f = _filters_from_model(filters)
        ctx = dashboard_context(f)
        return _json(compute_sources(f, ctx))
    except Exception as exc:
        logger.exception("sources failed")
        return _error(exc)


@app.post("/refresh")
def refresh():
    try:
        data_ctx = load_dashboard_data(force=True)
        return _json({"version": data_ctx["version"], "count": int(len(data_ctx["trends"])), "error": data_ctx["error"]})
    except Exception as exc:
        logger.exception("refresh failed")
        return _error(exc)


@app.post("/export")
def export(scope: ExportScopeModel):
    try:
        export_scope = normalize_export_scope(scope.model_dump())
        data_ctx = load_dashboard_data()
        selected = select_export_trends(data_ctx["trends"], export_scope)
        content = export_workbook(export_rows(selected))
        filename = export_filename(export_scope)
        logger.info("exporting %d trends as %s", len(selected), filename)
        return Response(
            content=content,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    except Exception as exc:
        logger.exception("export failed")
        return _error(exc)
