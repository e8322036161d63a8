# Overview: Flask API routes for loading and saving the working set.

# backend/bazpos/routes/data.py
"""
Working set routes.

GET  /api/data               -> everything a session starts with
POST /api/sync               -> save a whole working set back
POST /api/sync/<collection>  -> save one collection back ({"records": [...]})
"""

from flask import Blueprint, current_app, request

from ..results import SERVICE_ERRORS, internal_error, ok, service_error
from ..services import sync_service


data_bp = Blueprint("data", __name__, url_prefix="/api")


@data_bp.get("/data")
def load_data_route():
    try:
        working_set = sync_service.load_working_set()
        return ok({"data": working_set.to_dict()})
    except Exception:
        current_app.logger.exception("Failed to load working set")
        return internal_error()


@data_bp.post("/sync")
def sync_working_set_route():
    payload = request.get_json(silent=True) or {}
    try:
        working_set = sync_service.WorkingSet.from_payload(payload)
        results = sync_service.sync_working_set(working_set)
        return ok({"results": {name: r.to_dict() for name, r in results.items()}})
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to sync working set")
        return internal_error()


@data_bp.post("/sync/<collection>")
def sync_collection_route(collection: str):
    payload = request.get_json(silent=True) or {}
    try:
        result = sync_service.sync_collection(collection, payload.get("records"))
        return ok({"result": result.to_dict()})
    except SERVICE_ERRORS as e:
        return service_error(e)
    except Exception:
        current_app.logger.exception("Failed to sync collection %s", collection)
        return internal_error()
