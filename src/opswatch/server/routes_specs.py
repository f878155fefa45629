"""Spec routes: files in the watched directory and the transition ledger."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from opswatch.controller.transitions import SPEC_EXTENSION, base_name, classify


async def list_specs(request: Request) -> JSONResponse:
    ops_dir = request.app.state.config.ops_dir
    specs: list[dict[str, str]] = []
    if ops_dir.is_dir():
        for path in sorted(ops_dir.iterdir()):
            if not path.is_file() or not path.name.endswith(SPEC_EXTENSION):
                continue
            specs.append(
                {
                    "file": path.name,
                    "spec": base_name(path.name),
                    "state": classify(path.name).value,
                }
            )
    state = request.query_params.get("state")
    if state:
        specs = [s for s in specs if s["state"] == state.upper()]
    return JSONResponse({"specs": specs, "count": len(specs)})


async def spec_history(request: Request) -> JSONResponse:
    db = request.app.state.db
    spec = request.query_params.get("spec")
    try:
        limit = int(request.query_params.get("limit", "50"))
    except ValueError:
        return JSONResponse({"error": "limit must be an integer"}, status_code=400)
    transitions = db.list_transitions(spec_name=spec, limit=limit)
    return JSONResponse(
        {"transitions": [t.model_dump(mode="json") for t in transitions], "count": len(transitions)}
    )


routes = [
    Route("/api/specs", list_specs),
    Route("/api/specs/history", spec_history),
]
