"""
FastAPI web server for Tekton Viewer.

Exposes the runtime graph of a PipelineRun document plus per-node details
(parameters, artifacts, volume mounts) as a JSON API.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict
from pathlib import Path

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .artifacts import (
    get_node_input_output_artifacts,
    load_all_output_paths_with_step_names,
    parse_storage_path,
)
from .document import PipelineRun, load_execution_states, load_pipeline_run
from .graph import build_runtime_graph, graph_to_dict
from .nodes import (
    get_node_input_output_params,
    get_node_volume_mounts,
    get_parameters,
    get_workflow_error,
)

logger = logging.getLogger("tekton_viewer.server")

app = FastAPI(title="Tekton Viewer", version="0.1.0")

# The document paths are set at startup via environment variables
_run_file: str = os.environ.get("TEKTON_VIEWER_RUN_FILE", str(Path.cwd() / "pipelinerun.yaml"))
_executions_file: str | None = os.environ.get("TEKTON_VIEWER_EXECUTIONS_FILE")

# File watching state
_last_run_file_time = 0.0


def configure(run_file: str | Path, executions_file: str | Path | None = None) -> None:
    """Point the server at a different PipelineRun document."""
    global _run_file, _executions_file, _last_run_file_time
    _run_file = str(run_file)
    _executions_file = str(executions_file) if executions_file else None
    _last_run_file_time = 0.0


def _load_run() -> PipelineRun:
    """Parse the document and build the graph so params carry resolved values."""
    run = load_pipeline_run(_run_file)
    build_runtime_graph(run)
    return run


def _error_response(e: Exception) -> JSONResponse:
    if isinstance(e, FileNotFoundError):
        return JSONResponse(content={"error": str(e)}, status_code=404)
    if isinstance(e, ValueError):
        return JSONResponse(content={"error": str(e)}, status_code=400)
    logger.exception("Request failed")
    return JSONResponse(content={"error": str(e)}, status_code=500)


@app.get("/api/graph", response_class=JSONResponse)
async def get_graph():
    """Return the runtime graph of the PipelineRun as JSON."""
    try:
        run = load_pipeline_run(_run_file)
        graph = build_runtime_graph(run, load_execution_states(_executions_file))
        data = graph_to_dict(graph)
        data["name"] = run.name
        data["error"] = get_workflow_error(run)
        return JSONResponse(content=data)
    except Exception as e:
        return _error_response(e)


@app.get("/api/parameters", response_class=JSONResponse)
async def parameters():
    """Return the pipeline-level parameters."""
    try:
        run = load_pipeline_run(_run_file)
        return JSONResponse(content={"params": [[p.name, p.value] for p in get_parameters(run)]})
    except Exception as e:
        return _error_response(e)


@app.get("/api/node/{node_id}/params", response_class=JSONResponse)
async def node_params(node_id: str):
    """Return a node's input and output parameters."""
    try:
        inputs, outputs = get_node_input_output_params(_load_run(), node_id)
        return JSONResponse(content={
            "inputParams": [list(p) for p in inputs],
            "outputParams": [list(p) for p in outputs],
        })
    except Exception as e:
        return _error_response(e)


@app.get("/api/node/{node_id}/artifacts", response_class=JSONResponse)
async def node_artifacts(
    node_id: str,
    cached_run: str | None = Query(None, description="Cached PipelineRun name"),
):
    """Return a node's input and output artifact locations."""
    try:
        inputs, outputs = get_node_input_output_artifacts(_load_run(), node_id, cached_run)
        return JSONResponse(content={
            "inputArtifacts": [[name, asdict(a)] for name, a in inputs],
            "outputArtifacts": [[name, asdict(a)] for name, a in outputs],
        })
    except Exception as e:
        return _error_response(e)


@app.get("/api/node/{node_id}/volumes", response_class=JSONResponse)
async def node_volumes(node_id: str):
    """Return a node's volume mounts as (mountPath, name) pairs."""
    try:
        mounts = get_node_volume_mounts(load_pipeline_run(_run_file), node_id)
        return JSONResponse(content={"volumeMounts": [list(m) for m in mounts]})
    except Exception as e:
        return _error_response(e)


@app.get("/api/output-paths", response_class=JSONResponse)
async def output_paths():
    """Return every announced UI metadata output location."""
    try:
        paths = load_all_output_paths_with_step_names(load_pipeline_run(_run_file))
        return JSONResponse(content={
            "outputPaths": [
                {"stepName": step, "path": {"source": p.source.value, "bucket": p.bucket, "key": p.key}}
                for step, p in paths
            ]
        })
    except Exception as e:
        return _error_response(e)


@app.get("/api/storage-path", response_class=JSONResponse)
async def storage_path(path: str = Query(..., description="Storage URI")):
    """Parse a storage URI into source, bucket and key."""
    try:
        p = parse_storage_path(path)
        return JSONResponse(content={"source": p.source.value, "bucket": p.bucket, "key": p.key})
    except Exception as e:
        return _error_response(e)


@app.get("/api/watch")
async def watch_updates(request: Request):
    """Stream 'reload' events whenever the PipelineRun document changes."""
    import asyncio

    async def event_generator():
        global _last_run_file_time

        run_path = Path(_run_file)
        if _last_run_file_time == 0 and run_path.exists():
            _last_run_file_time = run_path.stat().st_mtime

        while True:
            if await request.is_disconnected():
                break

            await asyncio.sleep(1.5)

            if run_path.exists():
                mtime = run_path.stat().st_mtime
                if mtime > _last_run_file_time:
                    _last_run_file_time = mtime
                    yield f"event: reload\ndata: {json.dumps({'time': mtime})}\n\n"

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
