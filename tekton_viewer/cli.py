"""
CLI entry point for tekton-viewer.

Locates the PipelineRun document and either prints its runtime graph or
starts the web server.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import webbrowser
from pathlib import Path


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="tekton-viewer",
        description="🔍 Runtime graph visualization for Tekton PipelineRuns",
    )
    parser.add_argument(
        "--run",
        default="pipelinerun.yaml",
        help="PipelineRun document, YAML or JSON (default: pipelinerun.yaml)",
    )
    parser.add_argument(
        "--executions",
        default=None,
        help="Optional YAML/JSON map of pod name to execution state",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8687,
        help="Port to serve the web interface on (default: 8687)",
    )
    parser.add_argument(
        "--no-open",
        action="store_true",
        help="Don't auto-open the browser",
    )
    subparsers = parser.add_subparsers(dest="command", help="Subcommands")
    subparsers.add_parser("graph", help="Print the runtime graph as JSON and exit")

    args = parser.parse_args()

    run_file = Path(args.run).resolve()
    if not run_file.exists():
        print(f"❌ No PipelineRun document found at {run_file}", file=sys.stderr)
        print("   Export one with: kubectl get pipelinerun <name> -o yaml", file=sys.stderr)
        sys.exit(1)

    if args.command == "graph":
        from .document import load_execution_states, load_pipeline_run
        from .graph import build_runtime_graph, graph_to_dict

        run = load_pipeline_run(run_file)
        graph = build_runtime_graph(run, load_execution_states(args.executions))
        print(json.dumps(graph_to_dict(graph), indent=2))
        sys.exit(0)

    # Set document paths for the server to pick up
    os.environ["TEKTON_VIEWER_RUN_FILE"] = str(run_file)
    if args.executions:
        os.environ["TEKTON_VIEWER_EXECUTIONS_FILE"] = str(Path(args.executions).resolve())

    print(f"🔍 Tekton Viewer — reading PipelineRun from {run_file}")
    print(f"🌐 Starting server at http://localhost:{args.port}")
    print("   Press Ctrl+C to stop.\n")

    if not args.no_open:
        # Open browser after a short delay (server needs to boot)
        import threading

        def _open_browser():
            import time
            time.sleep(1.0)
            webbrowser.open(f"http://localhost:{args.port}/api/graph")

        threading.Thread(target=_open_browser, daemon=True).start()

    import uvicorn
    uvicorn.run(
        "tekton_viewer.server:app",
        host="0.0.0.0",
        port=args.port,
        log_level="warning",
    )


if __name__ == "__main__":
    main()
