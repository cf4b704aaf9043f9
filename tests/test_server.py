"""Tests for the HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from tekton_viewer import server


def _document():
    return {
        "metadata": {
            "name": "run",
            "annotations": {
                "tekton.dev/input_artifacts": json.dumps({"b": [{"name": "a-out", "parent_task": "a"}]}),
                "tekton.dev/artifact_bucket": "mlpipeline",
                "tekton.dev/artifact_endpoint": "minio-service:9000",
            },
        },
        "spec": {
            "params": [{"name": "greeting", "value": "hi"}],
            "pipelineSpec": {
                "tasks": [
                    {"name": "a"},
                    {"name": "b", "params": [{"name": "x", "value": "$(tasks.a.results.out)"}]},
                ]
            },
        },
        "status": {
            "taskRuns": {
                "tr-a": {
                    "pipelineTaskName": "a",
                    "status": {
                        "podName": "a-pod",
                        "conditions": [{"type": "Succeeded", "status": "True", "reason": "Succeeded"}],
                        "taskResults": [{"name": "out", "value": "42"}],
                    },
                },
                "tr-b": {
                    "pipelineTaskName": "b",
                    "status": {
                        "podName": "b-pod",
                        "conditions": [{"type": "Succeeded", "status": "Unknown", "reason": "Running"}],
                        "taskSpec": {
                            "params": [{"name": "x", "value": "$(tasks.a.results.out)"}],
                            "steps": [{"name": "main", "volumeMounts": [{"name": "data", "mountPath": "/data"}]}],
                        },
                    },
                },
            }
        },
    }


@pytest.fixture
def client(tmp_path):
    run_file = tmp_path / "pipelinerun.json"
    run_file.write_text(json.dumps(_document()))
    server.configure(run_file)
    return TestClient(server.app)


def test_graph_endpoint(client):
    response = client.get("/api/graph")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "run"
    assert [n["id"] for n in data["nodes"]] == ["a-pod", "b-pod"]
    assert data["edges"] == [{"source": "a-pod", "target": "b-pod"}]


def test_parameters_endpoint(client):
    assert client.get("/api/parameters").json() == {"params": [["greeting", "hi"]]}


def test_node_params_endpoint(client):
    data = client.get("/api/node/b-pod/params").json()
    assert data["inputParams"] == [["x", "42"]]


def test_node_artifacts_endpoint(client):
    data = client.get("/api/node/b-pod/artifacts", params={"cached_run": "old-run"}).json()
    name, artifact = data["inputArtifacts"][0]
    assert name == "a-out"
    assert artifact["key"] == "artifacts/run/a/out.tgz"
    assert data["outputArtifacts"] == []


def test_node_volumes_endpoint(client):
    assert client.get("/api/node/b-pod/volumes").json() == {"volumeMounts": [["/data", "data"]]}


def test_storage_path_endpoint(client):
    response = client.get("/api/storage-path", params={"path": "gs://bucket/a/b"})
    assert response.json() == {"source": "gcs", "bucket": "bucket", "key": "a/b"}

    response = client.get("/api/storage-path", params={"path": "ftp://x"})
    assert response.status_code == 400
    assert "Unsupported storage path" in response.json()["error"]


def test_missing_document(tmp_path):
    server.configure(tmp_path / "missing.yaml")
    response = TestClient(server.app).get("/api/graph")
    assert response.status_code == 404


def test_output_paths_endpoint(client):
    assert client.get("/api/output-paths").json() == {"outputPaths": []}
