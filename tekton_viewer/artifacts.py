"""
Artifact storage locations.

Input/output artifacts of a task are announced as JSON in the PipelineRun
annotations; their object-store keys follow the
``artifacts/<run>/<task>/<name>.tgz`` convention, with the run name swapped
for a cached run when the producing task has caching enabled.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .document import PipelineRun, RunRecord
from .graph import get_status
from .status import NodePhase

logger = logging.getLogger("tekton_viewer.artifacts")

INPUT_ARTIFACTS_ANNOTATION = "tekton.dev/input_artifacts"
OUTPUT_ARTIFACTS_ANNOTATION = "tekton.dev/output_artifacts"
ARTIFACT_ENDPOINT_ANNOTATION = "tekton.dev/artifact_endpoint"
ARTIFACT_BUCKET_ANNOTATION = "tekton.dev/artifact_bucket"
ARTIFACT_SCHEME_ANNOTATION = "tekton.dev/artifact_endpoint_scheme"

CACHE_ENABLED_LABEL = "pipelines.kubeflow.org/cache_enabled"
PIPELINERUN_PLACEHOLDER = "$PIPELINERUN"
UI_METADATA_ARTIFACT = "mlpipeline-ui-metadata"
ARTIFACT_SECRET_NAME = "mlpipeline-minio-artifact"

_SUCCESS_STATUSES = {NodePhase.COMPLETED.value, NodePhase.SUCCEEDED.value}


class UnsupportedStoragePathError(ValueError):
    """Raised for a storage URI whose scheme is not recognized."""


class StorageService(str, Enum):
    GCS = "gcs"
    HTTP = "http"
    HTTPS = "https"
    MINIO = "minio"
    S3 = "s3"
    VOLUME = "volume"


@dataclass
class StoragePath:
    source: StorageService
    bucket: str
    key: str


@dataclass
class SecretKeySelector:
    name: str
    key: str
    optional: bool = False


@dataclass
class S3Artifact:
    """Location of one artifact in the run's object store."""

    endpoint: str
    bucket: str
    key: str
    insecure: bool = False
    access_key_secret: SecretKeySelector = field(
        default_factory=lambda: SecretKeySelector(ARTIFACT_SECRET_NAME, "accesskey")
    )
    secret_key_secret: SecretKeySelector = field(
        default_factory=lambda: SecretKeySelector(ARTIFACT_SECRET_NAME, "secretkey")
    )


ArtifactList = list[tuple[str, S3Artifact]]

# Storage URI prefixes, checked in order
_STORAGE_PREFIXES: list[tuple[str, StorageService]] = [
    ("gs://", StorageService.GCS),
    ("minio://", StorageService.MINIO),
    ("s3://", StorageService.S3),
    ("http://", StorageService.HTTP),
    ("https://", StorageService.HTTPS),
    ("volume://", StorageService.VOLUME),
]


def parse_storage_path(path: str) -> StoragePath:
    """Split a storage URI into service, bucket and key.

    ``gs://bucket/a/b`` → ``StoragePath(GCS, "bucket", "a/b")``. Raises
    :class:`UnsupportedStoragePathError` for any other scheme.
    """
    for prefix, service in _STORAGE_PREFIXES:
        if path.startswith(prefix):
            parts = path[len(prefix):].split("/")
            return StoragePath(source=service, bucket=parts[0], key="/".join(parts[1:]))
    raise UnsupportedStoragePathError(f"Unsupported storage path: {path}")


def _load_annotation_json(annotations: dict[str, str], key: str) -> dict[str, Any]:
    raw = annotations.get(key)
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Could not decode annotation {key}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def _annotated_artifacts(announced: dict[str, Any], task_name: str) -> list[Any]:
    """Artifact descriptors announced for *task_name*; other shapes yield none."""
    artifacts = announced.get(task_name)
    return artifacts if isinstance(artifacts, list) else []


def _is_cache_enabled(run: PipelineRun, task_name: str) -> bool:
    for task in run.tasks:
        if task.name == task_name:
            return task.labels.get(CACHE_ENABLED_LABEL, "false") == "true"
    return False


def _pipeline_run_id(run: PipelineRun, producer: str, cached_pipeline_run: str | None) -> str:
    """The run whose storage holds *producer*'s artifacts."""
    if cached_pipeline_run and _is_cache_enabled(run, producer):
        return cached_pipeline_run
    return run.name


def _find_node_record(run: PipelineRun, node_id: str) -> RunRecord | None:
    """Task run owning pod *node_id*, or custom run for task *node_id*."""
    found: RunRecord | None = None
    for task_run in run.task_runs.values():
        if task_run.status and task_run.status.pod_name == node_id:
            found = task_run
    for custom_run in run.runs.values():
        if custom_run.status and custom_run.pipeline_task_name == node_id:
            found = custom_run
    return found


def _artifact_template(run: PipelineRun, key: str) -> S3Artifact:
    annotations = run.annotations
    return S3Artifact(
        endpoint=annotations.get(ARTIFACT_ENDPOINT_ANNOTATION, ""),
        bucket=annotations.get(ARTIFACT_BUCKET_ANNOTATION, ""),
        insecure=annotations.get(ARTIFACT_SCHEME_ANNOTATION) == "http://",
        key=key,
    )


def get_node_input_output_artifacts(
    run: PipelineRun,
    node_id: str,
    cached_pipeline_run: str | None = None,
) -> tuple[ArtifactList, ArtifactList]:
    """Input and output artifact locations of the task drawn as *node_id*.

    Output artifacts only exist once the task completed successfully, and
    only for runs whose annotations carry artifact keys.
    """
    inputs: ArtifactList = []
    outputs: ArtifactList = []
    if not run.annotations or not (run.task_runs or run.runs):
        return inputs, outputs

    record = _find_node_record(run, node_id)
    if record is None:
        return inputs, outputs
    task_name = record.pipeline_task_name
    task_status = get_status(record)

    raw_inputs = _load_annotation_json(run.annotations, INPUT_ARTIFACTS_ANNOTATION)
    raw_outputs = _load_annotation_json(run.annotations, OUTPUT_ARTIFACTS_ANNOTATION)

    for artifact in _annotated_artifacts(raw_inputs, task_name):
        if not isinstance(artifact, dict):
            continue
        name = str(artifact.get("name", ""))
        parent_task = str(artifact.get("parent_task", ""))
        run_id = _pipeline_run_id(run, parent_task, cached_pipeline_run)
        short_name = name[len(parent_task) + 1:]
        inputs.append(
            (name, _artifact_template(run, f"artifacts/{run_id}/{parent_task}/{short_name}.tgz"))
        )

    task_outputs = _annotated_artifacts(raw_outputs, task_name)
    if (
        not task_outputs
        or not isinstance(task_outputs[0], dict)
        or not task_outputs[0].get("key")
        or task_status not in _SUCCESS_STATUSES
    ):
        return inputs, outputs

    for artifact in task_outputs:
        if not isinstance(artifact, dict) or not artifact.get("key"):
            continue
        key = str(artifact["key"])
        split = key.split("/")
        producer = split[2] if len(split) > 2 else ""
        run_id = _pipeline_run_id(run, producer, cached_pipeline_run)
        outputs.append(
            (str(artifact.get("name", "")), _artifact_template(run, key.replace(PIPELINERUN_PLACEHOLDER, run_id)))
        )

    return inputs, outputs


def load_node_output_paths(task_run: RunRecord, run: PipelineRun) -> list[StoragePath]:
    """UI metadata output locations announced for one task run."""
    output_paths: list[StoragePath] = []
    if not run.annotations or not run.name:
        return output_paths

    raw_outputs = _load_annotation_json(run.annotations, OUTPUT_ARTIFACTS_ANNOTATION)
    bucket = run.annotations.get(ARTIFACT_BUCKET_ANNOTATION, "")
    endpoint = run.annotations.get(ARTIFACT_ENDPOINT_ANNOTATION, "")
    source = StorageService.MINIO if "minio" in endpoint else StorageService.S3

    for artifact in _annotated_artifacts(raw_outputs, task_run.pipeline_task_name):
        if not isinstance(artifact, dict) or artifact.get("name") != UI_METADATA_ARTIFACT:
            continue
        # Runs created before keys were announced have none
        if artifact.get("key"):
            output_paths.append(
                StoragePath(
                    source=source,
                    bucket=bucket,
                    key=str(artifact["key"]).replace(PIPELINERUN_PLACEHOLDER, run.name),
                )
            )
    return output_paths


def load_all_output_paths_with_step_names(run: PipelineRun) -> list[tuple[str, StoragePath]]:
    """UI metadata output locations of every task run, with the step name."""
    result: list[tuple[str, StoragePath]] = []
    for task_run in run.task_runs.values():
        for path in load_node_output_paths(task_run, run):
            result.append((task_run.pipeline_task_name, path))
    return result


def load_all_output_paths(run: PipelineRun) -> list[StoragePath]:
    return [path for _, path in load_all_output_paths_with_step_names(run)]
