"""Runtime dependency graphs for Tekton PipelineRuns."""

__version__ = "0.1.0"
