"""Producer and consumer pipelines."""

from workflow_bridge.pipeline.consume import ConsumeResult, run_consume
from workflow_bridge.pipeline.emit import EmitResult, build_event_meta, run_emit

__all__ = ["ConsumeResult", "EmitResult", "build_event_meta", "run_consume", "run_emit"]
