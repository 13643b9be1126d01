"""Runner adapters: inputs/outputs, run context, credentials and artifact transport."""

from workflow_bridge.platform.artifacts import (
    ArtifactSource,
    ArtifactUploader,
    DirectoryArtifactStore,
    GitHubArtifactClient,
    UploadResult,
    build_archive,
    extract_archive,
)
from workflow_bridge.platform.runtime import (
    ActionsRuntime,
    RunContext,
    compact_json,
    load_event_payload,
    resolve_first,
)
from workflow_bridge.platform.token import TOKEN_SOURCE_ORDER, resolve_auth_token

__all__ = [
    "TOKEN_SOURCE_ORDER",
    "ActionsRuntime",
    "ArtifactSource",
    "ArtifactUploader",
    "DirectoryArtifactStore",
    "GitHubArtifactClient",
    "RunContext",
    "UploadResult",
    "build_archive",
    "compact_json",
    "extract_archive",
    "load_event_payload",
    "resolve_auth_token",
    "resolve_first",
]
