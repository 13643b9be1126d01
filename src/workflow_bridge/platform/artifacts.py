"""
workflow-bridge — artifact transport

File: src/workflow_bridge/platform/artifacts.py

Purpose
- Move a staged bundle between runs as a named zip artifact.
- Provide a local directory store (offline runs, tests) and an httpx client
  for the hosted artifact service.

Functional requirements
- Archives are deterministic: sorted members, fixed timestamps and modes.
- Extraction refuses any member whose normalized path is absolute or escapes
  the destination directory.
- Non-success HTTP statuses raise ``ArtifactTransportError`` carrying the
  status code; nothing is retried.
"""

from __future__ import annotations

import base64
import binascii
import io
import json
import os
import zipfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path, PurePosixPath
from typing import Any, Final, Protocol

import httpx

from workflow_bridge.errors import ArtifactTransportError
from workflow_bridge.utils.fs import atomic_write, is_lexically_within, write_json
from workflow_bridge.utils.hashing import labeled_digest

PathLike = str | os.PathLike[str]

_ZIP_FIXED_TIMESTAMP: Final[tuple[int, int, int, int, int, int]] = (1980, 1, 1, 0, 0, 0)
_INDEX_FILE_NAME: Final[str] = "index.json"
_ARTIFACT_SERVICE: Final[str] = "twirp/github.actions.results.api.v1.ArtifactService"
_RESULTS_SCOPE_PREFIX: Final[str] = "Actions.Results"
_ARTIFACT_VERSION: Final[int] = 4
_LIST_PAGE_SIZE: Final[int] = 100


@dataclass(frozen=True, slots=True)
class UploadResult:
    artifact_id: int
    size: int


class ArtifactUploader(Protocol):
    def upload(
        self,
        name: str,
        files: Sequence[Path],
        root_dir: Path,
        retention_days: int | None = None,
    ) -> UploadResult: ...


class ArtifactSource(Protocol):
    def download(self, repository: str, run_id: str, name: str) -> bytes | None:
        """Return the artifact's zip bytes, or ``None`` when the run has no such artifact."""
        ...


def build_archive(files: Sequence[PathLike], root_dir: PathLike) -> bytes:
    """Zip ``files`` with member names relative to ``root_dir``."""

    root = Path(root_dir)
    members: dict[str, Path] = {}
    for file_path in files:
        path = Path(file_path)
        member_name = path.relative_to(root).as_posix()
        members[member_name] = path

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
        for member_name in sorted(members):
            zip_info = zipfile.ZipInfo(filename=member_name)
            zip_info.date_time = _ZIP_FIXED_TIMESTAMP
            zip_info.compress_type = zipfile.ZIP_DEFLATED
            zip_info.external_attr = (0o100644 & 0xFFFF) << 16
            zip_info.create_system = 3
            archive.writestr(zip_info, members[member_name].read_bytes())
    return buffer.getvalue()


def extract_archive(data: bytes, destination: PathLike) -> list[Path]:
    """Unpack zip ``data`` into ``destination`` and return the written file paths."""

    target = Path(destination)
    target.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as exc:
        raise ArtifactTransportError(f"Artifact is not a valid zip archive: {exc}") from exc

    with archive:
        for info in archive.infolist():
            name = info.filename
            posix = PurePosixPath(name)
            if posix.is_absolute() or "\\" in name or not is_lexically_within(name):
                raise ArtifactTransportError(f"Refusing to extract unsafe archive member: {name}")
            output_path = target.joinpath(*posix.parts)
            if info.is_dir():
                output_path.mkdir(parents=True, exist_ok=True)
                continue
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(archive.read(info))
            written.append(output_path)
    return written


class DirectoryArtifactStore:
    """Artifact storage rooted in a local directory.

    Layout: ``<root>/<owner>__<repo>/<run_id>/<name>.zip`` with an
    ``index.json`` per run mapping artifact names to ids.
    """

    def __init__(
        self,
        root: PathLike,
        *,
        repository: str = "",
        run_id: str = "",
    ) -> None:
        self._root = Path(root)
        self._repository = repository
        self._run_id = run_id

    @property
    def root(self) -> Path:
        return self._root

    def run_dir(self, repository: str, run_id: str) -> Path:
        owner_repo = _store_component(repository.replace("/", "__"), "repository")
        return self._root / owner_repo / _store_component(str(run_id), "run id")

    def archive_path(self, repository: str, run_id: str, name: str) -> Path:
        return self.run_dir(repository, run_id) / f"{_store_component(name, 'artifact name')}.zip"

    def upload(
        self,
        name: str,
        files: Sequence[Path],
        root_dir: Path,
        retention_days: int | None = None,
    ) -> UploadResult:
        if not self._repository or not self._run_id:
            raise ArtifactTransportError(
                "Directory artifact store needs the producing repository and run id to upload"
            )
        archive_path = self.archive_path(self._repository, self._run_id, name)
        payload = build_archive(files, root_dir)
        run_dir = archive_path.parent
        run_dir.mkdir(parents=True, exist_ok=True)

        index = self._read_index(run_dir)
        entry = index.get(name)
        artifact_id = int(entry["id"]) if isinstance(entry, dict) else len(index) + 1
        atomic_write(archive_path, payload)
        index[name] = {
            "id": artifact_id,
            "size": len(payload),
            "retention_days": retention_days,
        }
        write_json(run_dir / _INDEX_FILE_NAME, index)
        return UploadResult(artifact_id=artifact_id, size=len(payload))

    def download(self, repository: str, run_id: str, name: str) -> bytes | None:
        archive_path = self.archive_path(repository, run_id, name)
        if not archive_path.is_file():
            return None
        return archive_path.read_bytes()

    @staticmethod
    def _read_index(run_dir: Path) -> dict[str, Any]:
        index_path = run_dir / _INDEX_FILE_NAME
        if not index_path.is_file():
            return {}
        loaded = json.loads(index_path.read_text(encoding="utf-8"))
        return loaded if isinstance(loaded, dict) else {}


class GitHubArtifactClient:
    """Artifact transport over the hosted REST API and results service."""

    def __init__(
        self,
        token: str = "",
        *,
        api_url: str = "https://api.github.com",
        timeout_seconds: float = 30.0,
        runtime_token: str = "",
        results_url: str = "",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout_seconds
        self._runtime_token = runtime_token
        self._results_url = results_url.rstrip("/")
        self._transport = transport

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str],
        *,
        token: str = "",
        api_url: str = "https://api.github.com",
        timeout_seconds: float = 30.0,
    ) -> GitHubArtifactClient:
        return cls(
            token,
            api_url=api_url,
            timeout_seconds=timeout_seconds,
            runtime_token=environ.get("ACTIONS_RUNTIME_TOKEN", ""),
            results_url=environ.get("ACTIONS_RESULTS_URL", ""),
        )

    def download(self, repository: str, run_id: str, name: str) -> bytes | None:
        owner, repo = _split_repository(repository)
        with self._api_client() as client:
            listing = _expect_json(
                client.get(
                    f"/repos/{owner}/{repo}/actions/runs/{run_id}/artifacts",
                    params={"per_page": _LIST_PAGE_SIZE},
                ),
                "list artifacts",
            )
            artifacts = listing.get("artifacts")
            if not isinstance(artifacts, list):
                raise ArtifactTransportError("list artifacts: response has no artifacts array")

            match = next(
                (item for item in artifacts if isinstance(item, dict) and item.get("name") == name),
                None,
            )
            if match is None:
                return None

            response = client.get(f"/repos/{owner}/{repo}/actions/artifacts/{match['id']}/zip")
            _raise_for_status(response, "download artifact")
            return response.content

    def upload(
        self,
        name: str,
        files: Sequence[Path],
        root_dir: Path,
        retention_days: int | None = None,
    ) -> UploadResult:
        if not self._runtime_token or not self._results_url:
            raise ArtifactTransportError(
                "Artifact upload requires ACTIONS_RUNTIME_TOKEN and ACTIONS_RESULTS_URL"
            )
        run_backend_id, job_backend_id = backend_ids_from_token(self._runtime_token)
        payload = build_archive(files, root_dir)
        backend = {
            "workflowRunBackendId": run_backend_id,
            "workflowJobRunBackendId": job_backend_id,
        }

        create_request: dict[str, object] = {**backend, "name": name, "version": _ARTIFACT_VERSION}
        if retention_days:
            expires_at = datetime.now(UTC) + timedelta(days=retention_days)
            create_request["expiresAt"] = expires_at.isoformat(timespec="seconds").replace(
                "+00:00", "Z"
            )

        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            created = self._twirp(client, "CreateArtifact", create_request)
            upload_url = created.get("signedUploadUrl")
            if not created.get("ok") or not isinstance(upload_url, str):
                raise ArtifactTransportError(f"CreateArtifact was rejected for artifact {name}")

            blob = client.put(
                upload_url,
                content=payload,
                headers={"x-ms-blob-type": "BlockBlob", "Content-Type": "application/zip"},
            )
            _raise_for_status(blob, "upload artifact blob")

            finalized = self._twirp(
                client,
                "FinalizeArtifact",
                {
                    **backend,
                    "name": name,
                    "size": str(len(payload)),
                    "hash": labeled_digest(payload),
                },
            )
        if not finalized.get("ok"):
            raise ArtifactTransportError(f"FinalizeArtifact was rejected for artifact {name}")
        try:
            artifact_id = int(str(finalized.get("artifactId")))
        except ValueError as exc:
            raise ArtifactTransportError("FinalizeArtifact returned no artifact id") from exc
        return UploadResult(artifact_id=artifact_id, size=len(payload))

    def _api_client(self) -> httpx.Client:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "workflow-bridge",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return httpx.Client(
            base_url=self._api_url,
            headers=headers,
            timeout=self._timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    def _twirp(self, client: httpx.Client, method: str, body: Mapping[str, object]) -> dict[str, Any]:
        response = client.post(
            f"{self._results_url}/{_ARTIFACT_SERVICE}/{method}",
            json=dict(body),
            headers={"Authorization": f"Bearer {self._runtime_token}"},
        )
        return _expect_json(response, method)


def backend_ids_from_token(runtime_token: str) -> tuple[str, str]:
    """Read ``(workflow run backend id, job backend id)`` from the runtime JWT ``scp`` claim."""

    segments = runtime_token.split(".")
    if len(segments) < 2:
        raise ArtifactTransportError("ACTIONS_RUNTIME_TOKEN is not a JWT")
    encoded = segments[1] + "=" * (-len(segments[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(encoded))
    except (binascii.Error, ValueError) as exc:
        raise ArtifactTransportError("ACTIONS_RUNTIME_TOKEN has an unreadable payload") from exc

    scopes = claims.get("scp") if isinstance(claims, dict) else None
    if not isinstance(scopes, str):
        raise ArtifactTransportError("ACTIONS_RUNTIME_TOKEN has no scp claim")
    for scope in scopes.split(" "):
        parts = scope.split(":")
        if parts[0] == _RESULTS_SCOPE_PREFIX and len(parts) == 3:
            return parts[1], parts[2]
    raise ArtifactTransportError("ACTIONS_RUNTIME_TOKEN carries no Actions.Results scope")


def _store_component(value: str, label: str) -> str:
    """``value`` as a single path component under the store root, else raise."""

    if (
        not value
        or value == "."
        or "/" in value
        or "\\" in value
        or os.path.isabs(value)
        or not is_lexically_within(value)
    ):
        raise ArtifactTransportError(f"Invalid {label} for directory artifact store: {value!r}")
    return value


def _split_repository(repository: str) -> tuple[str, str]:
    owner, _, repo = repository.partition("/")
    if not owner or not repo:
        raise ArtifactTransportError(f"Repository must be owner/name: {repository}")
    return owner, repo


def _raise_for_status(response: httpx.Response, action: str) -> None:
    if response.is_success:
        return
    raise ArtifactTransportError(
        f"{action} failed with HTTP {response.status_code}",
        status_code=response.status_code,
    )


def _expect_json(response: httpx.Response, action: str) -> dict[str, Any]:
    _raise_for_status(response, action)
    try:
        payload = response.json()
    except ValueError as exc:
        raise ArtifactTransportError(f"{action} returned invalid JSON") from exc
    if not isinstance(payload, dict):
        raise ArtifactTransportError(f"{action} returned a non-object response")
    return payload


__all__ = [
    "ArtifactSource",
    "ArtifactUploader",
    "DirectoryArtifactStore",
    "GitHubArtifactClient",
    "UploadResult",
    "backend_ids_from_token",
    "build_archive",
    "extract_archive",
]
