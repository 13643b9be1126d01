"""Command-line interface router for workflow-bridge."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections.abc import Mapping, MutableMapping, Sequence
from pathlib import Path

from workflow_bridge.config import (
    BridgeConfig,
    ConfigLoadError,
    dump_effective_config,
    load_config,
)
from workflow_bridge.contract import (
    ConsumerExpectations,
    apply_extract_mappings,
    parse_extract_mappings,
    parse_path_list,
    read_bundle,
    validate_expectations,
)
from workflow_bridge.observability import (
    LoggingConfig,
    add_mask,
    is_debug_enabled,
    setup_logging,
)
from workflow_bridge.pipeline import run_consume, run_emit
from workflow_bridge.platform import (
    ActionsRuntime,
    DirectoryArtifactStore,
    GitHubArtifactClient,
    RunContext,
    extract_archive,
    resolve_auth_token,
)
from workflow_bridge.utils.fs import temp_directory
from workflow_bridge.utils.hashing import sha256_file

ArtifactTransport = DirectoryArtifactStore | GitHubArtifactClient


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="workflow-bridge",
        description=(
            "workflow-bridge — pass outputs and files between workflow runs.\n\n"
            "Common workflows:\n"
            "  workflow-bridge emit --outputs '{\"k\":1}'    Publish a bundle artifact\n"
            "  workflow-bridge consume --run-id 123       Validate and expose a bundle\n"
            "  workflow-bridge inspect ./bundle           Validate a local bundle\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--workdir",
        default=".",
        help="Workspace directory for relative paths (default: current working directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to bridge TOML config (default: ./bridge.toml if present).",
    )
    common.add_argument(
        "--artifact-dir",
        default=None,
        help="Use a local directory as artifact storage instead of the hosted service.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Enable debug logging.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # emit ----------------------------------------------------------------
    emit_parser = subparsers.add_parser(
        "emit",
        parents=[common],
        help="Package outputs, metadata and files into a bundle artifact",
    )
    emit_parser.add_argument("--artifact", default=None, help="Artifact name (default: bridge)")
    emit_parser.add_argument("--outputs", default=None, help="Outputs as a JSON object")
    emit_parser.add_argument("--outputs-file", default=None, help="Path to a JSON outputs file")
    emit_parser.add_argument(
        "--file",
        dest="files",
        action="append",
        default=None,
        help="Relative file to include (repeatable)",
    )
    emit_parser.add_argument("--retention-days", type=int, default=None)
    emit_parser.add_argument("--sanitize", choices=("strict", "none"), default=None)
    emit_parser.add_argument("--meta", default=None, help="Extra metadata as a JSON object")
    emit_parser.add_argument(
        "--include-event", choices=("none", "minimal", "full"), default=None
    )
    emit_parser.add_argument(
        "--event-fields", default=None, help="Comma or newline separated event paths"
    )
    emit_parser.set_defaults(handler=_cmd_emit)

    # consume -------------------------------------------------------------
    consume_parser = subparsers.add_parser(
        "consume",
        parents=[common],
        help="Download, validate and expose a bundle artifact",
    )
    consume_parser.add_argument("--artifact", default=None, help="Artifact name (default: bridge)")
    consume_parser.add_argument("--run-id", default=None, help="Source workflow run id")
    consume_parser.add_argument(
        "--fail-on-missing",
        action=argparse.BooleanOptionalAction,
        default=None,
    )
    consume_parser.add_argument("--expose", choices=("outputs", "env", "both"), default=None)
    consume_parser.add_argument("--prefix", default=None)
    consume_parser.add_argument("--path", default=None, help="Restore destination")
    _add_expectation_arguments(consume_parser)
    consume_parser.add_argument("--extract", default=None, help="name=path lines")
    consume_parser.set_defaults(handler=_cmd_consume)

    # inspect -------------------------------------------------------------
    inspect_parser = subparsers.add_parser(
        "inspect",
        parents=[common],
        help="Validate a local bundle directory or zip and print its contents",
        description=(
            "Read and validate a bundle without downloading anything.\n\n"
            "Examples:\n"
            "  workflow-bridge inspect ./staging                 Bundle root with bridge/\n"
            "  workflow-bridge inspect bridge.zip --repository o/r --run-id 7\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    inspect_parser.add_argument("bundle", help="Bundle root directory or artifact zip")
    inspect_parser.add_argument("--repository", default=None)
    inspect_parser.add_argument("--run-id", default=None)
    inspect_parser.add_argument("--run-attempt", default=None)
    _add_expectation_arguments(inspect_parser)
    inspect_parser.add_argument("--extract", default=None, help="name=path lines")
    inspect_parser.set_defaults(handler=_cmd_inspect)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Print the effective configuration as JSON",
    )
    config_parser.add_argument("--section", choices=("emit", "consume"), default=None)
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def _add_expectation_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--source-workflow", default=None)
    parser.add_argument("--expected-head-sha", default=None)
    parser.add_argument("--expected-pr-number", default=None)
    parser.add_argument("--require-event", default=None, help="Allowed source event names")


def run_cli(
    argv: Sequence[str] | None = None,
    *,
    environ: MutableMapping[str, str] | None = None,
) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2
    env = os.environ if environ is None else environ
    return int(handler(namespace, env))


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_emit(args: argparse.Namespace, environ: MutableMapping[str, str]) -> int:
    overrides: dict[str, object] = {
        "emit.artifact": args.artifact,
        "emit.outputs": args.outputs,
        "emit.outputs_file": args.outputs_file,
        "emit.files": "\n".join(args.files) if args.files else None,
        "emit.retention_days": args.retention_days,
        "emit.sanitize": args.sanitize,
        "emit.meta": args.meta,
        "emit.include_event": args.include_event,
        "emit.event_fields": args.event_fields,
    }
    config = _load_effective_config(args, environ, section="emit", overrides=overrides)
    logger = _setup_logging(args, config, environ)

    context = RunContext.from_environ(environ)
    runtime = ActionsRuntime(environ)
    uploader = _artifact_transport(args, config, context, environ)
    run_emit(
        config["emit"],
        context=context,
        runtime=runtime,
        uploader=uploader,
        logger=logger,
        cwd=_workdir(args),
    )
    return 0


def _cmd_consume(args: argparse.Namespace, environ: MutableMapping[str, str]) -> int:
    overrides: dict[str, object] = {
        "consume.artifact": args.artifact,
        "consume.run_id": args.run_id,
        "consume.fail_on_missing": args.fail_on_missing,
        "consume.expose": args.expose,
        "consume.prefix": args.prefix,
        "consume.path": args.path,
        "consume.source_workflow": args.source_workflow,
        "consume.expected_head_sha": args.expected_head_sha,
        "consume.expected_pr_number": args.expected_pr_number,
        "consume.require_event": args.require_event,
        "consume.extract": args.extract,
    }
    config = _load_effective_config(args, environ, section="consume", overrides=overrides)
    logger = _setup_logging(args, config, environ)

    context = RunContext.from_environ(environ)
    runtime = ActionsRuntime(environ)
    source = _artifact_transport(args, config, context, environ, runtime=runtime, logger=logger)
    run_consume(
        config["consume"],
        context=context,
        runtime=runtime,
        source=source,
        logger=logger,
        cwd=_workdir(args),
    )
    return 0


def _cmd_inspect(args: argparse.Namespace, environ: MutableMapping[str, str]) -> int:
    config = _load_effective_config(args, environ)
    _setup_logging(args, config, environ)

    bundle_path = _workdir(args) / args.bundle
    archive_digest: str | None = None
    with temp_directory(prefix="bridge-inspect-") as scratch:
        if bundle_path.is_file():
            archive_digest = sha256_file(bundle_path)
            extract_archive(bundle_path.read_bytes(), scratch)
            bundle = read_bundle(scratch)
        else:
            bundle = read_bundle(bundle_path)

    payload: dict[str, object] = {
        "outputs": bundle.outputs,
        "meta": bundle.meta,
        "expectations": "skipped",
    }
    if archive_digest is not None:
        payload["archive_sha256"] = archive_digest

    if args.repository or args.run_id:
        if not (args.repository and args.run_id):
            raise ConfigLoadError("--repository and --run-id must be given together")
        validate_expectations(
            bundle.meta,
            ConsumerExpectations(
                repository=args.repository,
                run_id=args.run_id,
                run_attempt=args.run_attempt or None,
                source_workflow=args.source_workflow or None,
                expected_head_sha=args.expected_head_sha or None,
                expected_pr_number=args.expected_pr_number or None,
                require_events=tuple(parse_path_list(args.require_event or "")),
            ),
        )
        payload["expectations"] = "passed"

    if args.extract:
        mappings = parse_extract_mappings(args.extract)
        payload["extracted"] = dict(apply_extract_mappings(mappings, bundle.outputs, bundle.meta))

    _emit_json(payload)
    return 0


def _cmd_config(args: argparse.Namespace, environ: MutableMapping[str, str]) -> int:
    config = _load_effective_config(args, environ, section=args.section)
    print(dump_effective_config(config))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _workdir(args: argparse.Namespace) -> Path:
    return Path(args.workdir).resolve()


def _load_effective_config(
    args: argparse.Namespace,
    environ: Mapping[str, str],
    *,
    section: str | None = None,
    overrides: Mapping[str, object] | None = None,
) -> BridgeConfig:
    cli_overrides = dict(overrides or {})
    if args.artifact_dir:
        cli_overrides["artifacts.backend"] = "directory"
        cli_overrides["artifacts.directory"] = args.artifact_dir
    config_path = args.config_path
    if config_path is not None:
        config_path = _workdir(args) / config_path
    return load_config(
        config_path,
        section=section,  # type: ignore[arg-type]
        cli_overrides=cli_overrides,
        environ=environ,
    )


def _setup_logging(
    args: argparse.Namespace,
    config: BridgeConfig,
    environ: Mapping[str, str],
) -> logging.Logger:
    settings = config["logging"]
    json_log = settings["json_log_file"].strip()
    return setup_logging(
        LoggingConfig(
            level=settings["level"],
            debug=bool(args.verbose) or is_debug_enabled(environ),
            json_log_path=(_workdir(args) / json_log) if json_log else None,
            redact_secrets=settings["redact_secrets"],
        )
    )


def _artifact_transport(
    args: argparse.Namespace,
    config: BridgeConfig,
    context: RunContext,
    environ: Mapping[str, str],
    *,
    runtime: ActionsRuntime | None = None,
    logger: logging.Logger | None = None,
) -> ArtifactTransport:
    """Directory store or hosted client; a download credential is resolved only for consume."""

    artifacts = config["artifacts"]
    if artifacts["backend"] == "directory":
        return DirectoryArtifactStore(
            _workdir(args) / artifacts["directory"],
            repository=context.repository,
            run_id=context.run_id,
        )

    token = ""
    if runtime is not None:
        label, token = resolve_auth_token(runtime)
        if logger is not None:
            add_mask(logger, token)
            logger.debug("Using token from %s", label)
    github = config["github"]
    return GitHubArtifactClient.from_environ(
        environ,
        token=token,
        api_url=github["api_url"],
        timeout_seconds=float(github["timeout_seconds"]),
    )


__all__ = ["build_parser", "run_cli"]
