"""Credential lookup for artifact downloads."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from workflow_bridge.errors import TokenResolutionError
from workflow_bridge.platform.runtime import ActionsRuntime, resolve_first

TOKEN_SOURCE_ORDER: Final[tuple[str, ...]] = (
    "input token",
    "input github_token",
    "env GITHUB_TOKEN",
    "env GH_TOKEN",
)


def resolve_auth_token(
    runtime: ActionsRuntime,
    environ: Mapping[str, str] | None = None,
) -> tuple[str, str]:
    """Return ``(source_label, token)`` for the first configured credential."""

    env = runtime.environ if environ is None else environ
    values = (
        runtime.get_input("token"),
        runtime.get_input("github_token"),
        env.get("GITHUB_TOKEN", "").strip(),
        env.get("GH_TOKEN", "").strip(),
    )
    resolved = resolve_first(tuple(zip(TOKEN_SOURCE_ORDER, values, strict=True)))
    if resolved is None:
        raise TokenResolutionError(
            "Missing token: provide the token input or set "
            + ", ".join(TOKEN_SOURCE_ORDER[2:])
            + " (checked in order: "
            + ", ".join(TOKEN_SOURCE_ORDER)
            + ")"
        )
    return resolved


__all__ = ["TOKEN_SOURCE_ORDER", "resolve_auth_token"]
