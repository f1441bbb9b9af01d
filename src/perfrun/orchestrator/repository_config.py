# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Per-repository hosts, tokens and load profiles.

Repositories describe their targets in ``config/env.js``, a k6 module that is
not evaluated here. Instead, a tolerant extraction pass looks for these
exports, each independently::

    export const HOSTS = { PROD: 'https://...', DEV: 'https://...' };
    export const TOKENS = { PROD: { USER: '...', ADMIN: '...' }, DEV: { USER: '...' } };
    export const LOAD_PROFILES = { LIGHT: { vus: 10, duration: '60s' }, ... };
    export const DEFAULT_PROFILE = LOAD_PROFILES.LIGHT;

Anything missing or malformed falls back to the built-in default for that
piece only. Parsing never raises.
"""

import logging
import re
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from perfrun.common.constants import DEFAULT_HOST, DEFAULT_PROFILE_NAME
from perfrun.common.enums import TokenRole
from perfrun.common.logging import redact
from perfrun.orchestrator.models import LoadProfile
from perfrun.orchestrator.workspace import RepositoryWorkspace

logger = logging.getLogger(__name__)

__all__ = [
    "BUILTIN_LOAD_PROFILES",
    "FileSystemRepositoryConfigSource",
    "HostConfig",
    "RepositoryConfig",
    "RepositoryConfigPort",
    "RoleTokens",
    "TokenConfig",
    "parse_repository_config",
]

BUILTIN_LOAD_PROFILES: dict[str, LoadProfile] = {
    "LIGHT": LoadProfile(vus=10, duration="60s", ramp_up="10s"),
    "MEDIUM": LoadProfile(vus=30, duration="5m", ramp_up="30s"),
    "HEAVY": LoadProfile(vus=100, duration="10m", ramp_up="1m"),
}


def _builtin_profiles() -> dict[str, LoadProfile]:
    return dict(BUILTIN_LOAD_PROFILES)


class HostConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    PROD: str = DEFAULT_HOST
    DEV: str = DEFAULT_HOST


class RoleTokens(BaseModel):
    model_config = ConfigDict(frozen=True)

    USER: str | None = None
    ADMIN: str | None = None


class TokenConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    PROD: RoleTokens = Field(default_factory=RoleTokens)
    DEV: RoleTokens = Field(default_factory=RoleTokens)


class RepositoryConfig(BaseModel):
    """Always-valid view of a repository's configuration.

    Attributes:
        hosts: Target host per environment
        tokens: Tokens per environment and role; roles may be missing
        load_profiles: Load shapes by name, always containing LIGHT, MEDIUM and HEAVY
        default_profile: Profile named by DEFAULT_PROFILE, else LIGHT
    """

    model_config = ConfigDict(frozen=True)

    hosts: HostConfig = Field(default_factory=HostConfig)
    tokens: TokenConfig = Field(default_factory=TokenConfig)
    load_profiles: dict[str, LoadProfile] = Field(default_factory=_builtin_profiles)
    default_profile: LoadProfile = BUILTIN_LOAD_PROFILES[DEFAULT_PROFILE_NAME]

    def get_host(self, environment: str) -> str | None:
        """Host for PROD or DEV (case-exact); None for any other environment."""
        if environment not in HostConfig.model_fields:
            return None
        return getattr(self.hosts, environment)

    def get_token(
        self, environment: str, role: TokenRole | str = TokenRole.USER
    ) -> str | None:
        if environment not in TokenConfig.model_fields:
            return None
        role_tokens: RoleTokens = getattr(self.tokens, environment)
        return getattr(role_tokens, str(role), None)

    def get_load_profile(self, name: str) -> LoadProfile | None:
        return self.load_profiles.get(name)

    def available_profiles(self) -> list[str]:
        return list(self.load_profiles)


@runtime_checkable
class RepositoryConfigPort(Protocol):
    """Source of repository configuration. ``None`` means "use defaults"."""

    def get_config(self, repository_id: str) -> RepositoryConfig | None: ...


# -----------------------------------------------------------------------------
# Extraction
# -----------------------------------------------------------------------------

_QUOTED = r"[\"']([^\"']+)[\"']"

_HOSTS_RE = re.compile(r"export\s+const\s+HOSTS\s*=\s*\{([\s\S]*?)\};")
_TOKENS_RE = re.compile(
    r"export\s+const\s+TOKENS\s*=\s*\{([\s\S]*?)\};\s*(?=export|\Z)"
)
_PROFILES_RE = re.compile(r"export\s+const\s+LOAD_PROFILES\s*=\s*\{([\s\S]+?)\};")
_DEFAULT_PROFILE_RE = re.compile(
    r"export\s+const\s+DEFAULT_PROFILE\s*=\s*LOAD_PROFILES\.(\w+)"
)
_PROFILE_ENTRY_RE = re.compile(r"(\w+)\s*:\s*\{([^}]+)\}")
_VUS_RE = re.compile(r"\bvus\s*:\s*(\d+)")
_DURATION_RE = re.compile(r"\bduration\s*:\s*" + _QUOTED)
_RAMP_UP_RE = re.compile(r"\b(?:rampUp|rampUpTime|ramp_up)\s*:\s*" + _QUOTED)


def _environment_block(content: str, environment: str) -> str | None:
    match = re.search(rf"\b{environment}\s*:\s*\{{([\s\S]*?)\}}", content)
    return match.group(1) if match else None


def _quoted_value(content: str, key: str) -> str | None:
    match = re.search(rf"\b{key}\s*:\s*{_QUOTED}", content)
    return match.group(1) if match else None


def _extract_hosts(content: str) -> HostConfig:
    match = _HOSTS_RE.search(content)
    if not match:
        logger.debug("HOSTS not found in repository config, using defaults")
        return HostConfig()
    block = match.group(1)
    hosts = {
        environment: value
        for environment in HostConfig.model_fields
        if (value := _quoted_value(block, environment)) is not None
    }
    return HostConfig(**hosts)


def _extract_tokens(content: str) -> TokenConfig:
    match = _TOKENS_RE.search(content)
    if not match:
        logger.debug("TOKENS not found in repository config")
        return TokenConfig()
    block = match.group(1)
    tokens = {}
    for environment in TokenConfig.model_fields:
        env_block = _environment_block(block, environment)
        if env_block is None:
            continue
        tokens[environment] = RoleTokens(
            **{
                role: value
                for role in RoleTokens.model_fields
                if (value := _quoted_value(env_block, role)) is not None
            }
        )
    return TokenConfig(**tokens)


def _extract_load_profiles(content: str) -> dict[str, LoadProfile]:
    match = _PROFILES_RE.search(content)
    if not match:
        logger.debug("LOAD_PROFILES not found in repository config, using defaults")
        return _builtin_profiles()

    profiles: dict[str, LoadProfile] = {}
    for entry in _PROFILE_ENTRY_RE.finditer(match.group(1)):
        name, body = entry.group(1), entry.group(2)
        vus_match = _VUS_RE.search(body)
        duration_match = _DURATION_RE.search(body)
        if not (vus_match and duration_match):
            continue
        try:
            vus = int(vus_match.group(1))
        except ValueError:
            continue
        ramp_up_match = _RAMP_UP_RE.search(body)
        profiles[name] = LoadProfile(
            vus=vus,
            duration=duration_match.group(1),
            ramp_up=ramp_up_match.group(1) if ramp_up_match else None,
        )

    for name, profile in BUILTIN_LOAD_PROFILES.items():
        profiles.setdefault(name, profile)
    return profiles


def _extract_default_profile(
    content: str, load_profiles: dict[str, LoadProfile]
) -> LoadProfile:
    match = _DEFAULT_PROFILE_RE.search(content)
    name = match.group(1) if match else DEFAULT_PROFILE_NAME
    return load_profiles.get(name) or load_profiles[DEFAULT_PROFILE_NAME]


def parse_repository_config(content: str) -> RepositoryConfig:
    """Extract a :class:`RepositoryConfig` from env.js source text. Never raises."""
    hosts = _extract_hosts(content)
    tokens = _extract_tokens(content)
    load_profiles = _extract_load_profiles(content)
    default_profile = _extract_default_profile(content, load_profiles)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            f"Parsed repository config: hosts={hosts.model_dump()}, "
            f"PROD USER token={redact(tokens.PROD.USER)}, "
            f"DEV USER token={redact(tokens.DEV.USER)}, "
            f"profiles={sorted(load_profiles)}"
        )

    return RepositoryConfig(
        hosts=hosts,
        tokens=tokens,
        load_profiles=load_profiles,
        default_profile=default_profile,
    )


class FileSystemRepositoryConfigSource:
    """Reads ``config/env.js`` of a checked-out repository on every call."""

    def __init__(self, workspace: RepositoryWorkspace) -> None:
        self.workspace = workspace

    def get_config(self, repository_id: str) -> RepositoryConfig | None:
        if not self.workspace.repository_dir(repository_id).is_dir():
            logger.warning(f"Repository '{repository_id}' not found")
            return None

        config_path = self.workspace.config_file(repository_id)
        if not config_path.is_file():
            logger.warning(
                f"Repository config not found for '{repository_id}': {config_path}"
            )
            return None

        try:
            content = config_path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            logger.exception(f"Failed to read repository config {config_path}")
            return None

        return parse_repository_config(content)
