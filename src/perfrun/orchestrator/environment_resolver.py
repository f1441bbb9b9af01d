# SPDX-FileCopyrightText: Copyright (c) 2025-2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Resolves the host, token and load shape injected into a run."""

import logging

from perfrun.common.constants import (
    DEFAULT_DURATION,
    DEFAULT_HOST,
    DEFAULT_PROFILE_NAME,
    DEFAULT_TOKEN,
    DEFAULT_VUS,
)
from perfrun.common.enums import TargetEnvironment, TokenRole
from perfrun.common.logging import redact
from perfrun.orchestrator.models import EnvironmentConfig, LoadProfile
from perfrun.orchestrator.repository_config import (
    BUILTIN_LOAD_PROFILES,
    RepositoryConfig,
    RepositoryConfigPort,
)

logger = logging.getLogger(__name__)

__all__ = ["EnvironmentResolver"]


def _first_set(*values):
    """First value that is neither None nor empty."""
    for value in values:
        if value is not None and value != "":
            return value
    return None


class EnvironmentResolver:
    """Turns a repository, environment and profile into an :class:`EnvironmentConfig`.

    Every field is resolved independently, in strict order: explicit override,
    then the repository configuration for the requested environment/profile,
    then the built-in default. Resolution never fails; a broken configuration
    source only costs the repository layer.
    """

    def __init__(self, config_source: RepositoryConfigPort) -> None:
        self.config_source = config_source

    def resolve(
        self,
        repository_id: str,
        environment: TargetEnvironment | str,
        profile: str,
        custom_host: str | None = None,
        custom_token: str | None = None,
        custom_vus: int | None = None,
        custom_duration: str | None = None,
    ) -> EnvironmentConfig:
        environment = str(environment)
        config = self._load_config(repository_id)

        repo_host = repo_token = None
        repo_profile: LoadProfile | None = None
        if config is not None:
            repo_host = config.get_host(environment)
            repo_token = config.get_token(environment, TokenRole.USER)
            repo_profile = config.get_load_profile(profile)

        if repo_profile is None and profile not in BUILTIN_LOAD_PROFILES:
            logger.debug(
                f"Unknown load profile '{profile}', falling back to {DEFAULT_PROFILE_NAME}"
            )

        resolved = EnvironmentConfig(
            host=_first_set(custom_host, repo_host, DEFAULT_HOST),
            token=_first_set(custom_token, repo_token) or DEFAULT_TOKEN,
            vus=_first_set(
                custom_vus,
                repo_profile.vus if repo_profile else None,
                DEFAULT_VUS,
            ),
            duration=_first_set(
                custom_duration,
                repo_profile.duration if repo_profile else None,
                DEFAULT_DURATION,
            ),
            ramp_up=repo_profile.ramp_up if repo_profile else None,
        )

        logger.info(
            f"Resolved environment for '{repository_id}' ({environment}/{profile}): "
            f"host={resolved.host}, token={redact(resolved.token)}, "
            f"vus={resolved.vus}, duration={resolved.duration}"
            + (" [custom host]" if custom_host else "")
            + (" [custom token]" if custom_token else "")
        )
        return resolved

    def _load_config(self, repository_id: str) -> RepositoryConfig | None:
        try:
            config = self.config_source.get_config(repository_id)
        except Exception:
            logger.exception(
                f"Error loading repository config for '{repository_id}', using defaults"
            )
            return None
        if config is None:
            logger.info(
                f"No repository config for '{repository_id}', using custom/default values"
            )
        return config
