"""posixq configuration using Pydantic settings.

Settings are loaded from environment variables with the ``POSIXQ_`` prefix.
"""

import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# POSIX guarantees at least 32 priorities.
POSIX_PRIORITY_MAX = 31
# mq_send takes the priority as an unsigned int.
PRIORITY_LIMIT = 2**32 - 1


class QueueSettings(BaseSettings):
    """Configuration for the native queue binding.

    Environment Variables:
        POSIXQ_LIBRARY: Shared library exposing the mq_* functions
            (default: auto-detect librt, then the C library)
        POSIXQ_NAME_MAX: Longest name accepted after the leading '/'
            (default: 255)
        POSIXQ_PRIORITY_MAX: Highest message priority accepted
            (default: sysconf(SC_MQ_PRIO_MAX) - 1)
        POSIXQ_DEFAULT_MODE: Permission bits for newly created queues
            (default: 0o600)

    Example:
        >>> settings = QueueSettings(name_max=64)
        >>> settings.name_max
        64
    """

    model_config = SettingsConfigDict(
        env_prefix='POSIXQ_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
    )

    library: str | None = Field(
        default=None,
        description='Path or soname of the library providing mq_open',
    )
    name_max: int = Field(
        default=255,
        ge=1,
        description='Maximum queue name length in bytes, separator excluded',
    )
    priority_max: int | None = Field(
        default=None,
        ge=0,
        le=PRIORITY_LIMIT,
        description='Highest message priority; None asks the platform',
    )
    default_mode: int = Field(
        default=0o600,
        ge=0,
        le=0o7777,
        description='Permission bits used when a queue is created',
    )

    def resolve_priority_max(self) -> int:
        """Returns the configured priority ceiling or the platform's."""
        if self.priority_max is not None:
            return self.priority_max
        try:
            limit = os.sysconf('SC_MQ_PRIO_MAX')
        except (ValueError, OSError):
            return POSIX_PRIORITY_MAX
        if limit <= 0:
            return POSIX_PRIORITY_MAX
        return limit - 1


@lru_cache(maxsize=1)
def get_settings() -> QueueSettings:
    """Get cached settings singleton loaded from the environment."""
    return QueueSettings()
