"""Engine settings, environment driven.

Every field can be overridden with a ``SPECGRAPH_*`` environment variable or
a ``.env`` file in the working directory.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Settings shared by the engine facade and the command line.

    Examples
    --------
    Override via environment::

        export SPECGRAPH_LOG_LEVEL=DEBUG
        export SPECGRAPH_USE_CACHE=false
        export SPECGRAPH_MAX_DEPENDENCY_DEPTH=8
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SPECGRAPH_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "WARNING"

    # Workspace layout
    marker_dir: str = ".specman"
    cache_dir: str = "cache"

    # Structure index
    use_cache: bool = True

    # Dependency traversal; None means unbounded
    max_dependency_depth: int | None = None
