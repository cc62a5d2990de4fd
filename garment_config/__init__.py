"""
garment_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only place that reads configuration
    files or environment variables.  Services receive the resulting
    ``ErpConfig`` (or pieces of it) through their constructors.

Environment:
    GARMENT_ERP_CONFIG        path of a YAML file merged over the defaults
    GARMENT_ERP_DATABASE_URL  overrides ``database.url``
    GARMENT_ERP_LOG_LEVEL     overrides ``log_level``

``init_from_config()`` applies the process-wide settings (logging level and
database engine) once at startup.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from sqlalchemy.engine import Engine

from garment_kernel.db.engine import create_tables, init_engine_from_url
from garment_kernel.logging_config import configure_logging, get_logger
from garment_config.loader import load_config, load_yaml_file
from garment_config.schema import (
    DatabaseSettings,
    ErpConfig,
    IssueSettings,
    WastePolicySettings,
)

logger = get_logger("config")

CONFIG_PATH_ENV = "GARMENT_ERP_CONFIG"
DATABASE_URL_ENV = "GARMENT_ERP_DATABASE_URL"
LOG_LEVEL_ENV = "GARMENT_ERP_LOG_LEVEL"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> ErpConfig:
    """
    Resolve the active configuration.

    An explicit ``path`` wins over ``GARMENT_ERP_CONFIG``.  Environment
    overrides are applied last.
    """
    env = os.environ if environ is None else environ
    config_path = path if path is not None else env.get(CONFIG_PATH_ENV)

    overrides: dict = {}
    if env.get(DATABASE_URL_ENV):
        overrides["database"] = {"url": env[DATABASE_URL_ENV]}
    if env.get(LOG_LEVEL_ENV):
        overrides["log_level"] = env[LOG_LEVEL_ENV]

    config = load_config(Path(config_path) if config_path else None, overrides)
    logger.info(
        "config_loaded",
        extra={
            "config_path": str(config_path) if config_path else None,
            "currency": config.currency,
            "env_overrides": sorted(overrides),
        },
    )
    return config


def init_from_config(
    config: ErpConfig,
    *,
    stream: Any = None,
    create_schema: bool = False,
) -> Engine:
    """
    Apply the process-wide parts of ``config``.

    Configures structured logging at ``config.log_level`` and initializes
    the database engine from ``config.database``.  With ``create_schema``
    the ERP tables are created as well, which embedded SQLite deployments
    use on first start.
    """
    configure_logging(level=config.log_level, stream=stream)
    db = config.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
    )
    if create_schema:
        create_tables()
    logger.info(
        "erp_initialized",
        extra={"log_level": config.log_level, "create_schema": create_schema},
    )
    return engine


__all__ = [
    "DatabaseSettings",
    "ErpConfig",
    "IssueSettings",
    "WastePolicySettings",
    "get_active_config",
    "init_from_config",
    "load_config",
    "load_yaml_file",
]
