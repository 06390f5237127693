"""Sunbeam application entrypoint.

Bootstraps logging and the client from Hydra configuration in conf/,
connects every channel and waits for the aggregate ready signal. With
``auth.keys`` configured and a signer available the session is also
authenticated.

Usage:
    # Default config
    python -m sunbeam_core.main

    # Override endpoints
    python -m sunbeam_core.main client.urls.pub=wss://example/ws
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

import hydra
import structlog
from hydra.utils import instantiate
from omegaconf import OmegaConf

from sunbeam_core.client import SunbeamClient
from sunbeam_core.config import ClientConfig

if TYPE_CHECKING:
    from omegaconf import DictConfig

# ==============================================================================
# Constants
# ==============================================================================
APP_NAME: str = "Sunbeam"
APP_VERSION: str = "0.1.0"


# ==============================================================================
# Logging Configuration
# ==============================================================================
def configure_logging(*, json_output: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog.

    Args:
        json_output: If True, output JSON. If False, output human-readable logs.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ==============================================================================
# Session
# ==============================================================================
async def run(cfg: DictConfig) -> None:
    """Connect, wait for readiness, optionally authenticate, then idle."""
    log = structlog.get_logger()
    config = ClientConfig.from_mapping(cfg.client)

    signer = instantiate(cfg.signer) if cfg.get("signer") else None
    client = SunbeamClient(config, signer=signer)

    await client.open()
    await client.wait_ready(timeout=float(cfg.get("ready_timeout", 30.0)))
    log.info("System ready", app=APP_NAME, roles=client.registry.roles)

    try:
        if config.eos.auth.keys is not None and signer is not None:
            account = await client.auth()
            log.info("Session authenticated", account=account.account)

        run_for = cfg.get("run_for")
        if run_for:
            await asyncio.sleep(float(run_for))
        else:
            await asyncio.Event().wait()
    finally:
        await client.close()


@hydra.main(version_base=None, config_path="../../../conf", config_name="main")
def main(cfg: DictConfig) -> None:
    """Application entrypoint with Hydra configuration injection."""
    is_debug: bool = bool(cfg.get("debug", False))
    env: str = str(cfg.get("env", "dev"))
    log_level: str = "DEBUG" if is_debug else "INFO"

    configure_logging(json_output=env != "dev", log_level=log_level)
    log = structlog.get_logger()

    log.info(
        "Initializing application",
        app=APP_NAME,
        version=APP_VERSION,
        env=env,
        debug=is_debug,
    )

    try:
        OmegaConf.resolve(cfg)
    except Exception as e:
        log.error("Configuration resolution failed", error=str(e))
        raise

    if is_debug:
        log.debug("Resolved configuration", config=OmegaConf.to_yaml(cfg))

    asyncio.run(run(cfg))


if __name__ == "__main__":
    main()
