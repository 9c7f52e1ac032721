"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables in one dataclass.

Precedence, highest first:

    1. command line flags      --port 8080
    2. environment variables   PORT=8080
    3. the defaults below

    ┌────────────────────┬─────────────┬──────────────────────────────────┐
    │ Field              │ Default     │ Notes                            │
    ├────────────────────┼─────────────┼──────────────────────────────────┤
    │ host               │ 127.0.0.1   │ HOST                             │
    │ port               │ 3001        │ PORT                             │
    │ backlog            │ 128         │ listen() queue                   │
    │ buffer_size        │ 8192        │ bytes per recv()                 │
    │ timeout            │ 30.0        │ first request read timeout (408) │
    │ keep_alive         │ True        │ reuse connections                │
    │ keep_alive_timeout │ 5.0         │ idle time between requests       │
    │ max_request_size   │ 1 MiB       │ larger requests get 413          │
    │ workers            │ 8           │ connection worker threads        │
    │ log_level          │ INFO        │ LOG_LEVEL                        │
    │ server_name        │ userservice │ Server header                    │
    └────────────────────┴─────────────┴──────────────────────────────────┘

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .http.response import DEFAULT_SERVER_NAME


DEFAULT_PORT = 3001

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the user service.

        config = ServerConfig(port=8080, log_level="DEBUG")
        config.validate()
    """

    # Network
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    backlog: int = 128
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0

    # HTTP
    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    # Workers
    workers: int = 8

    # Logging / identity
    log_level: str = "INFO"
    server_name: str = DEFAULT_SERVER_NAME

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ServerConfig":
        """
        Build a config from the environment.

            PORT        listening port (default 3001)
            HOST        bind address (default 127.0.0.1)
            LOG_LEVEL   logging level (default INFO)

        Raises:
            ValueError: If PORT is not an integer.
        """
        env = os.environ if environ is None else environ

        port = env.get("PORT", "")
        try:
            port_number = int(port) if port.strip() else DEFAULT_PORT
        except ValueError:
            raise ValueError(f"Invalid PORT: {port!r}")

        return cls(
            host=env.get("HOST") or "127.0.0.1",
            port=port_number,
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level.upper())

    def validate(self) -> None:
        """
        Check every value once, at startup.

        Raises:
            ValueError: Naming the first bad setting.
        """
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")

        if self.workers < 1:
            raise ValueError("workers must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {self.log_level}. "
                f"Must be one of {', '.join(LOG_LEVELS)}."
            )
