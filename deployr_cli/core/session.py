"""
Session - the explicit context every job operation receives.

Owned by the command dispatcher and passed down; nothing reads the
endpoint or cookie from module globals. A login in the middle of a
pipeline mutates this object, and the next remote call picks up the
new cookie because the transport is rebuilt from the session on every
call. Each call closes its transport when done.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from deployr_cli.core.config import CLIConfig
from deployr_cli.core.errors import DeployRCliError
from deployr_cli.core.services import ServiceClient, ServiceConfig

logger = logging.getLogger("session")


@dataclass
class Session:
    """Endpoint, identity and cookie for the current invocation."""
    endpoint: Optional[str] = None
    username: Optional[str] = None
    cookie: Optional[str] = None
    timeout_s: float = 30.0
    max_retries: int = 3
    config: Optional[CLIConfig] = None
    client_factory: Callable[[ServiceConfig], ServiceClient] = field(default=ServiceClient, repr=False)

    @classmethod
    def from_config(cls, config: CLIConfig, **kwargs) -> "Session":
        return cls(
            endpoint=config.get("endpoint"),
            username=config.get("username"),
            cookie=config.get("cookie"),
            timeout_s=float(config.get("timeout_s", 30.0)),
            max_retries=int(config.get("max_retries", 3)),
            config=config,
            **kwargs,
        )

    def client(self) -> ServiceClient:
        """Build a transport bound to the current endpoint and cookie."""
        if not self.endpoint:
            raise DeployRCliError(
                "No DeployR endpoint configured. Run `di endpoint <url>` first."
            )
        return self.client_factory(ServiceConfig(
            base_url=self.endpoint,
            cookie=self.cookie,
            timeout_s=self.timeout_s,
            max_retries=self.max_retries,
        ))

    def call(
        self,
        route: str,
        data: Optional[Mapping[str, Any]] = None,
        files: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """One blocking DeployR call on a transport closed right after."""
        with self.client() as client:
            return client.call(route, data, files=files)

    def download(self, route: str, dest: Path, data: Optional[Mapping[str, Any]] = None) -> Path:
        with self.client() as client:
            return client.download(route, dest, data)

    def update_credentials(self, username: Optional[str], cookie: Optional[str]) -> None:
        """Store a fresh login and persist it when backed by a config file."""
        self.username = username
        self.cookie = cookie
        if self.config is not None:
            self.config.set("username", username)
            self.config.set("cookie", cookie)
            self.config.save()
        logger.debug(f"Session updated for user {username}")

    def clear_credentials(self) -> None:
        self.cookie = None
        if self.config is not None:
            self.config.clear("cookie")
            self.config.save()
