"""
Server information for the configured endpoint (``di about``).

``server/info`` needs no login, so it is called without the auth-retry
wrapper.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from deployr_cli.core.session import Session

logger = logging.getLogger("server")


@dataclass
class ServerInfo:
    endpoint: str
    info: Dict[str, Any] = field(default_factory=dict)


async def server_info(session: Session) -> ServerInfo:
    response = await asyncio.to_thread(session.call, "server/info")
    info = response.get("info") or {}
    logger.debug(f"server/info returned {sorted(info)}")
    return ServerInfo(endpoint=session.endpoint, info=info)


def render_server_info(server: ServerInfo) -> str:
    rows = [("Endpoint", server.endpoint)]
    rows.extend((str(key), value) for key, value in server.info.items())
    width = max(len(label) for label, _ in rows) + 2
    return "\n".join(f"{label:<{width}}{value}" for label, value in rows)
