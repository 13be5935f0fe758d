"""
Client session used by the hub for its upstream connections.

Extends the base MCP client session with request/notification logging and
a per-server client identity.
"""

from typing import Any, Optional

from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import ClientSession
from mcp.shared.session import ReceiveResultT, SendNotificationT, SendRequestT
from mcp.types import Implementation, ServerNotification

from mcp_hub import __version__
from mcp_hub.utils.logging import get_logger

logger = get_logger(__name__)


class HubClientSession(ClientSession):
    """
    Client session for one upstream server connection.

    Identifies itself to the server as ``mcp-hub-<server_name>`` and logs
    every request, response and notification at debug level.
    """

    def __init__(
        self,
        read_stream: MemoryObjectReceiveStream,
        write_stream: MemoryObjectSendStream,
        server_name: Optional[str] = None,
        **kwargs: Any,
    ):
        if server_name and "client_info" not in kwargs:
            kwargs["client_info"] = Implementation(
                name=f"mcp-hub-{server_name}", version=__version__
            )
        super().__init__(read_stream, write_stream, **kwargs)
        self.server_name = server_name

    async def send_request(
        self,
        request: SendRequestT,
        result_type: type[ReceiveResultT],
        *args: Any,
        **kwargs: Any,
    ) -> ReceiveResultT:
        logger.debug(f"{self.server_name}: send_request: request=", data=request.model_dump())
        try:
            result = await super().send_request(request, result_type, *args, **kwargs)
            logger.debug(f"{self.server_name}: send_request: response=", data=result.model_dump())
            return result
        except Exception as e:
            logger.error(f"{self.server_name}: send_request failed: {e}")
            raise

    async def send_notification(
        self, notification: SendNotificationT, *args: Any, **kwargs: Any
    ) -> None:
        logger.debug(f"{self.server_name}: send_notification:", data=notification.model_dump())
        try:
            return await super().send_notification(notification, *args, **kwargs)
        except Exception as e:
            logger.error(f"{self.server_name}: send_notification failed: {e}")
            raise

    async def _received_notification(self, notification: ServerNotification) -> None:
        logger.debug(
            f"{self.server_name}: received notification:",
            data=notification.model_dump(),
        )
        return await super()._received_notification(notification)
