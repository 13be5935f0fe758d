"""
stdio client that routes the server's stderr through the hub's logger.
"""

from contextlib import asynccontextmanager
import subprocess
from typing import Optional

import anyio
from anyio.streams.text import TextReceiveStream
from mcp.client.stdio import StdioServerParameters, get_default_environment
from mcp.shared.message import SessionMessage
import mcp.types as types

from mcp_hub.utils.logging import get_logger

logger = get_logger(__name__)

# Seconds to wait for a server to exit after its stdin closes before terminating it
PROCESS_TERMINATION_TIMEOUT = 2.0


@asynccontextmanager
async def stdio_client_with_logged_stderr(
    server: StdioServerParameters, server_name: Optional[str] = None
):
    """
    Variant of mcp's stdio_client that captures the server's stderr and logs it.

    Args:
        server: The server parameters for the stdio connection. ``server.env``
            is used as the complete child environment.
        server_name: Name used to prefix the server's stderr lines in the log.

    Yields:
        A tuple of (read_stream, write_stream) for communication with the server.
    """
    label = server_name or server.command
    read_stream_writer, read_stream = anyio.create_memory_object_stream(0)
    write_stream, write_stream_reader = anyio.create_memory_object_stream(0)

    try:
        process = await anyio.open_process(
            [server.command, *server.args],
            env=server.env if server.env is not None else get_default_environment(),
            cwd=server.cwd,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        logger.error(f"{label}: Failed to open process '{server.command}': {e}")
        await read_stream_writer.aclose()
        await write_stream_reader.aclose()
        await read_stream.aclose()
        await write_stream.aclose()
        raise

    logger.debug(f"{label}: Started process '{server.command}' with PID: {process.pid}")

    async def stdout_reader():
        assert process.stdout, "Opened process is missing stdout"
        try:
            async with read_stream_writer:
                buffer = ""
                async for chunk in TextReceiveStream(
                    process.stdout,
                    encoding=server.encoding,
                    errors=server.encoding_error_handler,
                ):
                    lines = (buffer + chunk).split("\n")
                    buffer = lines.pop()

                    for line in lines:
                        if not line:
                            continue
                        try:
                            message = types.JSONRPCMessage.model_validate_json(line)
                        except Exception as exc:
                            await read_stream_writer.send(exc)
                            continue

                        await read_stream_writer.send(SessionMessage(message))
        except anyio.ClosedResourceError:
            logger.debug(f"{label}: stdout stream closed")

    async def stderr_reader():
        assert process.stderr, "Opened process is missing stderr"
        try:
            async for chunk in TextReceiveStream(
                process.stderr,
                encoding=server.encoding,
                errors=server.encoding_error_handler,
            ):
                for stderr_line in chunk.splitlines():
                    if not stderr_line.strip():
                        continue
                    if "[ERROR]" in stderr_line or "Error" in stderr_line:
                        logger.error(f"{label} stderr: {stderr_line}")
                    else:
                        logger.debug(f"{label} stderr: {stderr_line}")
        except anyio.ClosedResourceError:
            logger.debug(f"{label}: stderr stream closed")

    async def stdin_writer():
        assert process.stdin, "Opened process is missing stdin"
        try:
            async with write_stream_reader:
                async for session_message in write_stream_reader:
                    json = session_message.message.model_dump_json(
                        by_alias=True, exclude_none=True
                    )
                    await process.stdin.send(
                        (json + "\n").encode(
                            encoding=server.encoding,
                            errors=server.encoding_error_handler,
                        )
                    )
        except anyio.ClosedResourceError:
            logger.debug(f"{label}: stdin stream closed")

    async with anyio.create_task_group() as tg, process:
        tg.start_soon(stdout_reader)
        tg.start_soon(stdin_writer)
        tg.start_soon(stderr_reader)
        try:
            yield read_stream, write_stream
        finally:
            # Closing stdin asks the server to exit; terminate it if it doesn't.
            if process.stdin:
                try:
                    await process.stdin.aclose()
                except anyio.BrokenResourceError:
                    pass
            try:
                with anyio.fail_after(PROCESS_TERMINATION_TIMEOUT):
                    await process.wait()
            except TimeoutError:
                logger.warning(
                    f"{label}: Process did not exit after stdin closed; terminating"
                )
                try:
                    process.terminate()
                except ProcessLookupError:
                    pass
            # Ends stdin_writer; the readers end on the process's EOF
            await write_stream.aclose()
            await read_stream.aclose()
