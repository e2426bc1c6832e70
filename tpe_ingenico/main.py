"""
TPE Ingenico adapter - Main entry point.

Connects to the payment terminal and serves host commands received over
Redis pub/sub. Each command runs in its own task so that state queries
and aborts are answered while a payment waits for the terminal.
"""

import asyncio
import json
from typing import Any, Final

from redis.asyncio import Redis

from .application.api_facade import TpeIngenicoFacade
from .application.command_handler import CommandHandler
from .configs import get_settings
from .infrastructure.redis_repository import TerminalStateRepository
from .loggers import logger


# =============================================================================
# Constants
# =============================================================================

settings = get_settings()
COMMAND_CHANNEL: Final[str] = settings.payment.command_channel
RESPONSE_CHANNEL: Final[str] = settings.payment.response_channel


# =============================================================================
# Redis Command Listener
# =============================================================================


async def execute_command(
    redis: Redis,
    handler: CommandHandler,
    command: dict[str, Any],
) -> dict[str, Any]:
    """
    Execute one command and publish its response.

    Args:
        redis: Redis client instance.
        handler: Command handler bound to the facade.
        command: Decoded command dictionary.

    Returns:
        The published response.
    """
    response = await handler.execute(command)
    await redis.publish(RESPONSE_CHANNEL, json.dumps(response, default=str))
    logger.info(f"Response sent to {RESPONSE_CHANNEL}: {response}")
    return response


async def listen_to_redis(redis: Redis, api: TpeIngenicoFacade) -> None:
    """
    Listen for commands on Redis pub/sub and process them.

    Args:
        redis: Redis client instance.
        api: TpeIngenicoFacade instance for command execution.
    """
    result = await api.start()
    logger.info(result["message"])

    handler = CommandHandler(api)
    tasks: set[asyncio.Task] = set()

    pubsub = redis.pubsub()
    await pubsub.subscribe(COMMAND_CHANNEL)
    logger.info(f"Listening for commands on channel: {COMMAND_CHANNEL}")

    async for message in pubsub.listen():
        if message.get("type") != "message":
            continue

        raw_data = message.get("data")

        if raw_data == "ping":
            continue

        try:
            command = json.loads(raw_data)
        except json.JSONDecodeError as e:
            logger.error(f"Command parsing error: {e}")
            continue

        if not isinstance(command, dict):
            logger.error(f"Command is not an object: {command!r}")
            continue

        logger.info(f"Received command: {command.get('command')} ({command.get('command_id')})")
        task = asyncio.create_task(execute_command(redis, handler, command))
        tasks.add(task)
        task.add_done_callback(tasks.discard)


# =============================================================================
# Main Entry Point
# =============================================================================


async def main() -> None:
    """
    Main entry point for the TPE adapter service.

    Initializes Redis, the state mirror and the facade, then serves commands
    until cancelled.
    """
    redis = Redis(
        host=settings.redis.host,
        port=settings.redis.port,
        decode_responses=settings.redis.decode_responses,
    )
    mirror = TerminalStateRepository(redis, prefix=settings.redis.state_key_prefix)
    api = TpeIngenicoFacade(settings, state_mirror=mirror)

    try:
        await listen_to_redis(redis, api)
    finally:
        await api.shutdown()
        await redis.aclose()


def run() -> None:
    """Console entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Application stopped by user")


if __name__ == "__main__":
    run()
