import asyncio
import logging
from typing import Callable, Optional, Protocol

from .errors import GenerationFailed, GenerationTimeout
from .model import PredictionHandle

logger = logging.getLogger(__name__)


class PredictionFetcher(Protocol):
    async def fetch(self, prediction_id: str) -> PredictionHandle: ...


async def _poll(
    client: PredictionFetcher,
    prediction_id: str,
    on_tick: Optional[Callable[[PredictionHandle], None]],
    poll_interval: float,
) -> PredictionHandle:
    while True:
        handle = await client.fetch(prediction_id)
        if on_tick:
            on_tick(handle)
        if handle.status == "succeeded":
            return handle
        if handle.status in ("failed", "canceled"):
            raise GenerationFailed(prediction_id, handle.status, handle.error)
        logger.debug("[Poller] %s status=%s, next check in %ss", prediction_id, handle.status, poll_interval)
        await asyncio.sleep(poll_interval)


async def poll_until_terminal(
    client: PredictionFetcher,
    prediction_id: str,
    on_tick: Optional[Callable[[PredictionHandle], None]] = None,
    poll_interval: float = 1.2,
    timeout: Optional[float] = None,
) -> PredictionHandle:
    """
    Fetch `prediction_id` every `poll_interval` seconds until it is terminal.

    `on_tick` sees every observation, the terminal one included, before the
    status is checked. Returns the handle on `succeeded`; raises
    GenerationFailed on `failed` / `canceled` and GenerationTimeout once
    `timeout` seconds have elapsed (no deadline when timeout is falsy).
    Provider errors from `fetch` propagate untouched.
    """
    if not timeout or timeout <= 0:
        return await _poll(client, prediction_id, on_tick, poll_interval)
    try:
        return await asyncio.wait_for(_poll(client, prediction_id, on_tick, poll_interval), timeout)
    except asyncio.TimeoutError as e:
        raise GenerationTimeout(prediction_id, timeout) from e
