"""Bounded payment status polling."""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from src.logging import get_logger
from src.models.payment import PaymentStatusResult
from src.services.errors import PollingTimeoutError

logger = get_logger(__name__)

StatusCheck = Callable[[], Awaitable[PaymentStatusResult]]


class PaymentStatusPoller:
    """Re-run a status check on a fixed interval until it is terminal or time runs out.

    Hitting the ceiling means the outcome is unknown, not that the payment
    failed; PollingTimeoutError carries the last result seen.
    """

    def __init__(
        self,
        interval_seconds: float = 5.0,
        timeout_seconds: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if timeout_seconds < 0:
            raise ValueError("timeout_seconds must not be negative")
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._sleep = sleep

    async def poll(self, check: StatusCheck) -> PaymentStatusResult:
        """
        Poll until paid or failed.

        Args:
            check: Zero-argument coroutine function returning the current status

        Returns:
            The first terminal result

        Raises:
            PollingTimeoutError: Ceiling reached without a terminal result
        """
        started = self._clock()
        attempts = 0
        last: Optional[PaymentStatusResult] = None

        while True:
            last = await check()
            attempts += 1

            if last.outcome.is_terminal:
                logger.info(
                    "payment_poll_finished",
                    reference=last.reference,
                    outcome=last.outcome.value,
                    attempts=attempts,
                )
                return last

            elapsed = self._clock() - started
            if elapsed + self.interval_seconds > self.timeout_seconds:
                logger.warning(
                    "payment_poll_timeout",
                    reference=last.reference,
                    attempts=attempts,
                    elapsed_seconds=round(elapsed, 1),
                )
                raise PollingTimeoutError(elapsed, last_result=last)

            await self._sleep(self.interval_seconds)
