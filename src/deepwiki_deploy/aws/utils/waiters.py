"""Bounded, cancellable polling on top of botocore waiters."""
import logging
import threading
import time
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from deepwiki_deploy.errors import StackOperationFailed, WaitCancelled, WaitTimeout

logger = logging.getLogger(__name__)

MAX_ATTEMPTS_REASON = "Max attempts exceeded"


class BoundedWaiter:
    """Polls a botocore waiter one attempt at a time.

    Each attempt is a single describe call; between attempts the waiter sleeps
    on ``cancel_event`` so another thread can stop it. The overall wait is
    bounded by ``timeout`` seconds.
    """

    def __init__(self, client: Any, delay: float, timeout: float,
                 cancel_event: Optional[threading.Event] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.delay = delay
        self.timeout = timeout
        self.cancel_event = cancel_event or threading.Event()
        self._clock = clock

    def wait(self, waiter_name: str, description: str, **kwargs) -> None:
        """Block until ``waiter_name`` succeeds.

        Raises:
            StackOperationFailed: the waiter reached a failure state
            WaitTimeout: ``timeout`` elapsed first
            WaitCancelled: ``cancel_event`` was set
        """
        waiter = self.client.get_waiter(waiter_name)
        deadline = self._clock() + self.timeout
        attempts = 0

        while True:
            if self.cancel_event.is_set():
                raise WaitCancelled(
                    f"Cancelled while waiting for {description}; the stack may be mid-transition"
                )
            attempts += 1
            try:
                waiter.wait(WaiterConfig={'Delay': 1, 'MaxAttempts': 1}, **kwargs)
                logger.debug(f"{waiter_name} satisfied after {attempts} attempt(s)")
                return
            except WaiterError as e:
                reason = str(e.kwargs.get('reason', e))
                if not reason.startswith(MAX_ATTEMPTS_REASON):
                    raise StackOperationFailed(f"{description} failed: {reason}") from e
            except (ClientError, BotoCoreError) as e:
                raise StackOperationFailed(f"{description} failed: {e}") from e

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise WaitTimeout(
                    f"Timed out after {self.timeout:g}s waiting for {description}; "
                    "the stack may be mid-transition"
                )
            if self.cancel_event.wait(min(self.delay, remaining)):
                raise WaitCancelled(
                    f"Cancelled while waiting for {description}; the stack may be mid-transition"
                )
