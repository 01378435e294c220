import logging
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Callable, Optional

from app.core.otp import register_opt_in

# Opt-in outcomes never reach the OTP caller; this logger is their only sink
optin_logger = logging.getLogger("app.optin")


class OptInDispatcher:
    """Fire-and-forget WhatsApp opt-in registration."""

    def __init__(self, register: Callable[[str], dict] = register_opt_in, max_workers: int = 2):
        self._register = register
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="optin")

    def submit(self, phone: str) -> Optional[Future]:
        try:
            future = self._executor.submit(self._register, phone)
        except RuntimeError as e:
            optin_logger.warning("Opt-in for %s not scheduled: %s", phone, e)
            return None
        future.add_done_callback(partial(self._report, phone))
        return future

    @staticmethod
    def _report(phone: str, future: Future) -> None:
        if future.cancelled():
            optin_logger.info("Opt-in for %s cancelled at shutdown", phone)
            return
        error = future.exception()
        if error is not None:
            optin_logger.warning("Gupshup opt-in failed for %s (continuing): %s", phone, error)
        else:
            optin_logger.info("WhatsApp opt-in registered for %s", phone)

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)
