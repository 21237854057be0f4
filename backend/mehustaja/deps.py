"""Shared FastAPI dependencies for the process-wide collaborators.

The event bus, SMS notifier and printer are created once per process
from settings.  Tests swap them through ``app.dependency_overrides``.
"""

from functools import lru_cache

from mehustaja.adapters.printer import VideojetPrinter
from mehustaja.adapters.sms import SmsNotifier
from mehustaja.config import settings
from mehustaja.events.bus import EventBus, build_event_bus


@lru_cache
def get_event_bus() -> EventBus:
    return build_event_bus(
        settings.event_backend,
        settings.redis_url,
        settings.event_channel,
    )


@lru_cache
def get_notifier() -> SmsNotifier:
    return SmsNotifier(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.twilio_from_number,
    )


@lru_cache
def get_printer() -> VideojetPrinter:
    return VideojetPrinter(
        host=settings.printer_host,
        port=settings.printer_port,
        job=settings.printer_job,
        connect_timeout=settings.printer_connect_timeout,
        linger=settings.printer_linger,
    )
