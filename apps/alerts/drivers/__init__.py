"""
Alarm drivers for ingesting alarm state changes from various sources.
"""

from apps.alerts.drivers.base import (
    BaseAlarmDriver,
    ParsedAlarm,
    ParsedPayload,
    severity_from_name,
)
from apps.alerts.drivers.cloudwatch import CloudWatchDriver
from apps.alerts.drivers.generic import GenericWebhookDriver

__all__ = [
    "BaseAlarmDriver",
    "ParsedAlarm",
    "ParsedPayload",
    "severity_from_name",
    "CloudWatchDriver",
    "GenericWebhookDriver",
    "DRIVER_REGISTRY",
    "get_driver",
    "detect_driver",
]

# Registry of available drivers (order matters for detection)
DRIVER_REGISTRY: dict[str, type[BaseAlarmDriver]] = {
    "cloudwatch": CloudWatchDriver,
    "generic": GenericWebhookDriver,
}


def get_driver(name: str) -> BaseAlarmDriver:
    """
    Get a driver instance by name.

    Raises:
        ValueError: If driver name is not found.
    """
    if name not in DRIVER_REGISTRY:
        raise ValueError(
            f"Unknown driver: {name}. Available: {', '.join(DRIVER_REGISTRY.keys())}"
        )
    return DRIVER_REGISTRY[name]()


def detect_driver(payload: dict) -> BaseAlarmDriver | None:
    """
    Auto-detect the appropriate driver for a payload.

    Tries each driver's validate() method in order and returns the first match.
    The generic driver is tried last as it accepts most payloads.
    """
    for name, driver_class in DRIVER_REGISTRY.items():
        if name == "generic":
            continue  # Try generic last
        driver = driver_class()
        if driver.validate(payload):
            return driver

    # Fall back to generic driver
    generic = GenericWebhookDriver()
    if generic.validate(payload):
        return generic

    return None
