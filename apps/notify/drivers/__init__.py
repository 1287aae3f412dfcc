"""
Push drivers for delivering notifications to registered devices.
"""

from apps.notify.drivers.base import BasePushDriver, PushNotification
from apps.notify.drivers.fcm import FcmPushDriver
from apps.notify.drivers.gateway import GatewayPushDriver
from apps.notify.drivers.log import LogPushDriver

__all__ = [
    "PushNotification",
    "BasePushDriver",
    "DRIVER_REGISTRY",
    "get_driver",
]

# Registry of available push drivers
DRIVER_REGISTRY: dict[str, type[BasePushDriver]] = {
    "log": LogPushDriver,
    "gateway": GatewayPushDriver,
    "fcm": FcmPushDriver,
}


def get_driver(name: str) -> BasePushDriver:
    """
    Get a push driver instance by name.

    Raises:
        ValueError: If driver name is not found.
    """
    if name not in DRIVER_REGISTRY:
        raise ValueError(
            f"Unknown push driver: {name}. Available: {', '.join(DRIVER_REGISTRY.keys())}"
        )
    return DRIVER_REGISTRY[name]()
