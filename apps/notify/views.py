"""
Device registration views.

Devices are scoped to the caller: a responder can only see, register and
remove their own push targets.
"""

import logging
from urllib.parse import unquote

from apps.notify.models import Device, DevicePlatform
from apps.notify.services import DeviceService
from config.api import ApiView, parse_json_body

logger = logging.getLogger(__name__)


class DeviceListView(ApiView):
    """
    GET  /devices/  -> caller's devices
    POST /devices/  {"token": "...", "platform": "ios|android|web"}
    """

    def get(self, request):
        devices = Device.objects.filter(user_id=self.caller_id)
        return self.json_response({"devices": [d.to_dict() for d in devices]})

    def post(self, request):
        body = parse_json_body(request)
        token = body.get("token") or body.get("device_token")
        platform = body.get("platform")

        if not token or not platform:
            return self.error_response("Missing token or platform")
        if not isinstance(token, str) or len(token) > Device._meta.get_field("token").max_length:
            return self.error_response("Invalid token")
        if platform not in DevicePlatform.values:
            return self.error_response("Invalid platform")

        device, created = DeviceService().register(self.caller_id, token, platform)
        return self.json_response(
            {"message": "Device registered", "device": device.to_dict()},
            status=201 if created else 200,
        )


class DeviceDetailView(ApiView):
    """DELETE /devices/<token>/"""

    def delete(self, request, token):
        if not DeviceService().unregister(self.caller_id, unquote(token)):
            return self.error_response("Device not found", status=404)
        return self.json_response({"message": "Device unregistered"})
