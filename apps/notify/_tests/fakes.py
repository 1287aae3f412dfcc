"""Test doubles for push delivery."""

from apps.notify.drivers import BasePushDriver


class RecordingPushDriver(BasePushDriver):
    """Records every send; per-token outcomes (dicts or exceptions to raise) can be scripted."""

    name = "recording"

    def __init__(self, outcomes=None):
        self.sent = []
        # token -> list of outcome dicts, consumed in order
        self.outcomes = {token: list(results) for token, results in (outcomes or {}).items()}

    def validate_config(self, config):
        return True

    def send(self, token, platform, notification, config):
        self.sent.append((token, platform, notification))
        scripted = self.outcomes.get(token)
        if scripted:
            outcome = scripted.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return {"success": True, "message_id": f"msg-{len(self.sent)}"}

    def tokens(self):
        return [token for token, _, _ in self.sent]
