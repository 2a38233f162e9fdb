import logging

import pusher

logger = logging.getLogger(__name__)

CHAT_CHANNEL = "chat"
MESSAGE_EVENT = "message"


class RealtimeNotifier:
    """Best-effort publish to Pusher Channels.

    ``publish`` never raises. The stored record is the durable write, the
    realtime event is a convenience for connected clients.
    """

    def __init__(self, client=None):
        self.client = client

    @classmethod
    def from_settings(cls, settings):
        if not settings.pusher_configured:
            logger.warning("Pusher credentials missing, realtime publish disabled")
            return cls(None)
        client = pusher.Pusher(
            app_id=settings.pusher_app_id,
            key=settings.pusher_key,
            secret=settings.pusher_secret,
            cluster=settings.pusher_cluster,
            ssl=True,
        )
        return cls(client)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def publish(self, channel: str, event: str, payload: dict) -> None:
        if not self.enabled:
            logger.debug("Realtime disabled, dropping %s/%s", channel, event)
            return
        try:
            self.client.trigger(channel, event, payload)
        except Exception:
            logger.exception("Realtime publish to %s/%s failed", channel, event)
