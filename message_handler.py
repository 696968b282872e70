from typing import Optional

from bounded_buffer import BoundedBuffer
from logger import logging, log_forwarded_telemetry


class TelemetryBridge:
    """Forwards broker messages on the telemetry topic to the HTTP backend."""

    def __init__(self, telemetry_topic, capacity, forwarder):
        self.telemetry_topic = telemetry_topic
        self.capacity = capacity
        self.forwarder = forwarder

    def handle(self, topic, payload) -> Optional[bool]:
        """Return the forward result, or None if the topic is not the telemetry topic."""
        if topic != self.telemetry_topic:
            logging.debug(f"Topic {topic} is not telemetry, ignoring")
            return None

        buffer = BoundedBuffer.fill(self.capacity, payload)
        if buffer.overflowed:
            logging.warning(f"Telemetry on {topic} truncated to {buffer.limit} bytes "
                            f"({buffer.dropped} bytes dropped)")

        body = buffer.getvalue()
        ok = self.forwarder.forward(body)
        action = "Forwarded" if ok else "Forward failed"
        log_forwarded_telemetry(topic, self.forwarder.url, body, len(body), action)
        return ok

    def on_message(self, client, userdata, msg) -> None:
        """Handle incoming MQTT messages."""
        try:
            self.handle(msg.topic, msg.payload)
        except Exception:
            # Runs on the paho network thread; keep the loop alive for later messages
            logging.exception(f"Error handling message on {msg.topic}")
