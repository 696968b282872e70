import time
from enum import Enum

from backend import BackendForwarder
from http_server import CommandServer
from logger import logging
from message_handler import TelemetryBridge
from mqtt import BrokerClient, create_mqtt_client
from signals import ShutdownFlag


class GatewayState(Enum):
    NOT_STARTED = "not_started"
    INITIALIZING = "initializing"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Gateway:
    """Starts the forwarder, broker client and command listener in that order
    and releases them in reverse.

    Components can be passed in; anything omitted is built from the config.
    """

    def __init__(self, config, shutdown=None, forwarder=None, broker=None, listener=None,
                 mqtt_client_factory=create_mqtt_client):
        self.config = config
        self.shutdown = shutdown or ShutdownFlag()
        self.forwarder = forwarder or BackendForwarder(config.backend_url, config.backend_timeout)
        self.bridge = TelemetryBridge(config.telemetry_topic, config.max_body_size, self.forwarder)
        self.broker = broker or BrokerClient(config, self.bridge.on_message, mqtt_client_factory)
        self.listener = listener or CommandServer(config, self.broker)
        self.state = GatewayState.NOT_STARTED
        self._release = []

    def start(self) -> bool:
        if self.state is not GatewayState.NOT_STARTED:
            raise RuntimeError(f"Gateway cannot start from state {self.state.value}")
        self.state = GatewayState.INITIALIZING
        logging.info("Gateway starting...")

        steps = (
            ("HTTP client", self.forwarder.open, self.forwarder.close),
            ("Broker client", self.broker.connect, self.broker.close),
            ("Command listener", self.listener.start, self.listener.stop),
        )
        for name, acquire, release in steps:
            try:
                acquire()
            except Exception as e:
                logging.error(f"{name} init failed: {e}")
                self._teardown()
                return False
            self._release.append((name, release))

        self.state = GatewayState.RUNNING
        logging.info("Gateway running. Press Ctrl+C to exit.")
        return True

    def run(self) -> None:
        if self.state is not GatewayState.RUNNING:
            raise RuntimeError(f"Gateway is not running (state {self.state.value})")
        while not self.shutdown.is_set():
            time.sleep(self.config.poll_interval)
        self.state = GatewayState.STOPPING

    def stop(self) -> None:
        if self.state in (GatewayState.NOT_STARTED, GatewayState.STOPPED):
            return
        self.state = GatewayState.STOPPING
        logging.info("Gateway shutting down...")
        self._teardown()

    def _teardown(self) -> None:
        while self._release:
            name, release = self._release.pop()
            try:
                release()
            except Exception:
                logging.exception(f"Error releasing {name}")
        self.state = GatewayState.STOPPED
