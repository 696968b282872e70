import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import SimpleNamespace

import paho.mqtt.client as paho
import pytest

from load_config import GatewayConfig


@pytest.fixture
def config():
    return GatewayConfig(
        broker_address="broker.test",
        client_id="test_gateway",
        http_host="127.0.0.1",
        http_port=0,
        read_chunk_size=8,
        backend_url="http://127.0.0.1:9/api/telemetry",
        backend_timeout=2.0,
        max_body_size=32,
        poll_interval=0.01,
    )


class FakePublisher:
    def __init__(self, result=True):
        self.result = result
        self.payloads = []

    def publish_command(self, payload):
        self.payloads.append(bytes(payload))
        return self.result


class FakeForwarder:
    url = "http://backend.test/api/telemetry"

    def __init__(self, result=True):
        self.result = result
        self.payloads = []

    def forward(self, payload):
        self.payloads.append(bytes(payload))
        return self.result


class FakeMqttClient:
    """Stands in for paho.mqtt.client.Client and records what the gateway asks of it."""

    def __init__(self, client_id):
        self.client_id = client_id
        self.calls = []
        self.published = []
        self.subscriptions = []
        self.connect_error = None
        self.loop_rc = paho.MQTT_ERR_SUCCESS
        self.subscribe_rc = paho.MQTT_ERR_SUCCESS
        self.publish_rc = paho.MQTT_ERR_SUCCESS
        self.publish_error = None
        self.on_connect = None
        self.on_disconnect = None
        self.on_message = None

    def connect(self, host, port, keepalive=60):
        self.calls.append(("connect", host, port, keepalive))
        if self.connect_error is not None:
            raise self.connect_error

    def loop_start(self):
        self.calls.append(("loop_start",))
        return self.loop_rc

    def loop_stop(self):
        self.calls.append(("loop_stop",))

    def disconnect(self):
        self.calls.append(("disconnect",))

    def subscribe(self, topic, qos=0):
        self.calls.append(("subscribe", topic, qos))
        self.subscriptions.append((topic, qos))
        return self.subscribe_rc, 1

    def publish(self, topic, payload, qos=0, retain=False):
        self.calls.append(("publish", topic))
        if self.publish_error is not None:
            raise self.publish_error
        if self.publish_rc == paho.MQTT_ERR_SUCCESS:
            self.published.append((topic, bytes(payload), qos, retain))
        return SimpleNamespace(rc=self.publish_rc, mid=len(self.published))

    def deliver(self, topic, payload):
        self.on_message(self, None, SimpleNamespace(topic=topic, payload=payload))


@pytest.fixture
def fake_mqtt():
    """Factory that remembers the clients it built; configure them via `prepare`."""
    built = []
    settings = {}

    def factory(client_id):
        client = FakeMqttClient(client_id)
        for key, value in settings.items():
            setattr(client, key, value)
        built.append(client)
        return client

    factory.built = built
    factory.prepare = settings.update
    return factory


class RecordingBackend:
    def __init__(self):
        self.requests = []
        self.status = 200
        self.httpd = None
        self.thread = None

    @property
    def url(self):
        host, port = self.httpd.server_address[:2]
        return f"http://{host}:{port}/api/telemetry"

    def start(self):
        backend = self

        class Handler(BaseHTTPRequestHandler):
            def log_message(self, fmt, *args):
                pass

            def do_POST(self):
                length = int(self.headers.get("Content-Length", 0))
                body = self.rfile.read(length)
                backend.requests.append(SimpleNamespace(path=self.path, headers=self.headers, body=body))
                self.send_response(backend.status)
                self.send_header("Content-Length", "0")
                self.end_headers()

        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)
        self.thread.start()

    def stop(self):
        self.httpd.shutdown()
        self.httpd.server_close()
        self.thread.join()


@pytest.fixture
def backend_server():
    server = RecordingBackend()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def closed_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def forwarder():
    return FakeForwarder()
