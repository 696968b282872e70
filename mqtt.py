import paho.mqtt.client as mqtt
from logger import logging, log_published_command

QOS_AT_LEAST_ONCE = 1


class BrokerError(Exception):
    pass


def create_mqtt_client(client_id):
    return mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id, clean_session=True)


class BrokerClient:
    """Owns the single paho client: telemetry subscription in, commands out."""

    def __init__(self, config, on_message, client_factory=create_mqtt_client):
        self.config = config
        self.on_message = on_message
        self.client_factory = client_factory
        self.client = None

    @property
    def connected(self) -> bool:
        return self.client is not None

    def on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            logging.info("Connected to broker successfully")
            # Subscriptions do not survive a clean-session reconnect
            client.subscribe(self.config.telemetry_topic, qos=QOS_AT_LEAST_ONCE)
            logging.info(f"Subscribed to topic: {self.config.telemetry_topic}")
        else:
            logging.error(f"Failed to connect with reason code {reason_code}")

    def on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            logging.info("Disconnected from broker")
        else:
            logging.warning(f"Unexpected disconnect from broker (reason code {reason_code})")

    def connect(self) -> None:
        client = self.client_factory(self.config.client_id)
        client.on_connect = self.on_connect
        client.on_disconnect = self.on_disconnect
        client.on_message = self.on_message

        logging.info(f"Connecting to broker at {self.config.broker_address}:{self.config.broker_port}...")
        try:
            client.connect(self.config.broker_address, self.config.broker_port, keepalive=self.config.keepalive)
        except Exception as e:
            raise BrokerError(f"Failed to connect to broker: {e}") from e

        rc = client.loop_start()
        if rc != mqtt.MQTT_ERR_SUCCESS:
            client.disconnect()
            raise BrokerError(f"Failed to start network loop: {mqtt.error_string(rc)}")

        rc, _ = client.subscribe(self.config.telemetry_topic, qos=QOS_AT_LEAST_ONCE)
        if rc != mqtt.MQTT_ERR_SUCCESS:
            client.loop_stop()
            client.disconnect()
            raise BrokerError(f"Failed to subscribe to {self.config.telemetry_topic}: {mqtt.error_string(rc)}")

        self.client = client

    def publish_command(self, payload) -> bool:
        client = self.client
        if client is None:
            logging.error("Cannot publish command: broker client not initialized")
            return False

        try:
            result = client.publish(self.config.command_topic, payload, qos=QOS_AT_LEAST_ONCE, retain=False)
        except (ValueError, TypeError, OSError) as e:
            logging.error(f"Failed to publish command to {self.config.command_topic}: {e}")
            return False

        if result.rc == mqtt.MQTT_ERR_SUCCESS:
            log_published_command(self.config.command_topic, payload, len(payload), "Published")
            return True
        logging.error(f"Failed to publish command to {self.config.command_topic} "
                      f"(Status: {result.rc}, {mqtt.error_string(result.rc)})")
        return False

    def close(self) -> None:
        client, self.client = self.client, None
        if client is None:
            return
        client.loop_stop()
        client.disconnect()
        logging.info("Broker client closed")
