import os
import json
from dataclasses import dataclass
from typing import Optional

### Load Config
# Get the directory where the script is located to build the path for the config file
script_dir = os.path.dirname(os.path.abspath(__file__))
DEFAULT_CONFIG_PATH = os.path.join(script_dir, 'config.json')


@dataclass(frozen=True)
class GatewayConfig:
    broker_address: str = "127.0.0.1"
    broker_port: int = 1883
    client_id: str = "c_gateway"
    keepalive: int = 60
    command_topic: str = "robot/command"
    telemetry_topic: str = "robot/telemetry"
    http_host: str = "0.0.0.0"
    http_port: int = 8000
    command_path: str = "/command"
    read_chunk_size: int = 4096
    backend_url: str = "http://localhost:8080/api/telemetry"
    backend_timeout: Optional[float] = 10.0
    max_body_size: int = 1024
    poll_interval: float = 1.0
    log_level: str = "INFO"

    def __post_init__(self):
        if self.max_body_size < 2:
            raise ValueError(f"max_body_size must be at least 2, got {self.max_body_size}")
        if self.read_chunk_size <= 0:
            raise ValueError(f"read_chunk_size must be positive, got {self.read_chunk_size}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if not self.command_path.startswith('/'):
            raise ValueError(f"command_path must start with '/', got {self.command_path!r}")
        if self.backend_timeout is not None and self.backend_timeout <= 0:
            raise ValueError(f"backend timeout must be positive or null, got {self.backend_timeout}")
        for name in ('command_topic', 'telemetry_topic'):
            topic = getattr(self, name)
            if not topic or '+' in topic or '#' in topic:
                raise ValueError(f"{name} must be a non-empty topic without wildcards, got {topic!r}")


def section(config: dict, name: str) -> dict:
    value = config.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be an object, got {type(value).__name__}")
    return value


def from_dict(config: dict) -> GatewayConfig:
    """Map the nested config.json layout onto a GatewayConfig; absent keys keep their defaults."""
    broker = section(config, 'broker')
    topics = section(config, 'topics')
    http = section(config, 'http')
    backend = section(config, 'backend')

    # Extract necessary config values
    values = {
        'broker_address': broker.get('address'),
        'broker_port': broker.get('port'),
        'client_id': broker.get('client_id'),
        'keepalive': broker.get('keepalive'),
        'command_topic': topics.get('command'),
        'telemetry_topic': topics.get('telemetry'),
        'http_host': http.get('host'),
        'http_port': http.get('port'),
        'command_path': http.get('command_path'),
        'read_chunk_size': http.get('read_chunk_size'),
        'backend_url': backend.get('url'),
        'max_body_size': config.get('max_body_size'),
        'poll_interval': config.get('poll_interval'),
        'log_level': config.get('log_level'),
    }
    values = {key: value for key, value in values.items() if value is not None}

    # An explicit null disables the backend timeout
    if 'timeout' in backend:
        values['backend_timeout'] = backend['timeout']

    return GatewayConfig(**values)


def load(path=None) -> GatewayConfig:
    config_path = path or DEFAULT_CONFIG_PATH

    # Load configuration from the config.json file
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    with open(config_path, 'r') as config_file:
        config = json.load(config_file)

    if not isinstance(config, dict):
        raise ValueError(f"Configuration file must hold a JSON object: {config_path}")
    return from_dict(config)
