import logging

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

DIVIDER = '-' * 50

def set_level(name) -> None:
    level = logging.getLevelName(str(name).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    logging.getLogger().setLevel(level)

def render_payload(payload) -> str:
    """Opaque bytes shown as text for log lines; never parsed."""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode('utf-8', errors='replace')
    return str(payload)

def log_published_command(to_topic, payload, size, action) -> None:
    logging.info(
        f"\n{DIVIDER}\n"
        f"To Topic   : {to_topic}\n"
        f"Size       : {size} bytes\n"
        f"Payload    : {render_payload(payload)}\n"
        f"Action     : {action}\n"
        f"{DIVIDER}"
    )

def log_forwarded_telemetry(from_topic, to_url, payload, size, action) -> None:
    logging.info(
        f"\n{DIVIDER}\n"
        f"From Topic : {from_topic}\n"
        f"To URL     : {to_url}\n"
        f"Size       : {size} bytes\n"
        f"Payload    : {render_payload(payload)}\n"
        f"Action     : {action}\n"
        f"{DIVIDER}"
    )
