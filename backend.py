import requests

from logger import logging

JSON_HEADERS = {"Content-Type": "application/json"}


class BackendForwarder:
    """Single-attempt JSON POSTs of telemetry to the HTTP backend."""

    def __init__(self, url, timeout=None):
        self.url = url
        self.timeout = timeout
        self.session = None

    def open(self) -> None:
        if self.session is None:
            self.session = requests.Session()

    def close(self) -> None:
        session, self.session = self.session, None
        if session is not None:
            session.close()

    def forward(self, payload) -> bool:
        session = self.session
        if session is None:
            logging.error("Cannot forward telemetry: HTTP client not initialized")
            return False

        body = bytes(payload)
        headers = dict(JSON_HEADERS, **{"Content-Length": str(len(body))})
        logging.debug(f"POST {self.url} ({len(body)} bytes)")
        try:
            with session.post(self.url, data=body, headers=headers, timeout=self.timeout) as response:
                status = response.status_code
        except requests.RequestException as e:
            logging.error(f"Request to {self.url} failed: {e}")
            return False

        logging.debug(f"Response status: {status}")
        if 200 <= status < 300:
            return True
        logging.error(f"Backend rejected telemetry (Status: {status})")
        return False
