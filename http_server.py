import sys
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

from command_state import BodyChunk, Overflow, Publish, RequestStarted, new_request, transition
from logger import logging, render_payload

ACCEPTED = (HTTPStatus.OK, "Command accepted\n")
PUBLISH_FAILED = (HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to publish command\n")
NOT_FOUND = (HTTPStatus.NOT_FOUND, "Not found\n")

MAX_CHUNK_LINE = 65537


class BadFraming(Exception):
    pass


class CommandRequestHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_message(self, fmt, *args):
        logging.debug(f"{self.address_string()} {fmt % args}")

    def handle_command(self):
        server = self.server
        path = urlsplit(self.path).path

        state = new_request(server.command_path, server.capacity)
        state, _ = transition(state, RequestStarted(self.command, path))
        try:
            for chunk in self.iter_body():
                state, effect = transition(state, BodyChunk(chunk))
                if isinstance(effect, Overflow):
                    logging.warning(f"Body too large, dropping {effect.dropped} bytes "
                                    f"past the {effect.limit} byte limit")
        except BadFraming as e:
            self.send_error(HTTPStatus.BAD_REQUEST, str(e))
            return

        state, effect = transition(state, BodyChunk(b""))
        if isinstance(effect, Publish):
            logging.info(f"{path} body: {render_payload(effect.payload)}")
            ok = server.publisher.publish_command(effect.payload)
            self.respond(*(ACCEPTED if ok else PUBLISH_FAILED))
        else:
            logging.info(f"{self.command} {path}: not found")
            self.respond(*NOT_FOUND)

    do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = do_HEAD = do_OPTIONS = handle_command

    def respond(self, status, text):
        body = text.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def iter_body(self):
        """Yield the request body in pieces of at most read_chunk_size bytes."""
        read_size = self.server.read_chunk_size
        if "chunked" in self.headers.get("Transfer-Encoding", "").lower():
            yield from self.iter_chunked(read_size)
            return

        length = self.headers.get("Content-Length")
        if length is None:
            return
        try:
            remaining = int(length)
        except ValueError:
            raise BadFraming(f"Invalid Content-Length: {length!r}")
        if remaining < 0:
            raise BadFraming(f"Invalid Content-Length: {length!r}")

        while remaining > 0:
            data = self.rfile.read(min(read_size, remaining))
            if not data:
                raise BadFraming("Body ended before Content-Length bytes arrived")
            remaining -= len(data)
            yield data

    def iter_chunked(self, read_size):
        while True:
            line = self.rfile.readline(MAX_CHUNK_LINE)
            size_field = line.split(b";", 1)[0].strip()
            try:
                size = int(size_field, 16)
            except ValueError:
                raise BadFraming(f"Invalid chunk size: {size_field!r}")
            if size < 0:
                raise BadFraming(f"Invalid chunk size: {size_field!r}")

            if size == 0:
                # Skip trailers up to the blank line
                while self.rfile.readline(MAX_CHUNK_LINE) not in (b"\r\n", b"\n", b""):
                    pass
                return

            while size > 0:
                data = self.rfile.read(min(read_size, size))
                if not data:
                    raise BadFraming("Chunked body ended early")
                size -= len(data)
                yield data
            if self.rfile.readline(MAX_CHUNK_LINE) not in (b"\r\n", b"\n"):
                raise BadFraming("Chunk data not followed by CRLF")


class CommandHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, server_address, publisher, command_path, capacity, read_chunk_size):
        self.publisher = publisher
        self.command_path = command_path
        self.capacity = capacity
        self.read_chunk_size = read_chunk_size
        super().__init__(server_address, CommandRequestHandler)

    def handle_error(self, request, client_address):
        exc = sys.exc_info()[1]
        if isinstance(exc, (BrokenPipeError, ConnectionResetError, ConnectionAbortedError, TimeoutError)):
            logging.debug(f"Client {client_address} went away: {exc}")
            return
        logging.exception(f"Error handling request from {client_address}")


class CommandServer:
    """HTTP listener for the command endpoint, served from a background thread."""

    def __init__(self, config, publisher):
        self.config = config
        self.publisher = publisher
        self.httpd = None
        self.thread = None

    @property
    def server_address(self):
        return self.httpd.server_address if self.httpd else None

    def start(self) -> None:
        self.httpd = CommandHTTPServer(
            (self.config.http_host, self.config.http_port),
            self.publisher,
            self.config.command_path,
            self.config.max_body_size,
            self.config.read_chunk_size,
        )
        self.thread = threading.Thread(
            target=self.httpd.serve_forever, kwargs={"poll_interval": 0.5}, name="command-http", daemon=True
        )
        self.thread.start()
        host, port = self.httpd.server_address[:2]
        logging.info(f"Command listener on {host}:{port}, path {self.config.command_path}")

    def stop(self) -> None:
        httpd, self.httpd = self.httpd, None
        if httpd is None:
            return
        httpd.shutdown()
        httpd.server_close()
        self.thread.join()
        self.thread = None
        logging.info("Command listener stopped")
