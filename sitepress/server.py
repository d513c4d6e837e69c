"""Local preview server for watch mode."""

import http.server
import logging
import socketserver
import threading
from pathlib import Path


LOGGER = logging.getLogger(__name__)


class _Server(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


class PreviewServer:
    """Serves the live directory over HTTP from a background thread.

    The directory is resolved per request, so every publish is picked up
    without restarting the server.
    """

    def __init__(self, live_dir: Path, port: int = 8000, host: str = ''):
        self.live_dir = Path(live_dir).resolve()
        self.port = port
        self.host = host
        self.httpd = None
        self._thread = None

    def _handler(self):
        live_dir = str(self.live_dir)

        class Handler(http.server.SimpleHTTPRequestHandler):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, directory=live_dir, **kwargs)

            def log_message(self, format, *args):
                LOGGER.debug('%s - %s', self.address_string(), format % args)

        return Handler

    def start(self) -> None:
        self.httpd = _Server((self.host, self.port), self._handler())
        self.port = self.httpd.server_address[1]
        self._thread = threading.Thread(
            target=self.httpd.serve_forever, name='sitepress-serve', daemon=True
        )
        self._thread.start()
        LOGGER.info('Serving at http://localhost:%d/', self.port)

    def stop(self) -> None:
        if self.httpd is None:
            return
        self.httpd.shutdown()
        self.httpd.server_close()
        self._thread.join()
        self.httpd = None
