# amm_pool/monitoring.py
import socket
import threading
import time
import logging
from socketserver import ThreadingMixIn
from wsgiref.simple_server import make_server, WSGIServer

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry
from prometheus_client.exposition import make_wsgi_app

logger = logging.getLogger(__name__)


# Create a threaded WSGI server for the Prometheus metrics
class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """A WSGI server that runs in a separate thread to not block the runtime."""
    allow_reuse_address = True
    daemon_threads = True


class Monitor:
    def __init__(self, host="127.0.0.1", port=9090):
        self.host = host
        self.port = port
        self.server = None
        self.thread = None

        # Create a new, isolated registry for this runtime
        self.registry = CollectorRegistry()

        self.instructions = Counter(
            'amm_pool_instructions_total', 'Pool instructions processed',
            ['instruction', 'status'], registry=self.registry)
        self.instruction_latency = Histogram(
            'amm_pool_instruction_latency_seconds', 'Time to process an instruction',
            registry=self.registry)
        self.pool_k = Gauge(
            'amm_pool_invariant_k', 'Constant product k', ['pool'], registry=self.registry)
        self.pool_supply = Gauge(
            'amm_pool_liquidity_supply', 'Outstanding liquidity shares', ['pool'],
            registry=self.registry)

    def start_server(self, max_retries: int = 5, retry_delay: float = 2):
        """Starts the Prometheus HTTP exporter, retrying while the port is busy."""
        app = make_wsgi_app(self.registry)

        for attempt in range(max_retries):
            try:
                self.server = make_server(self.host, self.port, app, ThreadingWSGIServer)
                self.server.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

                self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
                self.thread.start()
                logger.info(f"Prometheus server started on http://{self.host}:{self.port}")
                return
            except OSError as e:
                if e.errno == 98 and attempt < max_retries - 1:  # Address already in use
                    logger.warning(f"Port {self.port} in use, retrying in {retry_delay}s "
                                   f"(attempt {attempt+1}/{max_retries})...")
                    time.sleep(retry_delay)
                else:
                    logger.error(f"Failed to bind to port {self.port}: {e}")
                    raise

    def stop_server(self):
        """Stops the HTTP server."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            logger.info("Prometheus server stopped.")

    def record_instruction(self, instruction: str, status: str, latency: float):
        self.instructions.labels(instruction=instruction, status=status).inc()
        self.instruction_latency.observe(latency)

    def observe_pool(self, pool_key, pool):
        label = str(pool_key)
        self.pool_k.labels(pool=label).set(pool.invariant)
        self.pool_supply.labels(pool=label).set(pool.liquidity_supply)
