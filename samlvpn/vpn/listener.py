"""One-shot HTTP listener for the SAML callback."""

import socket
import threading
import time
from concurrent import futures
from typing import Optional, Tuple

import uvicorn

from .exceptions import CallbackTimeoutError, ListenerError
from .models import Credential
from ..logging_utility import logger
from ..main import create_callback_app


class CallbackListener:
    """
    Serve the callback app until one credential has been received.

    The listener binds its own socket so the bound address (including an
    ephemeral port) is known before the browser is opened.
    """

    def __init__(self, host: str = "0.0.0.0", port: int = 35001,
                 redirect_url: Optional[str] = None, startup_timeout: float = 10.0):
        self.host = host
        self.port = port
        self.startup_timeout = startup_timeout
        self._delivery: futures.Future = futures.Future()
        self.app = create_callback_app(self._delivery, redirect_url)
        self._socket: Optional[socket.socket] = None
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        if self._socket is None:
            raise ListenerError("Callback listener is not started")
        return self.host, self._socket.getsockname()[1]

    def _bind(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise ListenerError(f"Could not listen on {self.host}:{self.port}: {e}")
        return sock

    def start(self) -> None:
        self._socket = self._bind()
        config = uvicorn.Config(
            self.app,
            log_config=None,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [self._socket]},
            name="saml-callback",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + self.startup_timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.close()
                raise ListenerError(f"Callback listener on {self.host}:{self.port} failed to start")
            time.sleep(0.01)

        host, port = self.address
        logger.info(f"Waiting for SAML callback on {host}:{port}")

    def wait(self, timeout: Optional[float]) -> Credential:
        """
        Block until the callback delivers a credential.

        A timeout is final: later callbacks are refused.

        Raises:
            CallbackTimeoutError: nothing arrived within timeout seconds
        """
        try:
            return self._delivery.result(timeout=timeout)
        except futures.TimeoutError:
            if self._delivery.cancel():
                raise CallbackTimeoutError(f"No SAML callback received within {timeout:g} seconds")
            # Delivered between the timeout and the cancel
            return self._delivery.result()
        except futures.CancelledError:
            raise CallbackTimeoutError("SAML callback wait already expired")

    def close(self) -> None:
        """Stop serving and release the socket. Safe to call more than once."""
        self._delivery.cancel()
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=self.startup_timeout)
            if self._thread.is_alive():
                logger.warning("Callback listener thread did not stop in time")
            self._thread = None
        if self._socket is not None:
            self._socket.close()
            self._socket = None
            logger.info("Callback listener closed")
        self._server = None

    def __enter__(self) -> "CallbackListener":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
