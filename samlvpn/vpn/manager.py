"""SAML login and VPN client supervision loop."""

import sys
import time
from typing import Callable, Optional, TextIO

from .command_factory import VPNCommandFactory
from .config import Settings, validate_settings
from .credentials import CredentialStore
from .exceptions import AuthFailedError, CallbackTimeoutError, ConfigurationError, VPNError
from .listener import CallbackListener
from .models import (
    AttemptOutcome,
    AttemptState,
    Credential,
    Endpoint,
    ProcessResult,
    Session,
    SessionState,
)
from .supervisor import ProcessSupervisor
from .utils import build_authorization_url, launch_browser, load_endpoint, validate_endpoint
from ..logging_utility import logger


class SamlVPNManager:
    def __init__(
            self,
            settings: Settings,
            listener_factory: Callable[..., CallbackListener] = CallbackListener,
            supervisor: Optional[ProcessSupervisor] = None,
            store: Optional[CredentialStore] = None,
            output: Optional[TextIO] = None,
            clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.output = output or sys.stdout
        self.listener_factory = listener_factory
        self.supervisor = supervisor or ProcessSupervisor(
            binary=settings.openvpn_binary,
            config_file=settings.openvpn_config_file,
            use_sudo=settings.use_sudo,
            output=self.output,
        )
        self.store = store or CredentialStore(
            path=settings.temp_credentials_file_path,
            permissions=settings.temp_credentials_permissions,
        )
        self.endpoint: Optional[Endpoint] = None
        self.session: Optional[Session] = None
        self._clock = clock

    def prepare(self) -> Endpoint:
        """
        Validate settings and read the VPN endpoint.

        Raises:
            ConfigurationError: every configuration problem found
        """
        errors = validate_settings(self.settings)
        endpoint = None
        if self.settings.openvpn_config_file.is_file():
            try:
                endpoint = load_endpoint(self.settings.openvpn_config_file)
            except ConfigurationError as e:
                errors.extend(e.errors)
            else:
                errors.extend(validate_endpoint(endpoint))
        if errors:
            raise ConfigurationError(errors)

        self.endpoint = endpoint
        return endpoint

    def run(self) -> Session:
        """
        Log in and run the VPN client, retrying when it rejects the credentials.

        Returns:
            The finished Session; ``returncode`` is the VPN client's exit code

        Raises:
            ConfigurationError: settings are invalid, nothing was started
            CallbackTimeoutError: the browser never called back
            AuthFailedError: every attempt ended with AUTH_FAILED
            ProcessLaunchError: browser or VPN client could not be started
            CredentialIOError: the credentials file could not be written or removed
        """
        self.prepare()

        now = self._clock()
        timeout = self.settings.session_timeout
        session = Session(
            started_at=now,
            max_attempts=self.settings.auth_failed_retries + 1,
            deadline=now + timeout if timeout else None,
        )
        self.session = session

        try:
            for _ in range(session.max_attempts):
                attempt = session.begin_attempt()
                logger.info(f"Starting attempt {attempt.number}/{session.max_attempts}")

                credential = self._await_credential(session, attempt)
                result = self._launch(session, attempt, credential)

                if result.outcome is not AttemptOutcome.AUTH_FAILED:
                    return self._finish(session, result)

                session.state = SessionState.ATTEMPT_FAILED
                logger.warning(f"Attempt {attempt.number}/{session.max_attempts} failed authentication")
                if session.retries_remaining:
                    session.state = SessionState.RETRYING
                    self.output.write("VPN authentication failed, starting a new login\n")
                    self.output.flush()

            raise AuthFailedError(attempts=len(session.attempts))
        except VPNError:
            session.state = SessionState.EXHAUSTED
            raise

    def _attempt_timeout(self, session: Session) -> float:
        timeout = self.settings.server_timeout
        if session.deadline is not None:
            remaining = session.deadline - self._clock()
            if remaining <= 0:
                raise CallbackTimeoutError("Session deadline passed before the login started")
            timeout = min(timeout, remaining)
        return timeout

    def _await_credential(self, session: Session, attempt: AttemptState) -> Credential:
        session.state = SessionState.AWAITING_CALLBACK
        host, port = self.settings.server_address

        with self.listener_factory(host, port, redirect_url=self.settings.redirect_url) as listener:
            url = build_authorization_url(self.endpoint, listener.address)
            cmd = VPNCommandFactory.open_browser(self.settings.browser_command, url)
            launch_browser(cmd, run=self.settings.run_command, output=self.output)
            credential = listener.wait(self._attempt_timeout(session))

        attempt.credential = credential
        session.state = SessionState.CREDENTIAL_READY
        return credential

    def _launch(self, session: Session, attempt: AttemptState, credential: Credential) -> ProcessResult:
        session.state = SessionState.LAUNCHING
        with self.store.session(credential) as credentials_path:
            attempt.credential = None
            session.state = SessionState.RUNNING
            result = self.supervisor.run(credentials_path)

        attempt.outcome = result.outcome
        attempt.returncode = result.returncode
        return result

    @staticmethod
    def _finish(session: Session, result: ProcessResult) -> Session:
        session.state = SessionState.SUCCEEDED
        session.returncode = result.returncode
        logger.info(f"VPN session ended with exit code {result.returncode}")
        session.state = SessionState.DONE
        return session
