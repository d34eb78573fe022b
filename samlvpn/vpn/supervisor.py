"""Launch and watch the OpenVPN client process."""

import subprocess
import sys
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Optional, TextIO

from .command_factory import VPNCommandFactory
from .commands import CommandError
from .exceptions import ProcessLaunchError
from .models import AttemptOutcome, ProcessResult
from ..logging_utility import logger

AUTH_FAILED_MARKER = "AUTH_FAILED"
POLL_INTERVAL = 0.1


class _Terminator:
    """Issues at most one termination request for a process."""

    def __init__(self, process: subprocess.Popen):
        self._process = process
        self._lock = threading.Lock()
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def fire(self) -> None:
        with self._lock:
            if self._fired:
                return
            self._fired = True
        if self._process.poll() is None:
            logger.info(f"Terminating VPN client (pid {self._process.pid})")
            self._process.terminate()


class ProcessSupervisor:
    """
    Runs the VPN client with a credentials file and classifies how it ended.

    Client output is copied to ``output`` as it arrives. A line containing the
    authentication failure marker stops the client immediately.
    """

    def __init__(
            self,
            binary: Path,
            config_file: Path,
            use_sudo: bool = False,
            output: Optional[TextIO] = None,
            marker: str = AUTH_FAILED_MARKER,
            terminate_timeout: float = 10.0,
    ):
        self.binary = binary
        self.config_file = config_file
        self.use_sudo = use_sudo
        self.output = output or sys.stdout
        self.marker = marker
        self.terminate_timeout = terminate_timeout

    def run(self, credentials_path: Path) -> ProcessResult:
        """
        Start the client and block until it exits.

        Args:
            credentials_path: auth-user-pass file for this attempt

        Returns:
            ProcessResult with the outcome and exit code

        Raises:
            ProcessLaunchError: the client could not be spawned
        """
        try:
            cmd = VPNCommandFactory.start_vpn(
                binary=self.binary,
                config_path=self.config_file,
                credentials_path=credentials_path,
                use_sudo=self.use_sudo,
            )
        except CommandError as e:
            raise ProcessLaunchError(f"Invalid VPN client command: {e}")

        logger.info(f"Starting VPN client: {' '.join(cmd)}")
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise ProcessLaunchError(f"Failed to start VPN client {cmd[0]}: {e}")

        terminator = _Terminator(process)
        marker_seen: Future = Future()
        reader = threading.Thread(
            target=self._scan_output,
            args=(process, terminator, marker_seen),
            name="vpn-output",
            daemon=True,
        )
        reader.start()

        try:
            returncode = self._wait(process, terminator)
        finally:
            if process.poll() is None:
                self._stop(process, terminator)
            # Drain remaining output so a marker printed just before exit is seen
            reader.join(timeout=self.terminate_timeout)

        if marker_seen.done() and marker_seen.result():
            logger.warning(f"VPN client rejected the credentials (exit code {returncode})")
            return ProcessResult(AttemptOutcome.AUTH_FAILED, returncode)
        if returncode == 0:
            logger.info("VPN client exited normally")
            return ProcessResult(AttemptOutcome.SUCCESS, returncode)
        logger.error(f"VPN client exited with code {returncode}")
        return ProcessResult(AttemptOutcome.OTHER_ERROR, returncode)

    def _scan_output(self, process: subprocess.Popen, terminator: _Terminator, marker_seen: Future) -> None:
        try:
            for line in process.stdout:
                self.output.write(line)
                self.output.flush()
                if self.marker in line and not marker_seen.done():
                    marker_seen.set_result(True)
                    terminator.fire()
        finally:
            if not marker_seen.done():
                marker_seen.set_result(False)
            process.stdout.close()

    def _wait(self, process: subprocess.Popen, terminator: _Terminator) -> int:
        """Wait for exit; once termination was requested, allow terminate_timeout then kill."""
        while not terminator.fired:
            try:
                return process.wait(timeout=POLL_INTERVAL)
            except subprocess.TimeoutExpired:
                continue
        self._stop(process, terminator)
        return process.returncode

    def _stop(self, process: subprocess.Popen, terminator: _Terminator) -> None:
        terminator.fire()
        try:
            process.wait(timeout=self.terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"VPN client (pid {process.pid}) ignored SIGTERM, killing it")
            process.kill()
            process.wait()
