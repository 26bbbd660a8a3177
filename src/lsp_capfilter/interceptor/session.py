"""Proxy session: spawn the language server and wire both directions.

Architecture:
    Main thread: start the child, wait for it to exit
    Relay thread: client stdin -> child stdin, verbatim
    Pipeline thread: child stdout -> InterceptionPipeline -> client stdout
    Child stderr: inherited, lands on our stderr untouched

The two relay threads share nothing; each owns its source and its sink.
The session lives exactly as long as the child: once it exits we drain
what's left of its stdout and report its exit status.
"""
from __future__ import annotations

import io
import logging
import subprocess
import sys
import threading
from collections.abc import Sequence

from lsp_capfilter.domain.policy import FilterPolicy
from lsp_capfilter.interceptor.pipeline import InterceptionPipeline, PipelineStats
from lsp_capfilter.interceptor.protocol import DEFAULT_CHUNK_SIZE, read_chunk

log = logging.getLogger(__name__)

TERMINATE_GRACE_SECONDS = 5.0
DRAIN_TIMEOUT_SECONDS = 5.0


class LaunchError(RuntimeError):
    """Raised when the language server binary cannot be started."""


class ProxySession:
    """One client <-> language server session.

    Args:
        binary: language server executable (path or name on PATH)
        args: arguments passed verbatim to the binary
        policy: capability filter policy
        client_in: where client messages come from (default: our stdin)
        client_out: where server messages go (default: our stdout)
        chunk_size: max bytes per read on either path
    """

    def __init__(
        self,
        binary: str,
        args: Sequence[str],
        policy: FilterPolicy,
        client_in: io.BufferedIOBase | None = None,
        client_out: io.BufferedIOBase | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._binary = binary
        self._args = list(args)
        self._client_in = client_in if client_in is not None else sys.stdin.buffer
        self._client_out = client_out if client_out is not None else sys.stdout.buffer
        self._chunk_size = chunk_size
        self._pipeline = InterceptionPipeline(policy, chunk_size=chunk_size)
        self._process: subprocess.Popen[bytes] | None = None
        self._relay_thread: threading.Thread | None = None
        self._pipeline_thread: threading.Thread | None = None

    @property
    def process(self) -> subprocess.Popen[bytes]:
        """The running child. Only valid after start()."""
        if self._process is None:
            raise RuntimeError("Session not started")
        return self._process

    @property
    def stats(self) -> PipelineStats:
        return self._pipeline.stats

    def start(self) -> None:
        """Launch the child and start both relay threads.

        Raises:
            LaunchError: the binary is missing or not executable
        """
        command = [self._binary, *self._args]
        try:
            self._process = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=None,
            )
        except OSError as exc:
            raise LaunchError(f"Cannot start {self._binary!r}: {exc}") from exc
        log.debug("Started %s as pid %d", command, self._process.pid)

        self._pipeline_thread = threading.Thread(
            target=self._pipeline.run,
            args=(self._process.stdout, self._client_out),
            name="server-to-client",
            daemon=True,
        )
        # Daemon: a blocked read on our stdin must not keep us alive after the child is gone.
        self._relay_thread = threading.Thread(
            target=self._relay_client_input,
            name="client-to-server",
            daemon=True,
        )
        self._pipeline_thread.start()
        self._relay_thread.start()

    def wait(self) -> int:
        """Block until the child exits and its output is drained.

        Returns the child's exit status; death by signal N maps to 128 + N.
        """
        returncode = self.process.wait()
        if self._pipeline_thread is not None:
            self._pipeline_thread.join(timeout=DRAIN_TIMEOUT_SECONDS)
            if self._pipeline_thread.is_alive():
                log.warning("Server output still open %.0fs after exit",
                            DRAIN_TIMEOUT_SECONDS)
        log.info("Language server exited with status %d", returncode)
        return 128 - returncode if returncode < 0 else returncode

    def stop(self) -> None:
        """Cancel the session: terminate the child, kill it if it lingers.

        The child's stdout closes with it, which ends the pipeline thread.
        """
        process = self._process
        if process is None or process.poll() is not None:
            return
        log.info("Terminating language server (pid %d)", process.pid)
        process.terminate()
        try:
            process.wait(timeout=TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            log.warning("Language server ignored SIGTERM, killing it")
            process.kill()
            process.wait()

    def run(self) -> int:
        """start() + wait(), stopping the child on Ctrl-C."""
        self.start()
        try:
            return self.wait()
        except KeyboardInterrupt:
            self.stop()
            return self.wait()

    def _relay_client_input(self) -> None:
        """Copy client bytes to the child until either side closes."""
        child_stdin = self.process.stdin
        try:
            while True:
                chunk = read_chunk(self._client_in, self._chunk_size)
                if not chunk:
                    log.debug("Client input closed")
                    break
                child_stdin.write(chunk)
                child_stdin.flush()
        except (BrokenPipeError, ValueError):
            # ValueError: the pipe was closed under us by Popen during shutdown
            log.debug("Server input closed, stopping client relay")
        except OSError:
            log.exception("I/O error relaying client input")
        finally:
            try:
                child_stdin.close()
            except OSError:
                pass
