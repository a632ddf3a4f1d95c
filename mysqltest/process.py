import os
import subprocess
import threading
from logging import getLogger

from .errors import LaunchError

logger = getLogger(__name__)

COPY_CHUNK_SIZE = 64 * 1024


class MysqldProcess:
    """A mysqld child process with its stdout and stderr copied into a log file.

    The process runs in its own session so signals aimed at the supervising
    process group never reach it. Two daemon threads drain stdout and stderr
    into the log file for the lifetime of the process, and a third one waits
    for the process and sets `exited` once it is gone.
    """

    def __init__(self, cmd, log_file):
        self.cmd = list(cmd)
        self.log_file = log_file
        self.process = None
        self.exited = threading.Event()
        self._log = None
        self._threads = []

    @property
    def pid(self):
        return self.process.pid if self.process is not None else None

    @property
    def returncode(self):
        return self.process.returncode if self.process is not None else None

    def _write_log(self, chunk):
        # The log is unbuffered, write() may take only part of the chunk.
        view = memoryview(chunk)
        while view:
            written = self._log.write(view)
            view = view[written:]

    def _copy_stream(self, stream, name):
        try:
            for chunk in iter(lambda: stream.read1(COPY_CHUNK_SIZE), b''):
                self._write_log(chunk)
        except (OSError, ValueError) as e:
            logger.warning(f'error copying mysqld {name} into {self.log_file}: {e}')
        finally:
            stream.close()

    def _wait(self):
        self.process.wait()
        logger.debug(f'mysqld {self.process.pid} exited with code {self.process.returncode}')
        self.exited.set()

    def run(self):
        try:
            self._log = open(self.log_file, 'wb', buffering=0)
        except OSError as e:
            raise LaunchError(f'failed to open log file {self.log_file}: {e}') from e

        try:
            self.process = subprocess.Popen(
                self.cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            self._log.close()
            raise LaunchError(f'error: failed to launch {" ".join(self.cmd)}: {e}') from e
        logger.info(f'started mysqld {self.process.pid}: {" ".join(self.cmd)}')

        pid = self.process.pid
        self._threads = [
            threading.Thread(
                target=self._copy_stream, args=(self.process.stdout, 'stdout'),
                daemon=True, name=f'MysqldStdout-{pid}',
            ),
            threading.Thread(
                target=self._copy_stream, args=(self.process.stderr, 'stderr'),
                daemon=True, name=f'MysqldStderr-{pid}',
            ),
            threading.Thread(target=self._wait, daemon=True, name=f'MysqldWait-{pid}'),
        ]
        for thread in self._threads:
            thread.start()

    def is_running(self):
        """True while the OS still knows the process and it has not exited."""
        if self.process is None or self.exited.is_set():
            return False
        try:
            os.kill(self.process.pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True

    def kill(self, timeout=5.0):
        """Force-terminate the process if it is still reachable and reap it."""
        if self.process is None:
            return
        if not self.exited.is_set():
            logger.info(f'killing mysqld {self.process.pid}')
            try:
                self.process.kill()
            except ProcessLookupError:
                pass
            if not self.exited.wait(timeout):
                logger.warning(f'mysqld {self.process.pid} did not exit {timeout}s after SIGKILL')

    def close(self, timeout=2.0):
        for thread in self._threads:
            if thread is threading.current_thread() or not thread.is_alive():
                continue
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.debug(f'{thread.name} still running after {timeout}s')
        if self._log is not None and not self._log.closed:
            self._log.close()
