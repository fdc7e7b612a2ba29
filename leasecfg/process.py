"""
leasecfg/process.py - Detached process invocation
"""

from dataclasses import dataclass
import errno
import logging
import os
import select
import subprocess
from threading import Thread

from leasecfg.eventqueue import EventQueue
from leasecfg.service import Provider


logger = logging.getLogger("process")


# Interval at which the worker wakes up to reap children when idle
REAP_INTERVAL = 1.0

# Longest wait for a command run in the foreground
RUN_TIMEOUT = 10.0


@dataclass(frozen=True)
class Command:
    """
    An executable and its arguments.

    ``input`` is written to the standard input of the process when given.
    """
    path: str
    args: tuple[str, ...] = ()
    input: str | None = None

    def add(self, *args: str) -> "Command":
        "Return a copy with ``args`` appended"
        return Command(self.path, self.args + tuple(str(arg) for arg in args), self.input)

    def with_input(self, input: str) -> "Command":
        return Command(self.path, self.args, input)

    @property
    def argv(self) -> list[str]:
        return [self.path, *self.args]

    def __str__(self):
        return " ".join(self.argv)


class ProcessInvoker(Provider):
    """
    Fire-and-forget process launcher.

    Commands submitted with ``submit()`` are handed to a worker thread which
    starts each one in its own session, feeds it its input and reaps it once
    it exits. Exit status is never reported back. Failures to start are
    logged.
    """
    def __init__(self):
        super().__init__()
        self.queue = EventQueue()
        self.children: list[subprocess.Popen] = []
        self.running = False
        self.thread: Thread | None = None

    def submit(self, command: Command) -> None:
        logger.debug(f"Queueing \"{command}\"")
        self.queue.put(command)

    def run_hook(self, script: str, infofile: str, reason: str, default_script: str | None = None) -> None:
        """
        Run a lifecycle hook as ``script infofile reason``.

        A missing script is skipped. It is only reported when it is not the
        default script, which is allowed to be absent.
        """
        if not script:
            return
        if not os.path.exists(script):
            if script != default_script:
                logger.error(f"`{script}': {os.strerror(errno.ENOENT)}")
            return
        logger.debug(f"exec \"{script} {infofile} {reason}\"")
        self.submit(Command(script).add(infofile, reason))

    def run(self, command: Command, timeout: float = RUN_TIMEOUT) -> bool:
        """
        Run the command and wait for it to exit, for at most timeout seconds.
        Returns True if it exited with status 0. Used when the caller depends
        on what the command does, unlike ``submit()``.
        """
        logger.debug(f"exec \"{command}\"")
        if command.input is not None:
            io = {"input": command.input.encode()}
        else:
            io = {"stdin": subprocess.DEVNULL}
        try:
            result = subprocess.run(command.argv, timeout=timeout, close_fds=True, **io)
        except subprocess.TimeoutExpired:
            logger.error(f"\"{command.path}\" did not finish within {timeout} seconds")
            return False
        except OSError as e:
            logger.error(f"error executing \"{command.path}\": {e.strerror}")
            return False
        if result.returncode != 0:
            logger.error(f"\"{command.path}\" exited with status {result.returncode}")
            return False
        return True

    def spawn(self, command: Command) -> subprocess.Popen | None:
        """
        Start the process without waiting for it. Returns None if it could not
        be started.
        """
        try:
            process = subprocess.Popen(
                command.argv,
                stdin=subprocess.PIPE if command.input is not None else subprocess.DEVNULL,
                start_new_session=True,
                close_fds=True,
            )
        except FileNotFoundError:
            logger.error(f"error executing \"{command.path}\": no such file")
            return None
        except OSError as e:
            logger.error(f"error executing \"{command.path}\": {e.strerror}")
            return None

        if command.input is not None:
            try:
                process.stdin.write(command.input.encode())
            except BrokenPipeError:
                logger.error(f"\"{command.path}\" closed its input early")
            finally:
                try:
                    process.stdin.close()
                except BrokenPipeError:
                    pass

        self.children.append(process)
        return process

    def reap(self) -> None:
        for process in self.children.copy():
            if process.poll() is not None:
                self.children.remove(process)

    def run_pending(self) -> None:
        "Start every queued command"
        while True:
            try:
                command = self.queue.get()
            except BlockingIOError:
                break
            self.spawn(command)
        self.reap()

    def worker(self):
        poller = select.poll()
        poller.register(self.queue, select.POLLIN)

        while self.running:
            poller.poll(REAP_INTERVAL * 1000)
            self.run_pending()

    def start(self):
        self.running = True
        self.thread = Thread(target=self.worker, name="ProcessInvokerThread", daemon=True)
        self.thread.start()

    def stop(self):
        self.running = False
        if self.thread:
            self.thread.join(REAP_INTERVAL * 2)
            self.thread = None
        self.run_pending()
