"""Subprocess execution engine.

Runs shell command strings, streams stdout and stderr line by line as they
arrive, and enforces a per-command timeout. Both streams are treated as
informational output: many installers report progress on stderr.
"""
import queue
import subprocess
import threading
import time
from contextlib import closing
from typing import Callable, Iterator, List, Optional, Tuple

from loguru import logger

from depwright.core.constants import INSTALL_TIMEOUT
from depwright.core.models import CommandResult, InstallProgressEvent, SequenceResult
from depwright.core.types import ProgressEventType
from depwright.utils.platform_utils import PlatformUtils
from depwright.utils.process_utils import ProcessUtils

STDOUT = "stdout"
STDERR = "stderr"

# Lines of stderr quoted in a failure message
STDERR_TAIL_LINES = 20
_POLL_INTERVAL = 0.2
_KILL_WAIT = 5.0

OutputCallback = Callable[[str, str], None]
ProgressCallback = Callable[[InstallProgressEvent], None]


def _pump(pipe, stream_name: str, sink: queue.Queue) -> None:
    """Forward lines from a pipe into the queue, then a None end marker."""
    try:
        for line in iter(pipe.readline, ""):
            sink.put((stream_name, line.rstrip("\r\n")))
    except (OSError, ValueError) as e:
        logger.debug(f"[CommandRunner] {stream_name} reader stopped: {e}")
    finally:
        try:
            pipe.close()
        except OSError:
            pass
        sink.put((stream_name, None))


class CommandRunner:
    """Runs install and check commands through the host shell."""

    def __init__(self, timeout: float = INSTALL_TIMEOUT):
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    def run(
        self,
        command: str,
        working_directory: Optional[str] = None,
        on_output: Optional[OutputCallback] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """
        Run one command to completion.

        Args:
            command: Shell command string (may contain pipes and chains)
            working_directory: Directory to run in
            on_output: Called with (stream, line) for every output line
            timeout: Seconds before the process tree is killed

        Returns:
            CommandResult, truthy only when the exit code is 0
        """
        result = CommandResult(command=command)
        with closing(self._execute(command, working_directory, timeout, result)) as lines:
            for stream_name, line in lines:
                if stream_name == STDOUT:
                    result.stdout.append(line)
                else:
                    result.stderr.append(line)
                if on_output:
                    self._notify(on_output, stream_name, line)
        return result

    def stream(
        self,
        commands: List[str],
        working_directory: Optional[str] = None,
    ) -> Iterator[InstallProgressEvent]:
        """
        Run commands strictly in order, yielding progress events.

        The sequence is lazy, ordered and finite, and ends with exactly one
        install-complete or install-error event. The first failing command
        stops the sequence. Abandoning the iterator kills a running command.
        """
        total = len(commands)
        for index, command in enumerate(commands):
            logger.info(f"[CommandRunner] Running command {index + 1}/{total}: {command}")
            yield InstallProgressEvent(ProgressEventType.COMMAND_START, index, total, command=command)

            result = CommandResult(command=command)
            with closing(self._execute(command, working_directory, None, result)) as lines:
                for stream_name, line in lines:
                    if stream_name == STDOUT:
                        result.stdout.append(line)
                        yield InstallProgressEvent(
                            ProgressEventType.COMMAND_OUTPUT, index, total, command=command, output=line
                        )
                    else:
                        result.stderr.append(line)
                        yield InstallProgressEvent(
                            ProgressEventType.COMMAND_ERROR, index, total, command=command, error=line
                        )

            yield InstallProgressEvent(
                ProgressEventType.COMMAND_COMPLETE,
                index,
                total,
                command=command,
                exit_code=result.exit_code,
                error=result.describe_failure(),
            )

            if not result.success:
                message = self._format_failure(index, total, result)
                logger.error(f"[CommandRunner] {message}")
                yield InstallProgressEvent(
                    ProgressEventType.INSTALL_ERROR, index, total, command=command, error=message
                )
                return

        logger.info(f"[CommandRunner] All {total} command(s) completed")
        yield InstallProgressEvent(ProgressEventType.INSTALL_COMPLETE, max(total - 1, 0), total)

    def run_sequence(
        self,
        commands: List[str],
        working_directory: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SequenceResult:
        """
        Run commands in order and forward every event to on_progress.

        Returns:
            SequenceResult with the failing command index on failure
        """
        last_event = None
        with closing(self.stream(commands, working_directory)) as events:
            for event in events:
                last_event = event
                if on_progress:
                    self._notify(on_progress, event)

        if last_event is None or last_event.type == ProgressEventType.INSTALL_COMPLETE:
            return SequenceResult(success=True)
        return SequenceResult(success=False, error=last_event.error, failed_index=last_event.command_index)

    def _execute(
        self,
        command: str,
        working_directory: Optional[str],
        timeout: Optional[float],
        result: CommandResult,
    ) -> Iterator[Tuple[str, str]]:
        """Spawn the command and yield (stream, line) pairs; fills exit info into result."""
        timeout = timeout if timeout is not None else self._timeout

        try:
            proc = subprocess.Popen(
                command,
                shell=True,
                cwd=working_directory,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                creationflags=PlatformUtils.get_subprocess_flags(),
                startupinfo=PlatformUtils.get_startupinfo(),
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            logger.error(f"[CommandRunner] Failed to start command {command}: {e}")
            result.spawn_error = str(e)
            return

        lines: queue.Queue = queue.Queue()
        readers = [
            threading.Thread(target=_pump, args=(proc.stdout, STDOUT, lines), daemon=True),
            threading.Thread(target=_pump, args=(proc.stderr, STDERR, lines), daemon=True),
        ]
        for reader in readers:
            reader.start()

        deadline = time.monotonic() + timeout
        open_streams = len(readers)
        try:
            while open_streams:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    result.timed_out = True
                    break
                try:
                    stream_name, line = lines.get(timeout=min(remaining, _POLL_INTERVAL))
                except queue.Empty:
                    continue
                if line is None:
                    open_streams -= 1
                    continue
                yield stream_name, line

            if not result.timed_out:
                try:
                    result.exit_code = proc.wait(timeout=max(deadline - time.monotonic(), 0.01))
                except subprocess.TimeoutExpired:
                    result.timed_out = True
        finally:
            if proc.poll() is None:
                if result.timed_out:
                    logger.warning(f"[CommandRunner] Command timed out after {timeout}s: {command}")
                ProcessUtils.kill_process_tree(proc.pid)
                try:
                    proc.wait(timeout=_KILL_WAIT)
                except subprocess.TimeoutExpired:
                    logger.error(f"[CommandRunner] Process {proc.pid} did not exit after kill")
            if result.exit_code is None and proc.returncode is not None and not result.timed_out:
                result.exit_code = proc.returncode

    @staticmethod
    def _format_failure(index: int, total: int, result: CommandResult) -> str:
        message = f"Command {index + 1}/{total} {result.describe_failure()}: {result.command}"
        tail = result.stderr[-STDERR_TAIL_LINES:]
        if tail:
            message += "\n" + "\n".join(tail)
        return message

    @staticmethod
    def _notify(callback: Callable, *args) -> None:
        try:
            callback(*args)
        except Exception as e:
            logger.warning(f"[CommandRunner] Progress callback failed: {e}")
