"""
Finding the dependent process and signalling it ("bumping").

The process is identified by a chain of detection criteria: the innermost
one is the target process itself, each outer one is its required ancestor
(a direct parent of the next inner one). E.g., ``[PidDetection(0),
CmdlineDetection(re.compile('nginx: master'))]`` means "an nginx master
process started directly as the container's entrypoint".

The processes can be restarted, replaced, or absent at all at any moment.
So the previously found PIDs are only used as a hint: they are re-validated
on every use, and are rediscovered if they are not valid anymore.
"""
import dataclasses
import logging
import os
import signal
from typing import Optional, Pattern, Sequence, Union

import psutil

from cmbump.errors import InitError, ProcError, SignalError

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class PidDetection:
    """
    A process with a specific PID.

    PID 0 is a special case: it always matches. It is useful as a parent
    criterion to mean the container's init-like process (which has no parent).
    """
    pid: int

    def __str__(self) -> str:
        return f"pid={self.pid}"


@dataclasses.dataclass(frozen=True)
class CmdlineDetection:
    """
    A process with the command line matching the pattern (anywhere in it).

    The command line is matched as the space-joined arguments of the process.
    """
    pattern: Pattern[str]

    def __str__(self) -> str:
        return f"cmdline~{self.pattern.pattern!r}"


ProcessDetection = Union[PidDetection, CmdlineDetection]


class ProcessDetector:
    """
    One link of the process chain: the criterion, its last known PID, its parent.

    The detectors own their parents, so the whole chain is referenced by its
    innermost link (the target process); the outermost link has no parent.
    """

    def __init__(
            self,
            detection: ProcessDetection,
            *,
            parent: Optional["ProcessDetector"] = None,
    ) -> None:
        super().__init__()
        self.detection = detection
        self.parent = parent
        self.cached_pid: Optional[int] = None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.detection} pid={self.cached_pid} parent={self.parent!r}>"

    def pid(self) -> Optional[int]:
        """
        Get the PID of the currently running process (if any) of this criterion.

        The parents are resolved first. If a parent is required but not found,
        there is no point in looking for this process: nothing can match.
        """
        ppid: Optional[int] = None
        if self.parent is not None:
            ppid = self.parent.pid()
            if ppid is None:
                logger.debug(f"The parent of {self.detection} is required but is not found.")
                return None

        if not self._valid(ppid):
            logger.debug(f"The known pid={self.cached_pid} of {self.detection} is invalid; rediscovering.")
            self.cached_pid = self._find_pid(ppid)

        logger.debug(f"The process of {self.detection} is pid={self.cached_pid}.")
        return self.cached_pid

    def _valid(self, ppid: Optional[int]) -> bool:
        pid = self.cached_pid
        if pid is None:
            return False

        try:
            if isinstance(self.detection, PidDetection):
                if pid != self.detection.pid:
                    return False
                if pid == 0:
                    return True
                if not pid_exists(pid):
                    return False
            else:
                cmdline = read_cmdline(pid)
                if not self.detection.pattern.search(cmdline):
                    return False
            if ppid is not None and not is_parent(ppid, pid):
                return False
        except ProcError as e:
            logger.warning(f"Failed to check if the process {pid} is still valid: {e}")
            return False
        return True

    def _find_pid(self, ppid: Optional[int]) -> Optional[int]:
        try:
            if isinstance(self.detection, CmdlineDetection):
                pid = scan_processes(self.detection.pattern)
                if pid is not None and ppid is not None and not is_parent(ppid, pid):
                    logger.debug(f"The first process of {self.detection} is {pid}, but it has a wrong parent.")
                    return None
                return pid
            elif self.detection.pid == 0:
                return 0
            elif not pid_exists(self.detection.pid):
                logger.debug(f"The required process {self.detection.pid} is not found.")
                return None
            elif ppid is not None and not is_parent(ppid, self.detection.pid):
                logger.debug(f"The required process {self.detection.pid} has a wrong parent.")
                return None
            else:
                return self.detection.pid
        except ProcError as e:
            logger.error(f"Failed to scan the processes for {self.detection}: {e}")
            return None


class Bumper:
    """
    Signal the process identified by the chain of criteria (outermost first).
    """

    def __init__(
            self,
            detections: Sequence[ProcessDetection],
            signal_name: str,
    ) -> None:
        super().__init__()
        if not detections:
            raise InitError("At least one process detection must be defined.")
        if isinstance(detections[-1], PidDetection) and detections[-1].pid == 0:
            raise InitError("The target process cannot be pid=0: it would signal the whole group.")

        detector = ProcessDetector(detections[0])
        for detection in detections[1:]:
            detector = ProcessDetector(detection, parent=detector)

        self.detector = detector
        self.signal: signal.Signals = parse_signal(signal_name)

    def bump(self) -> None:
        pid = self.detector.pid()
        if pid is None:
            logger.info("No process of the configured criteria is running. Bump has no effect.")
            return

        logger.debug(f"Sending signal {self.signal.name} to process {pid}.")
        try:
            os.kill(pid, self.signal)
        except OSError as e:
            raise SignalError(f"Failed to send {self.signal.name} to process {pid}: {e}") from e


def parse_signal(name: str) -> signal.Signals:
    """ Parse a signal name as in ``SIGHUP``, ``HUP``, or ``sighup``. """
    normalized = name.strip().upper()
    normalized = normalized if normalized.startswith('SIG') else f'SIG{normalized}'
    try:
        return signal.Signals[normalized]
    except KeyError:
        raise InitError(f"Unknown signal: {name!r}") from None


def scan_processes(pattern: Pattern[str]) -> Optional[int]:
    """
    Find the first process (in PID order) with the command line matching the pattern.

    The watcher itself is never considered, though its command line
    often contains the pattern as an argument.
    """
    try:
        pids = psutil.pids()
    except (psutil.Error, OSError) as e:
        raise ProcError(f"Cannot list the processes: {e}") from e

    own_pid = os.getpid()
    for pid in sorted(pids):
        if pid == own_pid:
            continue

        # The processes can disappear while being inspected. They match nothing.
        try:
            cmdline = read_cmdline(pid)
            if not pattern.search(cmdline):
                continue
        except ProcError as e:
            logger.debug(f"Skipping the process {pid}: {e}")
            continue

        logger.debug(f"Found the process {pid} with {cmdline!r}.")
        return pid
    return None


def read_cmdline(pid: int) -> str:
    try:
        args = psutil.Process(pid).cmdline()
    except (psutil.Error, OSError) as e:
        raise ProcError(f"Cannot read the command line of {pid}: {e}") from e
    return ' '.join(args).strip()


def is_parent(ppid: int, pid: int) -> bool:
    try:
        return psutil.Process(pid).ppid() == ppid
    except (psutil.Error, OSError) as e:
        raise ProcError(f"Cannot read the parent of {pid}: {e}") from e


def pid_exists(pid: int) -> bool:
    return psutil.pid_exists(pid)
