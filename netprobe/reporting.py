# netprobe/reporting.py
import sys
import threading
from typing import Callable, Optional, TextIO

# The presentation side hands the engine a plain callable taking one line.
Report = Callable[[str], None]


class SerializedReporter:
    """
    Wraps a sink so each line is delivered whole, even when the sink is
    called from several threads at once (e.g. a GUI marshalling wrapper).
    """

    def __init__(self, sink: Report):
        self._sink = sink
        self._lock = threading.Lock()

    def __call__(self, line: str) -> None:
        with self._lock:
            self._sink(line)


def stream_reporter(stream: Optional[TextIO] = None) -> SerializedReporter:
    out = stream or sys.stdout

    def write(line: str) -> None:
        out.write(line + "\n")
        out.flush()

    return SerializedReporter(write)
