import logging
from typing import IO, Callable, List

from funcrun.utils.strings import to_str
from funcrun.utils.threads import FuncThread, start_worker_thread

LOG = logging.getLogger(__name__)

# logger receiving the output of function processes, if no log listener is given
OUTPUT_LOG = logging.getLogger("funcrun.function.output")

LogListener = Callable[[str], None]


def log_to_output_logger(line: str):
    OUTPUT_LOG.info(line.rstrip("\r\n"))


def drain_stream(stream: IO[bytes], sink: LogListener):
    """
    Read the given stream line by line until EOF (or a read error) and forward each line to ``sink``.

    Lines are passed on including their trailing newline. An error raised by the sink is logged and does not
    stop the draining, so that the process writing to the stream never blocks on a full pipe.
    """
    try:
        for line in iter(stream.readline, b""):
            try:
                sink(to_str(line, errors="replace"))
            except Exception as e:
                LOG.warning("Error while handling log line of function process: %s", e)
    except (OSError, ValueError) as e:
        # ValueError is raised when reading from a stream that has been closed concurrently
        LOG.debug("Stopped reading function output: %s", e)
    finally:
        try:
            stream.close()
        except OSError:
            pass


def start_drains(streams: List[IO[bytes]], sink: LogListener) -> List[FuncThread]:
    """Start one drain thread per stream and return the threads."""
    threads = []
    for stream in streams:
        if stream is None:
            continue
        threads.append(start_worker_thread(lambda s: drain_stream(s, sink), stream, name="drain"))
    return threads
