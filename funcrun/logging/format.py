"""Tools for formatting funcrun logs."""
import logging
from functools import lru_cache

MAX_THREAD_NAME_LEN = 12
MAX_NAME_LEN = 26

LOG_FORMAT = f"%(asctime)s.%(msecs)03d %(fr_level)5s --- [%(fr_thread){MAX_THREAD_NAME_LEN}s] %(fr_name)-{MAX_NAME_LEN}s : %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

CUSTOM_LEVEL_NAMES = {
    50: "FATAL",
    40: "ERROR",
    30: "WARN",
    20: "INFO",
    10: "DEBUG",
}


class DefaultFormatter(logging.Formatter):
    """
    A formatter that uses ``LOG_FORMAT`` and ``LOG_DATE_FORMAT``.
    """

    def __init__(self, fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT):
        super(DefaultFormatter, self).__init__(fmt=fmt, datefmt=datefmt)


class AddFormattedAttributes(logging.Filter):
    """
    Filter that adds three attributes to a log record:

    - fr_level: the abbreviated loglevel that's max 5 characters long
    - fr_name: the abbreviated name of the logger (e.g., `f.function.instance`), trimmed to ``MAX_NAME_LEN``
    - fr_thread: the abbreviated thread name (prefix trimmed, e.g., ``drain-stderr``)
    """

    max_name_len: int
    max_thread_len: int

    def __init__(self, max_name_len: int = None, max_thread_len: int = None):
        super(AddFormattedAttributes, self).__init__()
        self.max_name_len = max_name_len if max_name_len else MAX_NAME_LEN
        self.max_thread_len = max_thread_len if max_thread_len else MAX_THREAD_NAME_LEN

    def filter(self, record):
        record.fr_level = CUSTOM_LEVEL_NAMES.get(record.levelno, record.levelname)
        record.fr_name = self._get_compressed_logger_name(record.name)
        record.fr_thread = record.threadName[-self.max_thread_len :]
        return True

    @lru_cache(maxsize=256)
    def _get_compressed_logger_name(self, name):
        return compress_logger_name(name, self.max_name_len)


def compress_logger_name(name: str, length: int) -> str:
    """
    Creates a short version of a logger name. For example ``funcrun.function.supervisor`` with length=20
    turns into ``f.function.supervisor``.

    Parts are expanded from the right (most specific) to the left, as long as the result fits into ``length``.

    :param name: the logger name
    :param length: the max length of the logger name
    :return: the compressed name
    """
    if len(name) <= length:
        return name

    parts = list(reversed(name.split(".")))

    # length of the name if every part is collapsed to its first letter (x.x.x)
    cur_length = len(parts) * 2 - 1

    expanded = []
    for i, part in enumerate(parts):
        next_len = cur_length + len(part) - 1
        if next_len <= length:
            expanded.append(part)
            cur_length = next_len
            continue

        collapsed = [p[0] for p in parts[i:]]
        if i == 0:
            # nothing could be expanded, show as much of the last part as fits
            remaining = length - cur_length
            if remaining > 0:
                collapsed[0] = part[: remaining + 1]
        expanded.extend(collapsed)
        break

    return ".".join(reversed(expanded))
