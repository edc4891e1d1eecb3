import logging
import os
import shutil
from typing import Union

LOG = logging.getLogger(__name__)


def save_file(file, content: Union[str, bytes], append=False, permissions=None):
    mode = "a" if append else "w+"
    if not isinstance(content, str):
        mode = mode + "b"

    def _opener(path, flags):
        return os.open(path, flags, permissions)

    # make sure that the parent dir exists
    mkdir(os.path.dirname(file))
    # store file contents
    with open(file, mode, opener=_opener if permissions else None) as f:
        f.write(content)
        f.flush()


def load_file(file_path, default=None, mode=None):
    if not os.path.isfile(file_path):
        return default
    if not mode:
        mode = "r"
    with open(file_path, mode) as f:
        result = f.read()
    return result


def mkdir(folder: str, permissions: int = None):
    if not folder or os.path.exists(folder):
        return
    if permissions is None:
        os.makedirs(folder, exist_ok=True)
    else:
        os.makedirs(folder, mode=permissions, exist_ok=True)


def chmod_r(path: str, mode: int):
    """Recursive chmod"""
    if not os.path.exists(path):
        return
    os.chmod(path, mode)
    for root, dirnames, filenames in os.walk(path):
        for dirname in dirnames:
            os.chmod(os.path.join(root, dirname), mode)
        for filename in filenames:
            os.chmod(os.path.join(root, filename), mode)


def rm_rf(path: str):
    """
    Recursively removes a file or directory
    """
    if not path or not os.path.exists(path):
        return
    # Make sure all files are writeable and dirs executable to remove
    try:
        chmod_r(path, 0o777)
    except PermissionError:
        LOG.debug("Unable to update permissions before removing %s", path)
    # check if the file is either a normal file, or, e.g., a fifo
    exists_but_non_dir = os.path.exists(path) and not os.path.isdir(path)
    if os.path.isfile(path) or exists_but_non_dir:
        os.remove(path)
    else:
        shutil.rmtree(path)


def list_files(folder: str, suffix: str = None):
    """Return the names of all regular files in the given folder, optionally filtered by suffix."""
    result = []
    for entry in sorted(os.listdir(folder)):
        if not os.path.isfile(os.path.join(folder, entry)):
            continue
        if suffix and not entry.endswith(suffix):
            continue
        result.append(entry)
    return result
