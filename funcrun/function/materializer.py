"""
Materializes function code on disk, as a folder the execution engine can be pointed at.

The folder is content-addressed: ``<work_dir>/.cache/function-<sha1 of code>``. It contains the static runtime
files (``*.ts``) and the rendered function wrapper (``function.js``), which embeds the user code and binds the
init data to its ``init`` function.
"""
import logging
import os
from typing import Any

import jinja2

from funcrun import constants
from funcrun.utils.files import list_files, load_file, mkdir, save_file
from funcrun.utils.json import to_json_str

from .exceptions import FunctionSetupError
from .models import FunctionHash, RunnerConfig

LOG = logging.getLogger(__name__)

RUNTIME_TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.realpath(__file__)), "runtime")
WRAPPER_TEMPLATE_FILE = f"{constants.FUNCTION_WRAPPER_FILE}.j2"
STATIC_RUNTIME_SUFFIX = ".ts"


def copy_runtime_files(dest_dir: str, source_dir: str = RUNTIME_TEMPLATE_DIR):
    """Copy the static runtime files into the given function folder."""
    for file_name in list_files(source_dir, suffix=STATIC_RUNTIME_SUFFIX):
        try:
            content = load_file(os.path.join(source_dir, file_name), mode="rb")
        except OSError as e:
            raise FunctionSetupError("read runtime file", e) from e
        try:
            save_file(os.path.join(dest_dir, file_name), content, permissions=0o600)
        except OSError as e:
            raise FunctionSetupError("write runtime file", e) from e


def wrap_code(code: str, init_data: Any, template_dir: str = RUNTIME_TEMPLATE_DIR) -> str:
    """
    Render the function wrapper around the given user code.

    :param code: the raw user code, embedded verbatim
    :param init_data: the data passed to the user's ``init`` function, serialized to JSON once
    :return: the rendered wrapper source
    """
    try:
        init_json = to_json_str(init_data)
    except (TypeError, ValueError) as e:
        raise FunctionSetupError("serialize init data", e) from e

    try:
        template_source = load_file(os.path.join(template_dir, WRAPPER_TEMPLATE_FILE))
        if template_source is None:
            raise jinja2.TemplateNotFound(WRAPPER_TEMPLATE_FILE)
        template = jinja2.Template(template_source, keep_trailing_newline=True)
        return template.render(code=code, init_data=init_json)
    except jinja2.TemplateError as e:
        raise FunctionSetupError("render function wrapper", e) from e


def materialize(
    runner_config: RunnerConfig, function_hash: FunctionHash, code: str, init_data: Any
) -> str:
    """
    Create (or reuse) the folder for the given function and write the runtime files and the wrapper.

    :return: the path of the function folder
    :raises FunctionSetupError: if any of the steps fails
    """
    function_dir = runner_config.function_dir(function_hash)
    try:
        mkdir(function_dir, permissions=0o700)
    except OSError as e:
        raise FunctionSetupError("create function dir", e) from e

    copy_runtime_files(function_dir)

    wrapped = wrap_code(code, init_data)
    try:
        save_file(
            os.path.join(function_dir, constants.FUNCTION_WRAPPER_FILE), wrapped, permissions=0o600
        )
    except OSError as e:
        raise FunctionSetupError("write function wrapper", e) from e

    LOG.debug("Materialized function %s in %s", function_hash, function_dir)
    return function_dir
