import os
import sys
import threading

import psutil
import pytest

from funcrun.function.exceptions import FunctionSpawnError
from funcrun.function.models import ProcessState
from funcrun.function.supervisor import ProcessSupervisor, build_engine_command


def _python(script: str):
    return [sys.executable, "-c", script]


def _is_gone(process: psutil.Process) -> bool:
    try:
        return process.status() == psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return True


def test_build_engine_command():
    assert build_engine_command("/usr/bin/deno", "/work/.cache/function-abc", 8123) == [
        "/usr/bin/deno",
        "run",
        "--allow-net",
        "--allow-env",
        os.path.join("/work/.cache/function-abc", "function_server.ts"),
        "8123",
    ]


def test_output_is_forwarded(log_lines):
    lines, listener = log_lines
    script = "import sys; print('to stdout'); print('to stderr', file=sys.stderr)"
    supervisor = ProcessSupervisor(_python(script), log_listener=listener)

    status = supervisor.spawn()
    assert status.wait(10)
    supervisor.join_drains(5)

    assert status.state is ProcessState.EXITED_OK
    assert sorted(lines) == ["to stderr\n", "to stdout\n"]


def test_exit_code_is_recorded():
    supervisor = ProcessSupervisor(_python("import sys; sys.exit(4)"), log_listener=lambda _: None)

    status = supervisor.spawn()
    assert status.wait(10)
    assert status.state is ProcessState.EXITED_ERROR
    assert status.returncode == 4


def test_environment_is_not_inherited(log_lines, monkeypatch):
    lines, listener = log_lines
    monkeypatch.setenv("FUNCRUN_TEST_PARENT_VAR", "parent")
    script = "import os; print(os.environ.get('FUNCRUN_TEST_PARENT_VAR'), os.environ.get('CHILD_VAR'))"
    supervisor = ProcessSupervisor(
        _python(script), env_vars={"CHILD_VAR": "child"}, log_listener=listener
    )

    supervisor.spawn().wait(10)
    supervisor.join_drains(5)
    assert lines == ["None child\n"]


def test_environment_is_inherited(log_lines, monkeypatch):
    lines, listener = log_lines
    monkeypatch.setenv("FUNCRUN_TEST_PARENT_VAR", "parent")
    script = "import os; print(os.environ.get('FUNCRUN_TEST_PARENT_VAR'))"
    supervisor = ProcessSupervisor(_python(script), inherit_env=True, log_listener=listener)

    supervisor.spawn().wait(10)
    supervisor.join_drains(5)
    assert lines == ["parent\n"]


def test_kill():
    ready = threading.Event()

    def _listener(line):
        if "started" in line:
            ready.set()

    script = "import time; print('started', flush=True); time.sleep(60)"
    supervisor = ProcessSupervisor(_python(script), log_listener=_listener)
    status = supervisor.spawn()
    assert ready.wait(10)
    assert status.state is ProcessState.RUNNING

    supervisor.kill(timeout=10)

    assert status.exited
    assert status.state is ProcessState.EXITED_ERROR
    # killing an exited process is a no-op
    supervisor.kill(timeout=1)


def test_kill_also_stops_child_processes(tmp_path):
    pid_file = tmp_path / "child.pid"
    script = (
        "import subprocess, sys, time; "
        "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)']); "
        f"open({str(pid_file)!r}, 'w').write(str(child.pid)); "
        "time.sleep(60)"
    )
    supervisor = ProcessSupervisor(_python(script), log_listener=lambda _: None)
    supervisor.spawn()

    for _ in range(100):
        if pid_file.exists() and pid_file.read_text():
            break
        threading.Event().wait(0.1)
    child = psutil.Process(int(pid_file.read_text()))

    supervisor.kill(timeout=10)

    for _ in range(100):
        if _is_gone(child):
            break
        threading.Event().wait(0.1)
    assert _is_gone(child)


def test_spawn_unknown_executable():
    supervisor = ProcessSupervisor(["/non/existing/engine", "run"])

    with pytest.raises(FunctionSpawnError) as ctx:
        supervisor.spawn()
    assert ctx.value.operation == "start function process"
    assert supervisor.pid is None


def test_spawn_twice():
    supervisor = ProcessSupervisor(_python("pass"), log_listener=lambda _: None)
    supervisor.spawn()

    with pytest.raises(FunctionSpawnError):
        supervisor.spawn()
    supervisor.kill(timeout=5)
