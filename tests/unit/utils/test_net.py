import socket
from contextlib import closing

import pytest

from funcrun.utils import net
from funcrun.utils.net import (
    PortAllocator,
    PortNotAvailableException,
    get_default_port_allocator,
    is_port_open,
    port_can_be_bound,
)


def test_port_can_be_bound():
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
        sock.bind(("", 0))
        sock.listen(1)
        _, port = sock.getsockname()

        # assert that port cannot be bound
        assert not port_can_be_bound(port)

    # socket closed, assert that port can be bound
    assert port_can_be_bound(port)


def test_port_can_be_bound_illegal_port():
    assert not port_can_be_bound(9999999999)


def test_is_port_open():
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        _, port = sock.getsockname()
        assert is_port_open(port, host="127.0.0.1")

    assert not is_port_open(port, host="127.0.0.1")


def test_allocate_returns_bindable_port_in_window():
    allocator = PortAllocator(base=40000, window=1000)
    port = allocator.allocate()

    assert 40000 <= port < 41000
    assert allocator.is_handed_out(port)
    assert port_can_be_bound(port, address="0.0.0.0")


def test_allocate_never_hands_out_port_twice():
    allocator = PortAllocator(base=41000, window=5, max_attempts=1000)

    ports = {allocator.allocate() for _ in range(5)}
    assert len(ports) == 5

    with pytest.raises(PortNotAvailableException):
        allocator.allocate()


def test_allocate_skips_ports_that_cannot_be_bound():
    class OnlyOddPorts(PortAllocator):
        def _port_can_be_bound(self, port: int) -> bool:
            return port % 2 == 1

    allocator = OnlyOddPorts(base=42000, window=100)
    for _ in range(10):
        assert allocator.allocate() % 2 == 1


def test_allocate_gives_up_after_max_attempts():
    probed = []

    class NoFreePorts(PortAllocator):
        def _port_can_be_bound(self, port: int) -> bool:
            probed.append(port)
            return False

    allocator = NoFreePorts(base=43000, window=100, max_attempts=25)
    with pytest.raises(PortNotAvailableException) as ctx:
        allocator.allocate()

    assert len(probed) == 25
    assert "after 25 attempts" in str(ctx.value)


def test_invalid_window():
    with pytest.raises(ValueError):
        PortAllocator(base=8000, window=0)


def test_default_port_allocator_uses_config(monkeypatch):
    monkeypatch.setattr(net, "default_port_allocator", None)
    monkeypatch.setattr(net.config, "PORT_RANGE_START", 44000)
    monkeypatch.setattr(net.config, "PORT_RANGE_SIZE", 10)
    monkeypatch.setattr(net.config, "PORT_MAX_ATTEMPTS", 7)

    allocator = get_default_port_allocator()
    assert (allocator.base, allocator.window, allocator.max_attempts) == (44000, 10, 7)
    assert get_default_port_allocator() is allocator
