"""Pytest configuration and fixtures for test suite."""

import time
from typing import Iterable, List, Optional, Union

import pytest
import serial

from snowgauge.core.cancellation import CancellationToken
from snowgauge.core.event_hub import Broadcaster

SETTINGS_ENV_VARS = [
    "PORT", "DEBUG", "LISTEN_ADDR", "LOG", "LOG_DISTANCE", "SIMULATOR", "SIMULATOR_BASE_DISTANCE",
    "STATION_NAME", "TRIM_PERCENTAGE", "BATCH_SIZE", "FILTER_TYPE", "FILTER_INIT_PERIOD",
    "FILTER_RATE_LIMIT", "FILTER_ALPHA",
]


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch):
    """Keep the caller's environment from leaking into GaugeSettings."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def broadcaster():
    return Broadcaster()


@pytest.fixture
def cancel_token():
    return CancellationToken()


class FakeSerial:
    """
    Stand-in for serial.Serial driven by a script of byte strings and exceptions.
    read() serves at most `size` bytes from the head of the script; once the
    script is exhausted it behaves like a read timeout and calls on_exhausted.
    """

    def __init__(self, script: Iterable[Union[bytes, Exception]], on_exhausted=None):
        self.script: List[Union[bytes, Exception]] = list(script)
        self.on_exhausted = on_exhausted
        self.read_sizes: List[int] = []
        self.closed = False

    def read(self, size: int) -> bytes:
        self.read_sizes.append(size)
        if not self.script:
            if self.on_exhausted is not None:
                self.on_exhausted()
            time.sleep(0.001)
            return b""
        item = self.script[0]
        if isinstance(item, Exception):
            self.script.pop(0)
            raise item
        chunk, rest = item[:size], item[size:]
        if rest:
            self.script[0] = rest
        else:
            self.script.pop(0)
        return chunk

    def close(self):
        self.closed = True


class FakeOpener:
    """Returns the scripted ports in order; exceptions in the list are raised instead."""

    def __init__(self, ports: Iterable[Union[FakeSerial, Exception]], default: Optional[Exception] = None):
        self.ports = list(ports)
        self.default = default or serial.SerialException("could not open port")
        self.calls: List[str] = []

    def __call__(self, port: str):
        self.calls.append(port)
        if not self.ports:
            raise self.default
        item = self.ports.pop(0)
        if isinstance(item, Exception):
            raise item
        return item
