"""Unit tests configuration file."""

import os

import pytest
from google.protobuf import descriptor_pb2, text_format

from g2h.generator import DescriptorIndex, GenerationRequest, generate

FILE_DIR = os.path.dirname(os.path.realpath(__file__))
HELLO_WORLD = os.path.join(FILE_DIR, "hello_world.pbtxt")


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


def load_hello_world():
    descriptor_set = descriptor_pb2.FileDescriptorSet()
    with open(HELLO_WORLD, encoding="utf-8") as f:
        text_format.Parse(f.read(), descriptor_set)
    return descriptor_set


@pytest.fixture
def descriptor_set():
    return load_hello_world()


@pytest.fixture
def index(descriptor_set):
    return DescriptorIndex.from_descriptor_set(descriptor_set)


@pytest.fixture
def result(descriptor_set):
    return generate(GenerationRequest.from_descriptor_set(descriptor_set))


@pytest.fixture
def registry(result):
    return result.registry
