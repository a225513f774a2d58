"""Shared fixtures for LC-3 VM tests."""

import io
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from lc3_vm import LC3, ScriptedInput


@pytest.fixture
def make_machine():
    """Build a machine with words loaded at origin and scripted keyboard input.

    The returned machine has ``machine.output`` as a StringIO.
    """
    def _make(words, origin=0x3000, keyboard=b"", **kwargs):
        machine = LC3(
            input_source=ScriptedInput(keyboard),
            output=io.StringIO(),
            trace_stream=io.StringIO(),
            **kwargs
        )
        machine.load_words(origin, words)
        return machine

    return _make
