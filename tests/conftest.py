"""Shared test fixtures for all test modules."""

from textwrap import dedent

import pytest

from regenblocks.editor.editor import CodeEditor
from regenblocks.editor.nested import NestedBlock


@pytest.fixture(autouse=True)
def reset_debug_flag():
    """The call-site debug flag is process-wide; keep tests independent of it."""
    NestedBlock.debug_flag = False
    yield
    NestedBlock.debug_flag = False


@pytest.fixture
def editor():
    """Editor with default '//+' / '//-' delimiters."""
    return CodeEditor()


@pytest.fixture
def load_text():
    """
    Parse dedented text into a fresh editor.

    Example:
        editor = load_text('''\\
            //+ Fields
            int x;
            //- Fields
            ''')
    """

    def _load(text: str, editor: CodeEditor | None = None) -> CodeEditor:
        editor = editor or CodeEditor()
        editor.load_lines(dedent(text).splitlines(), add_margin=False)
        return editor

    return _load
