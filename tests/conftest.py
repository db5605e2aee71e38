"""Pytest configuration and fixtures."""

import textwrap

import pytest

BOOK_NOTES = textwrap.dedent(
    """\
    # Clean Code

    ## Table of contents

    - [Chapter 1 - Clean Code](#chapter1)
    - [Chapter 2 - Meaningful Names](#chapter2)

    <a name="chapter1">
    <h1>Chapter 1 - Clean Code</h1>
    </a>

    This book is about *good* programming.

    ```java
    public class Foo {}
    ```

    <a name="chapter2"></a>
    ## Chapter 2 - Meaningful Names

    Names are everywhere in software.

    | Bad | Good |
    | --- | ---- |
    | d   | elapsedTimeInDays |
    """
)


@pytest.fixture
def book_notes() -> str:
    return BOOK_NOTES


@pytest.fixture
def book_file(tmp_path):
    path = tmp_path / "notes.md"
    path.write_text(BOOK_NOTES, encoding="utf-8")
    return path
