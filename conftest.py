"""
Pytest configuration file.

This file is automatically loaded by pytest and provides global test configuration.
It ensures the project's source directory is added to the Python path so that
modules can be imported properly during test execution, and provides the
shared store, spreadsheet and client fixtures.
"""
import os
import sys
from io import BytesIO

import pandas as pd
import pytest

# Add the current directory to the Python path
# This ensures imports work correctly when running tests
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from module_store import ModuleStore  # noqa: E402


COURSE_COLUMNS = [
    "Submodule Title",
    "Section Title",
    "Section Content",
    "Video Link",
    "Section Time (minutes)",
    "Example",
    "Image Link",
]


@pytest.fixture
def store():
    """
    Fixture providing an in-memory SQLite module store with its schema created.

    Returns:
        ModuleStore: A fresh, empty store
    """
    module_store = ModuleStore.from_url("sqlite://")
    module_store.create_schema()
    yield module_store
    module_store.engine.dispose()


@pytest.fixture
def make_xlsx():
    """
    Fixture providing a builder for xlsx payloads.

    The builder takes a list of row dicts (and optionally the column order)
    and returns the bytes of a single-sheet workbook.
    """
    def _make_xlsx(rows, columns=None):
        df = pd.DataFrame(rows, columns=columns)
        buffer = BytesIO()
        df.to_excel(buffer, index=False, engine="openpyxl")
        return buffer.getvalue()
    return _make_xlsx


@pytest.fixture
def course_columns():
    """Every header of the course spreadsheet, in template order."""
    return list(COURSE_COLUMNS)


@pytest.fixture
def go_course_rows():
    """Rows of the "Go 101" course: two Basics sections and one Advanced section."""
    return [
        {"Submodule Title": "Basics", "Section Title": "Vars", "Section Time (minutes)": "10"},
        {"Submodule Title": "Basics", "Section Title": "Loops", "Section Time (minutes)": "20"},
        {"Submodule Title": "Advanced", "Section Title": "Generics"},
    ]
