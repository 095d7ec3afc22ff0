from pathlib import Path
from typing import Dict, List

import pandas as pd
import pytest

from techroadmap.store import InMemoryStore


def write_workbook(path: Path, sheets: Dict[str, List[list]]) -> Path:
    """Write raw rows (header row included) to a multi-sheet workbook."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, index=False, header=False)
    return path


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def workbook_factory(tmp_path):
    def _make(sheets: Dict[str, List[list]], name: str = "roadmaps.xlsx") -> Path:
        return write_workbook(Path(tmp_path) / name, sheets)

    return _make


@pytest.fixture
def react_workbook(workbook_factory):
    return workbook_factory(
        {
            "README": [["How to use"], ["Fill one sheet per stack"]],
            "React": [
                ["Topic", "Sub-Topics", "Project/App", "Status"],
                ["Hooks", "useState\nuseEffect", "Counter App", "In Progress"],
            ],
            "Python": [
                ["Topics", "Subtopics", "Projects/Apps Built", "Status of Completion"],
                ["Basics", "Variables", "Calculator", "Done"],
                [None, "Loops\nVariables", "Calculator", "ongoing"],
                [None, "Functions", "Todo CLI", None],
                ["OOP", "Classes", None, "not started"],
                ["Basics", "Modules", None, "Yet to start"],
            ],
        }
    )
