import pytest

from techroadmap.errors import SheetSkipped, SourceNotFound, UnreadableSource
from techroadmap.sheet_reader import (
    Sheet,
    check_sheet,
    read_csv,
    read_tabular,
    read_workbook,
)


def test_workbook_sheets_come_back_in_order_with_raw_cells(react_workbook):
    sheets = read_workbook(react_workbook)

    assert [s.name for s in sheets] == ["README", "React", "Python"]
    react = sheets[1]
    assert react.header == ["Topic", "Sub-Topics", "Project/App", "Status"]
    assert react.data_rows == [["Hooks", "useState\nuseEffect", "Counter App", "In Progress"]]
    python = sheets[2]
    assert python.data_rows[1][0] is None


def test_csv_quoted_fields_may_span_lines(tmp_path):
    path = tmp_path / "Docker.csv"
    path.write_text(
        'Topic,Sub-Topics,Projects,Status\n'
        'Images,"Layers\nTags","Build ""hello"" image",Done\n',
        encoding="utf-8",
    )
    sheet = read_csv(path)

    assert sheet.name == "Docker"
    assert sheet.rows[1] == ["Images", "Layers\nTags", 'Build "hello" image', "Done"]


def test_csv_blank_cells_are_none(tmp_path):
    path = tmp_path / "Go.csv"
    path.write_text("Topic,Status\nBasics,\n", encoding="utf-8")
    assert read_csv(path).rows[1] == ["Basics", None]


def test_na_like_text_is_kept_verbatim(workbook_factory, tmp_path):
    path = workbook_factory(
        {
            "JavaScript": [
                ["Topic", "Sub-Topics", "Projects", "Status"],
                ["Types", "null", "NA", "Done"],
                [None, "NaN", None, None],
                ["None", "undefined", "N/A", None],
            ]
        }
    )
    [sheet] = read_workbook(path)
    assert sheet.data_rows == [
        ["Types", "null", "NA", "Done"],
        [None, "NaN", None, None],
        ["None", "undefined", "N/A", None],
    ]

    csv_path = tmp_path / "JavaScript.csv"
    csv_path.write_text("Topic,Sub-Topics\nNone,null\nNaN,N/A\n", encoding="utf-8")
    assert read_csv(csv_path).data_rows == [["None", "null"], ["NaN", "N/A"]]


def test_csv_rows_wider_than_header_are_cut_not_dropped(tmp_path):
    path = tmp_path / "Go.csv"
    path.write_text(
        "Topic,Sub-Topics,Projects,Status\n"
        "Basics,Variables,CLI,Done\n"
        "Goroutines,Channels,Crawler,In Progress,\n"
        "Generics,Constraints\n",
        encoding="utf-8",
    )
    assert read_csv(path).data_rows == [
        ["Basics", "Variables", "CLI", "Done"],
        ["Goroutines", "Channels", "Crawler", "In Progress"],
        ["Generics", "Constraints", None, None],
    ]


def test_unreadable_workbook_raises(tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_text("not a workbook", encoding="utf-8")
    with pytest.raises(UnreadableSource):
        read_workbook(path)


def test_empty_csv_gives_empty_sheet(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    assert read_csv(path).rows == []


def test_read_tabular_dispatches_on_suffix(tmp_path, react_workbook):
    path = tmp_path / "Rust.CSV"
    path.write_text("Topic\nOwnership\n", encoding="utf-8")
    assert [s.name for s in read_tabular(path)] == ["Rust"]
    assert len(read_tabular(react_workbook)) == 3


def test_missing_source_raises(tmp_path):
    with pytest.raises(SourceNotFound):
        read_workbook(tmp_path / "nope.xlsx")
    with pytest.raises(SourceNotFound):
        read_csv(tmp_path / "nope.csv")


@pytest.mark.parametrize("name", ["README", "readme", "Instructions"])
def test_check_sheet_skips_ignored_names(name):
    with pytest.raises(SheetSkipped) as exc:
        check_sheet(Sheet(name=name, rows=[["Topic"], ["A"]]))
    assert exc.value.reason == SheetSkipped.IGNORED_NAME


def test_check_sheet_needs_a_data_row():
    with pytest.raises(SheetSkipped) as exc:
        check_sheet(Sheet(name="Empty", rows=[["Topic"]]))
    assert exc.value.reason == SheetSkipped.NO_DATA
    check_sheet(Sheet(name="Ok", rows=[["Topic"], ["A"]]))


def test_readme_like_names_are_not_ignored():
    check_sheet(Sheet(name="README notes", rows=[["Topic"], ["A"]]))
