import csv

import pytest

from techroadmap.config import CSV_PROFILE, WORKBOOK_PROFILE
from techroadmap.errors import PersistenceError, SheetSkipped, SourceNotFound
from techroadmap.ingest import (
    convert_workbook,
    csv_filename,
    import_workbook,
    parse_sheet,
    upload_csv,
    upload_csv_file,
    upload_directory,
)
from techroadmap.sheet_reader import Sheet
from techroadmap.store import InMemoryStore


def _items(store, name):
    doc = store.find_one("techstacks", {"name": name})
    return [
        (
            i["topic"],
            [s["name"] for s in i["subTopics"]],
            [p["name"] for p in i["projects"]],
            i["completionStatus"],
        )
        for i in doc["roadmapItems"]
    ]


class FailingStore(InMemoryStore):
    """Rejects writes for one tech stack name."""

    def __init__(self, bad_name):
        super().__init__()
        self.bad_name = bad_name

    def insert_one(self, collection, doc):
        if doc.get("name") == self.bad_name:
            raise PersistenceError("write rejected")
        return super().insert_one(collection, doc)


# ---------------------------
# parse_sheet
# ---------------------------

def test_parse_sheet_reports_missing_topic_column():
    sheet = Sheet(name="Notes", rows=[["Name", "Status"], ["x", "Done"]])
    with pytest.raises(SheetSkipped) as exc:
        parse_sheet(sheet, WORKBOOK_PROFILE)
    assert exc.value.reason == SheetSkipped.MISSING_TOPIC_COLUMN


def test_parse_sheet_reports_sheet_without_topics():
    sheet = Sheet(name="Blank", rows=[["Topic", "Sub-Topics"], [None, "orphan"]])
    with pytest.raises(SheetSkipped) as exc:
        parse_sheet(sheet, WORKBOOK_PROFILE)
    assert exc.value.reason == SheetSkipped.NO_TOPICS


def test_parse_sheet_uses_profile_default_labels():
    sheet = Sheet(name="Go", rows=[["Topic"], ["Basics"]])
    assert parse_sheet(sheet, WORKBOOK_PROFILE).headers.projects == "Project / Task"
    assert parse_sheet(sheet, CSV_PROFILE).headers.projects == "Projects"


# ---------------------------
# Workbook import
# ---------------------------

def test_import_workbook_creates_one_stack_per_sheet(react_workbook, store):
    seen = []
    summary = import_workbook(react_workbook, store, progress=lambda d, t, u: seen.append((d, t, u)))

    assert summary.processed == ["React", "Python"]
    assert [s.reason for s in summary.skipped] == [SheetSkipped.IGNORED_NAME]
    assert summary.failed == []
    assert seen == [(1, 3, "React"), (2, 3, "Python")]
    assert store.find_one("techstacks", {"name": "README"}) is None

    assert _items(store, "React") == [
        ("Hooks", ["useState", "useEffect"], ["Counter App"], "In Progress"),
    ]
    assert _items(store, "Python") == [
        ("Basics", ["Variables", "Loops", "Functions", "Modules"], ["Calculator", "Todo CLI"], "Completed"),
        ("OOP", ["Classes"], [], "Yet to Start"),
    ]

    react = store.find_one("techstacks", {"name": "React"})
    assert react["description"] == "Imported from roadmaps.xlsx, sheet: React"
    assert react["headers"] == {
        "topic": "Topic",
        "subTopics": "Sub-Topics",
        "projects": "Project/App",
        "status": "Status",
    }


def test_reimport_replaces_items_wholesale(workbook_factory, store):
    first = workbook_factory({"React": [["Topic"], ["Hooks"], ["JSX"]]}, name="v1.xlsx")
    second = workbook_factory({"React": [["Topic"], ["Router"]]}, name="v2.xlsx")

    import_workbook(first, store)
    import_workbook(second, store)

    assert len(store.find("techstacks")) == 1
    assert [t for t, *_ in _items(store, "React")] == ["Router"]


def test_sheets_without_data_or_topics_are_skipped_not_failed(workbook_factory, store):
    path = workbook_factory(
        {
            "Header only": [["Topic", "Status"]],
            "No topics": [["Topic", "Sub-Topics"], [None, "stray"]],
            "No topic column": [["Name"], ["x"]],
            "Go": [["Topic"], ["Goroutines"]],
        }
    )
    summary = import_workbook(path, store)

    assert summary.processed == ["Go"]
    assert sorted(s.reason for s in summary.skipped) == sorted(
        [SheetSkipped.NO_DATA, SheetSkipped.NO_TOPICS, SheetSkipped.MISSING_TOPIC_COLUMN]
    )
    assert [d["name"] for d in store.find("techstacks")] == ["Go"]


def test_one_failing_sheet_does_not_stop_the_run(workbook_factory):
    path = workbook_factory(
        {"Bad": [["Topic"], ["A"]], "Good": [["Topic"], ["B"]]}
    )
    store = FailingStore("Bad")
    summary = import_workbook(path, store)

    assert summary.processed == ["Good"]
    assert summary.failed == [("Bad", "write rejected")]
    assert store.find_one("techstacks", {"name": "Good"}) is not None


def test_import_missing_workbook_raises(tmp_path, store):
    with pytest.raises(SourceNotFound):
        import_workbook(tmp_path / "missing.xlsx", store)


# ---------------------------
# Conversion
# ---------------------------

def test_csv_filename_replaces_unsafe_characters():
    assert csv_filename('C/C++: "Core"?') == "C_C++_ _Core__.csv"
    assert csv_filename("React") == "React.csv"


def test_convert_writes_minimally_quoted_aggregated_csv(workbook_factory, tmp_path):
    path = workbook_factory(
        {
            "README": [["ignored"], ["x"]],
            "Web | Frontend": [
                ["Topic", "Sub-Topics", "Project", "Status"],
                ["HTML", "Tags, attributes", 'Say "hi"', "done"],
                [None, "Forms", None, None],
            ],
        }
    )
    out_dir = tmp_path / "out"
    summary = convert_workbook(path, out_dir)

    assert summary.outputs == [out_dir / "Web _ Frontend.csv"]
    text = (out_dir / "Web _ Frontend.csv").read_text(encoding="utf-8")
    assert text == (
        "Topic,Sub-Topics,Project,Status\n"
        'HTML,"Tags, attributes\nForms","Say ""hi""",Completed\n'
    )
    with open(out_dir / "Web _ Frontend.csv", newline="", encoding="utf-8") as fh:
        rows = list(csv.reader(fh))
    assert rows[1] == ["HTML", "Tags, attributes\nForms", 'Say "hi"', "Completed"]


def test_convert_then_upload_matches_direct_import(react_workbook, tmp_path):
    direct = InMemoryStore()
    import_workbook(react_workbook, direct)

    out_dir = tmp_path / "csv"
    convert_workbook(react_workbook, out_dir)
    staged = InMemoryStore()
    summary = upload_directory(out_dir, staged)

    assert sorted(summary.processed) == ["Python", "React"]
    for name in ("React", "Python"):
        assert _items(staged, name) == _items(direct, name)
        assert (
            staged.find_one("techstacks", {"name": name})["headers"]
            == direct.find_one("techstacks", {"name": name})["headers"]
        )


# ---------------------------
# CSV upload
# ---------------------------

def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def test_upload_csv_flat_rows_and_named_stack(tmp_path, store):
    path = _write(
        tmp_path / "export.csv",
        "Topic,Subtopics,Projects,Status\n"
        'React,"Hooks\nContext",App 1,Completed\n'
        ",Orphan,Ghost,Done\n"
        "React,Hooks,App 2,In Progress\n",
    )
    upload_csv(path, "Frontend", store, description="Team roadmap")

    doc = store.find_one("techstacks", {"name": "Frontend"})
    assert doc["description"] == "Team roadmap"
    assert _items(store, "Frontend") == [
        ("React", ["Hooks", "Context"], ["App 1", "App 2"], "Completed"),
    ]


def test_csv_profile_allows_sub_headers_as_topic(tmp_path, store):
    path = _write(tmp_path / "odd.csv", "Sub-Topics,Status\nLoops,Done\n")
    upload_csv(path, "Odd", store)
    assert _items(store, "Odd") == [("Loops", ["Loops"], [], "Completed")]


def test_upload_csv_file_wraps_skips_and_missing_files(tmp_path, store):
    readme = _write(tmp_path / "README.csv", "Topic\nA\n")
    summary = upload_csv_file(readme, "Anything", store)
    assert summary.processed == []
    assert summary.skipped[0].reason == SheetSkipped.IGNORED_NAME

    with pytest.raises(SourceNotFound):
        upload_csv_file(tmp_path / "nope.csv", "X", store)


def test_upload_directory_uses_file_stems_and_keeps_descriptions(tmp_path, store):
    _write(tmp_path / "Docker.csv", "Topic\nImages\n")
    _write(tmp_path / "Kubernetes.csv", "Topic\nPods\n")
    _write(tmp_path / "instructions.csv", "Topic\nRead me first\n")
    _write(tmp_path / "notes.txt", "Topic\nignored\n")
    store.insert_one(
        "techstacks",
        {"name": "Docker", "description": "Containers", "headers": {}, "roadmapItems": []},
    )

    summary = upload_directory(tmp_path, store)

    assert summary.total == 3
    assert summary.processed == ["Docker", "Kubernetes"]
    assert len(summary.skipped) == 1
    docker = store.find_one("techstacks", {"name": "Docker"})
    assert docker["description"] == "Containers"
    assert [i["topic"] for i in docker["roadmapItems"]] == ["Images"]
    assert store.find_one("techstacks", {"name": "Kubernetes"})["description"] == ""


def test_upload_directory_missing_raises(tmp_path, store):
    with pytest.raises(SourceNotFound):
        upload_directory(tmp_path / "absent", store)


# ---------------------------
# Cell text pandas would read as missing, ragged CSV rows
# ---------------------------

def test_na_like_topics_and_cells_are_ingested_as_text(workbook_factory, store):
    path = workbook_factory(
        {
            "JavaScript": [
                ["Topic", "Sub-Topics", "Projects", "Status"],
                ["Types", "null", "NA", "Done"],
                [None, "NaN", None, None],
                ["None", "undefined", None, None],
            ]
        }
    )
    import_workbook(path, store)

    assert _items(store, "JavaScript") == [
        ("Types", ["null", "NaN"], ["NA"], "Completed"),
        ("None", ["undefined"], [], "Yet to Start"),
    ]


def test_upload_keeps_rows_with_trailing_comma(tmp_path, store):
    path = _write(
        tmp_path / "Go.csv",
        "Topic,Sub-Topics,Projects,Status\n"
        "Basics,Variables,CLI,Done\n"
        "Goroutines,Channels,Crawler,In Progress,\n",
    )
    upload_csv(path, "Go", store)

    assert _items(store, "Go") == [
        ("Basics", ["Variables"], ["CLI"], "Completed"),
        ("Goroutines", ["Channels"], ["Crawler"], "In Progress"),
    ]
