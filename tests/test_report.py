import csv
import io
import json
from pathlib import Path

from rich.console import Console

from bic.batch import BatchSummary
from bic.console import ConsoleReporter, format_bytes, format_duration
from bic.report import build_report, save_report_csv, save_report_json
from bic.results import FileTask, ProcessResult


def _results():
    return [
        ProcessResult(Path("in/a.png"), Path("out/a.webp"), "converted", src_bytes=3000, out_bytes=1000),
        ProcessResult(Path("in/b.png"), Path("out/b.webp"), "converted", src_bytes=500, out_bytes=800),
        ProcessResult(Path("in/c.png"), Path("out/c.webp"), "skipped", skipped_reason="output_exists"),
        ProcessResult(Path("in/d.jpg"), Path("out/d.webp"), "failed", error="OSError: broken"),
    ]


def _summary(**kwargs):
    base = dict(
        total_files=4, converted=2, skipped=1, failed=1,
        total_src_bytes=3500, total_out_bytes=1800, saved_bytes=1700, elapsed_seconds=1.25,
    )
    base.update(kwargs)
    return BatchSummary(**base)


def test_result_savings():
    a, b, c, d = _results()
    assert a.saved_bytes == 2000
    assert round(a.saved_percent, 2) == 66.67
    assert b.saved_bytes == -300
    assert c.saved_bytes == 0 and d.saved_bytes == 0
    assert d.saved_percent == 0.0


def test_report_files(tmp_path):
    report = build_report(_results(), _summary())
    assert report.created_utc.endswith("Z")
    assert report.summary["saved_bytes"] == 1700
    assert report.summary["saved_percent"] == 48.57

    json_path = tmp_path / "r" / "report.json"
    csv_path = tmp_path / "r" / "report.csv"
    save_report_json(report, json_path)
    save_report_csv(report, csv_path)

    data = json.loads(json_path.read_text(encoding="utf-8"))
    assert [f["status"] for f in data["files"]] == ["converted", "converted", "skipped", "failed"]
    assert data["files"][1]["saved_bytes"] == -300

    with csv_path.open(encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 4
    assert rows[3]["error"] == "OSError: broken"


def test_format_bytes():
    assert format_bytes(0) == "0.00 KB"
    assert format_bytes(1536) == "1.50 KB"
    assert format_bytes(3 * 1048576) == "3.00 MB"
    assert format_bytes(-2048) == "-2.00 KB"


def test_format_duration():
    assert format_duration(1.234) == "1.23s"
    assert format_duration(125) == "2m 5.0s"


def _reporter():
    buf = io.StringIO()
    return ConsoleReporter(Console(file=buf, width=200, color_system=None)), buf


def test_reporter_lines():
    reporter, buf = _reporter()
    tasks = [FileTask(Path(f"in/{i}.png"), Path(f"out/{i}.webp")) for i in range(3)]

    reporter.found(tasks, large_batch_threshold=2)
    for r in _results():
        reporter.result(r)
    reporter.summary(_summary())

    text = buf.getvalue()
    assert "Found 3 files in the input directory." in text
    assert "Processing more than 2 files" in text
    assert "Image processed: a.webp" in text
    assert "Compressed from: 2.93 KB ==> 0.98 KB" in text
    assert "Image already exists, skipping: c.webp" in text
    assert "Error processing image d.jpg: OSError: broken" in text
    assert "Hooray! 1.66 KB saved." in text
    assert "Image processing time: 1.25s" in text


def test_reporter_escapes_markup():
    reporter, buf = _reporter()
    reporter.result(ProcessResult(Path("in/[red]x.png"), Path("out/[red]x.webp"), "failed", error="[bold]boom"))
    assert "[red]x.png" in buf.getvalue()
    assert "[bold]boom" in buf.getvalue()


def test_no_advisory_at_threshold():
    reporter, buf = _reporter()
    tasks = [FileTask(Path(f"in/{i}.png"), Path(f"out/{i}.webp")) for i in range(3)]
    reporter.found(tasks, large_batch_threshold=3)
    assert "Found 3 files" in buf.getvalue()
    assert "may take some time" not in buf.getvalue()
