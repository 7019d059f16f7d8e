import json
import logging
from pathlib import Path

import pytest

from binbake.observability import StructuredLogger


def test_records_are_kept_and_forwarded_to_logging(caplog: pytest.LogCaptureFixture) -> None:
    """Records stay in memory and are echoed through stdlib logging."""
    logger = StructuredLogger()

    with caplog.at_level(logging.INFO, logger="binbake"):
        logger.log(
            operation="build_platform",
            package="hello",
            platform="x86_64-linux-gnu",
            phase="build",
            message="Running build",
        )

    assert logger.records_for_platform("x86_64-linux-gnu")[0]["message"] == "Running build"
    assert "[hello][x86_64-linux-gnu] Running build" in caplog.text


def test_json_lines_report_is_one_record_per_line(tmp_path: Path) -> None:
    logger = StructuredLogger()
    for phase in ("build", "package"):
        logger.log(
            operation="build_platform",
            package="hello",
            platform=None,
            phase=phase,
            message=phase,
            extra={"path": Path("x")},
        )

    report = logger.to_json_lines(tmp_path / "reports" / "hello.report.jsonl")

    lines = report.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["phase"] for line in lines] == ["build", "package"]
    assert json.loads(lines[0])["extra"] == {"path": "x"}
