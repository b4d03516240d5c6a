from __future__ import annotations

import json
import re

from glitter_import.logging.error_log import (
    ERROR_PROJECT_CREATE,
    ERROR_TAG_CREATE,
    ERROR_TAG_LINK,
    ERROR_TAG_RESOLUTION,
    PARSER_WARNING,
)
from glitter_import.models.error_record import ROW_UNKNOWN, ErrorRecord

"""エラーログ (JSON Lines) スキーマ契約テスト"""

REQUIRED_KEYS = {"timestamp", "file", "row", "error_type", "message"}
TIMESTAMP_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$")
ERROR_TYPE_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")


def test_record_has_fixed_key_set():
    rec = ErrorRecord.create("projects.csv", 4, ERROR_PROJECT_CREATE, "boom")
    data = json.loads(rec.to_json_line())
    assert set(data) == REQUIRED_KEYS
    assert TIMESTAMP_PATTERN.match(data["timestamp"])
    assert isinstance(data["row"], int)


def test_error_types_are_upper_snake_case():
    for t in (ERROR_PROJECT_CREATE, ERROR_TAG_CREATE, ERROR_TAG_RESOLUTION, ERROR_TAG_LINK, PARSER_WARNING):
        assert ERROR_TYPE_PATTERN.match(t)


def test_unknown_row_is_minus_one():
    rec = ErrorRecord.create("projects.csv", ROW_UNKNOWN, ERROR_TAG_CREATE, "x")
    assert json.loads(rec.to_json_line())["row"] == -1


def test_non_ascii_message_kept_readable():
    rec = ErrorRecord.create("プロジェクト.csv", 1, ERROR_PROJECT_CREATE, "タイトルが長すぎます")
    line = rec.to_json_line()
    assert "タイトルが長すぎます" in line
    assert "\n" not in line
