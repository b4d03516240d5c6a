from __future__ import annotations

import csv
import io
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Union

import pandas as pd
from pandas.errors import EmptyDataError, ParserError

"""CSV reader for project imports.

- 1行目をヘッダ行として扱い、2行目以降をデータ行とする
- ヘッダは transform_header (既定: 小文字化 + trim) を通してキーにする
- 値はすべて生の文字列のまま (型推定・NA 変換なし)
- 列数超過の行は警告に記録し、ヘッダ幅に切り詰めて取り込む (致命的エラーにしない)

Only empty input (EmptyInputError) and undecodable / unparseable input
(UnreadableInputError) abort the read.
"""

__all__ = [
    "CsvReadError",
    "EmptyInputError",
    "UnreadableInputError",
    "CsvSource",
    "RawRow",
    "ParsedCsv",
    "CsvRowStream",
    "normalize_header",
    "read_csv_rows",
    "iter_csv_rows",
]

ENCODING = "utf-8-sig"
DEFAULT_CHUNK_SIZE = 100
_BLANK_SCAN_BYTES = 64 * 1024
_BOM = b"\xef\xbb\xbf"

RawRow = dict[str, str]
CsvSource = Union[str, bytes, os.PathLike, IO[bytes], IO[str]]


class CsvReadError(Exception):
    """Base class for fatal CSV input errors."""


class EmptyInputError(CsvReadError):
    """Raised when the input has no content or no header row."""


class UnreadableInputError(CsvReadError):
    """Raised when the input cannot be read, decoded, or tokenized."""


def normalize_header(header: str) -> str:
    return str(header).lower().strip()


@dataclass
class ParsedCsv:
    headers: list[str]
    rows: list[RawRow]
    warnings: list[str] = field(default_factory=list)


def _to_binary_handle(source: CsvSource) -> tuple[IO[bytes], bool]:
    """Return a seekable binary handle and whether we own (must close) it."""
    if isinstance(source, bytes):
        return io.BytesIO(source), True
    if isinstance(source, str):
        return io.BytesIO(source.encode("utf-8")), True
    if isinstance(source, os.PathLike):
        try:
            return open(Path(source), "rb"), True
        except OSError as e:
            raise UnreadableInputError(f"cannot open {source}: {e}") from e
    if hasattr(source, "read"):
        if isinstance(source, io.TextIOBase):
            try:
                return io.BytesIO(source.read().encode("utf-8")), True
            except (OSError, ValueError, UnicodeError) as e:
                raise UnreadableInputError(f"cannot read input: {e}") from e
        seekable = getattr(source, "seekable", None)
        if seekable is not None and seekable():
            return source, False  # type: ignore[return-value]
        try:
            return io.BytesIO(source.read()), True  # type: ignore[arg-type]
        except (OSError, ValueError) as e:
            raise UnreadableInputError(f"cannot read input: {e}") from e
    raise TypeError(f"unsupported CSV source type: {type(source).__name__}")


def _total_bytes(handle: IO[bytes]) -> int:
    start = handle.tell()
    handle.seek(0, os.SEEK_END)
    total = handle.tell()
    handle.seek(start)
    return total


def _is_blank(handle: IO[bytes]) -> bool:
    handle.seek(0)
    first = True
    try:
        while True:
            block = handle.read(_BLANK_SCAN_BYTES)
            if not block:
                return True
            if first:
                block = block.removeprefix(_BOM)
                first = False
            if block.strip():
                return False
    finally:
        handle.seek(0)


def _cell(value: object) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value)


class CsvRowStream:
    """Lazy, header-keyed row iterator over a CSV source.

    Parameters
    ----------
    source: CSV テキスト / bytes / ファイルパス / ファイルハンドル
    transform_header: ヘッダ名の正規化関数
    on_progress: 読み込み進捗 (0-99) を受け取るコールバック。100 は呼び出し側が通知する
    chunk_size: pandas に渡す chunksize (進捗通知の粒度)

    Iteration can be performed once. ``headers`` is populated before the
    first row is yielded and ``warnings`` collects malformed-line notices.
    """

    def __init__(
        self,
        source: CsvSource,
        *,
        transform_header: Callable[[str], str] = normalize_header,
        on_progress: Callable[[int], None] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._source = source
        self._transform_header = transform_header
        self._on_progress = on_progress
        self._chunk_size = max(1, chunk_size)
        self.headers: list[str] = []
        self.warnings: list[str] = []
        self._width = 0
        self._consumed = False

    def _on_bad_line(self, bad_line: list[str]) -> list[str]:
        self.warnings.append(
            f"Malformed line with {len(bad_line)} fields (expected {self._width}); extra fields dropped"
        )
        return bad_line[: self._width]

    def _report(self, consumed: int, total: int) -> None:
        if self._on_progress is None or total <= 0:
            return
        percent = round(consumed / total * 100)
        # 完了通知 (100) は下流フェーズ終了後に呼び出し側が行う
        self._on_progress(max(0, min(percent, 99)))

    def __iter__(self) -> Iterator[RawRow]:
        if self._consumed:
            raise RuntimeError("CsvRowStream can only be iterated once")
        self._consumed = True

        handle, owned = _to_binary_handle(self._source)
        try:
            yield from self._iter_handle(handle)
        finally:
            if owned:
                handle.close()

    def _iter_handle(self, handle: IO[bytes]) -> Iterator[RawRow]:
        try:
            total = _total_bytes(handle)
            if total == 0 or _is_blank(handle):
                raise EmptyInputError("CSV content is empty")
        except OSError as e:
            raise UnreadableInputError(f"cannot read input: {e}") from e

        try:
            header_frame = pd.read_csv(
                handle, nrows=0, dtype=str, encoding=ENCODING, engine="python"
            )
            handle.seek(0)
            raw_headers = [str(c) for c in header_frame.columns]
            self.headers = [self._transform_header(h) for h in raw_headers]
            self._width = len(raw_headers)

            reader = pd.read_csv(
                handle,
                dtype=str,
                keep_default_na=False,
                na_filter=False,
                skip_blank_lines=True,
                encoding=ENCODING,
                engine="python",
                on_bad_lines=self._on_bad_line,
                chunksize=self._chunk_size,
            )
            with reader:
                for chunk in reader:
                    self._report(handle.tell(), total)
                    for values in chunk.itertuples(index=False, name=None):
                        # 重複ヘッダは後の列が優先
                        yield {h: _cell(v) for h, v in zip(self.headers, values)}
        except EmptyDataError as e:
            raise EmptyInputError(f"CSV has no header row: {e}") from e
        except (ParserError, csv.Error, UnicodeDecodeError) as e:
            raise UnreadableInputError(f"CSV parsing failed: {e}") from e
        except OSError as e:
            raise UnreadableInputError(f"cannot read input: {e}") from e


def iter_csv_rows(
    source: CsvSource,
    *,
    transform_header: Callable[[str], str] = normalize_header,
    on_progress: Callable[[int], None] | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> CsvRowStream:
    """Stream rows from ``source`` with a clamped (0-99) progress callback."""
    return CsvRowStream(
        source,
        transform_header=transform_header,
        on_progress=on_progress,
        chunk_size=chunk_size,
    )


def read_csv_rows(
    source: CsvSource,
    *,
    transform_header: Callable[[str], str] = normalize_header,
) -> ParsedCsv:
    """Read every row of ``source`` into memory.

    Raises:
        EmptyInputError: no content / no header
        UnreadableInputError: cannot be opened, decoded or tokenized
    """
    stream = CsvRowStream(source, transform_header=transform_header)
    rows = list(stream)
    return ParsedCsv(headers=stream.headers, rows=rows, warnings=list(stream.warnings))
