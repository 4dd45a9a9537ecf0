"""Tests for the line-window chunker."""

import pytest

from memox.domain.errors import BinaryFileError, FileReadError
from memox.domain.ports.filesystem import FileHandle
from memox.infrastructure.filesystem.local import LocalFileSystem
from memox.infrastructure.rag.chunker import chunk_file, chunk_lines, decode_text, split_lines


def _numbered(n: int) -> str:
    return "\n".join(f"    value_{i} = {i}" for i in range(1, n + 1)) + "\n"


class TestSplitLines:
    """split_lines: newline handling."""

    def test_empty(self):
        assert split_lines("") == []

    def test_trailing_newline_ignored(self):
        assert split_lines("a\nb\n") == ["a", "b"]

    def test_crlf(self):
        assert split_lines("a\r\nb") == ["a", "b"]


class TestDecodeText:
    """decode_text: text detection."""

    def test_utf8(self):
        assert decode_text("a.py", "héllo".encode()) == "héllo"

    def test_bom_stripped(self):
        assert decode_text("a.py", b"\xef\xbb\xbfx = 1") == "x = 1"

    def test_nul_bytes_rejected(self):
        with pytest.raises(BinaryFileError) as exc:
            decode_text("img.dat", b"PK\x00\x01")
        assert exc.value.filename == "img.dat"

    def test_invalid_utf8_rejected(self):
        with pytest.raises(BinaryFileError):
            decode_text("blob", b"\xff\xfe\xfa")


class TestChunkLines:
    """chunk_lines: window splitting and metadata."""

    def test_empty_content(self):
        assert chunk_lines("a.py", "") == []

    def test_short_file_single_chunk(self):
        chunks = chunk_lines("a.py", _numbered(30), window=50)
        assert len(chunks) == 1
        assert chunks[0].metadata.start_line == 1
        assert chunks[0].metadata.end_line == 30
        assert chunks[0].metadata.filename == "a.py"

    def test_fixed_windows_without_boundaries(self):
        chunks = chunk_lines("a.py", _numbered(120), window=50, respect_boundaries=False)
        ranges = [(c.metadata.start_line, c.metadata.end_line) for c in chunks]
        assert ranges == [(1, 50), (51, 100), (101, 120)]

    def test_ranges_are_contiguous_and_cover_file(self):
        content = _numbered(137)
        chunks = chunk_lines("a.py", content, window=50)
        assert chunks[0].metadata.start_line == 1
        assert chunks[-1].metadata.end_line == 137
        for prev, nxt in zip(chunks, chunks[1:]):
            assert nxt.metadata.start_line == prev.metadata.end_line + 1
        assert "\n".join(c.content for c in chunks) == content.rstrip("\n")

    def test_no_chunk_exceeds_window(self):
        chunks = chunk_lines("a.py", _numbered(500), window=40)
        for c in chunks:
            assert c.metadata.end_line - c.metadata.start_line + 1 <= 40

    def test_splits_before_definition(self):
        lines = [f"    x_{i} = {i}" for i in range(60)]
        lines[40] = "def handler(event):"
        chunks = chunk_lines("a.py", "\n".join(lines), window=50)
        assert chunks[0].metadata.end_line == 40
        assert chunks[1].metadata.start_line == 41
        assert chunks[1].content.startswith("def handler")

    def test_never_splits_below_half_window(self):
        lines = [f"    x_{i} = {i}" for i in range(60)]
        lines[10] = "class Early:"
        chunks = chunk_lines("a.py", "\n".join(lines), window=50)
        assert chunks[0].metadata.end_line == 50

    def test_whitespace_only_windows_dropped(self):
        content = "a\n" + "\n" * 100 + "b"
        chunks = chunk_lines("a.txt", content, window=50, respect_boundaries=False)
        assert [c.metadata.start_line for c in chunks] == [1, 101]
        assert all(c.content.strip() for c in chunks)

    def test_deterministic(self):
        content = _numbered(200)
        first = chunk_lines("a.py", content)
        second = chunk_lines("a.py", content)
        assert [c.model_dump() for c in first] == [c.model_dump() for c in second]

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            chunk_lines("a.py", "x", window=0)


class TestChunkFile:
    """chunk_file: reading through the file-system port."""

    @pytest.mark.asyncio
    async def test_reads_and_chunks(self, tmp_path):
        path = tmp_path / "mod.py"
        path.write_text(_numbered(10))
        chunks = await chunk_file(LocalFileSystem(), FileHandle(root=tmp_path, path=path))
        assert len(chunks) == 1
        assert chunks[0].metadata.filename == "mod.py"

    @pytest.mark.asyncio
    async def test_display_name_overrides_relative(self, tmp_path):
        path = tmp_path / "mod.py"
        path.write_text("x = 1\n")
        chunks = await chunk_file(LocalFileSystem(), FileHandle(root=tmp_path, path=path), "proj/mod.py")
        assert chunks[0].metadata.filename == "proj/mod.py"

    @pytest.mark.asyncio
    async def test_missing_file_is_read_error(self, tmp_path):
        handle = FileHandle(root=tmp_path, path=tmp_path / "gone.py")
        with pytest.raises(FileReadError):
            await chunk_file(LocalFileSystem(), handle)

    @pytest.mark.asyncio
    async def test_binary_file(self, tmp_path):
        path = tmp_path / "data.dat"
        path.write_bytes(b"\x00\x01\x02")
        with pytest.raises(BinaryFileError):
            await chunk_file(LocalFileSystem(), FileHandle(root=tmp_path, path=path))
