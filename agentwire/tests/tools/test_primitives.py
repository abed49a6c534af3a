# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import httpx
import pytest

from src.tools import http_tools
from src.tools.file_tools import MAX_READ_CHARS


@pytest.fixture
def runtime(make_runtime):
    return make_runtime()


class TestFileTools:
    def test_write_then_read(self, runtime, tmp_path):
        path = tmp_path / "sub" / "notes.txt"
        written = runtime.send("write_file", {"path": str(path), "content": "hello"})
        assert written == f"Wrote 5 characters to {path}"
        assert runtime.send("read_file", {"path": str(path)}) == "hello"

    def test_read_missing_file(self, runtime, tmp_path):
        result = runtime.send("read_file", {"path": str(tmp_path / "nope.txt")})
        assert result.startswith("Error: File not found")

    def test_read_directory(self, runtime, tmp_path):
        assert runtime.send("read_file", {"path": str(tmp_path)}).startswith("Error: Not a file")

    def test_read_binary_file(self, runtime, tmp_path):
        path = tmp_path / "blob.bin"
        path.write_bytes(b"\xff\xfe\x00\x81")
        assert runtime.send("read_file", {"path": str(path)}) == f"Error: {path} is not a text file"

    def test_read_truncates(self, runtime, tmp_path):
        path = tmp_path / "big.txt"
        path.write_text("x" * (MAX_READ_CHARS + 10))
        result = runtime.send("read_file", {"path": str(path)})
        assert result.endswith(f"Warnings: File truncated to the first {MAX_READ_CHARS} characters")


class TestListFiles:
    def test_lists_sorted_entries(self, runtime, tmp_path):
        (tmp_path / "b.txt").write_text("")
        (tmp_path / "a").mkdir()
        (tmp_path / ".hidden").write_text("")
        assert runtime.send("list_files", {"path": str(tmp_path)}) == "a/\nb.txt"

    def test_show_hidden(self, runtime, tmp_path):
        (tmp_path / ".hidden").write_text("")
        result = runtime.send("list_files", {"path": str(tmp_path), "show_hidden": True})
        assert result == ".hidden"

    def test_empty_and_missing(self, runtime, tmp_path):
        assert runtime.send("list_files", {"path": str(tmp_path)}) == "(empty directory)"
        missing = tmp_path / "missing"
        assert runtime.send("list_files", {"path": str(missing)}) == f"Error: Not a directory: {missing}"


class TestHttpGet:
    def fake_get(self, monkeypatch, handler):
        calls = []

        def get(url, **kwargs):
            calls.append((url, kwargs))
            return handler(url)

        monkeypatch.setattr(http_tools.httpx, "get", get)
        return calls

    def test_success(self, runtime, monkeypatch):
        calls = self.fake_get(monkeypatch, lambda url: httpx.Response(200, text="<html>ok</html>"))
        result = runtime.send("http_get", {"url": "https://example.com"})
        assert result == "HTTP 200\n\n<html>ok</html>"
        assert calls == [("https://example.com", {"timeout": 30.0, "follow_redirects": True})]

    def test_error_status(self, runtime, monkeypatch):
        self.fake_get(monkeypatch, lambda url: httpx.Response(404, text="missing"))
        assert runtime.send("http_get", {"url": "https://example.com/x"}) == "Error: HTTP 404: missing"

    def test_transport_failure(self, runtime, monkeypatch):
        def fail(url):
            raise httpx.ConnectError("connection refused")

        self.fake_get(monkeypatch, fail)
        result = runtime.send("http_get", {"url": "https://example.com"})
        assert result == "Error: Request failed: connection refused"

    def test_truncates_long_bodies(self, runtime, monkeypatch):
        self.fake_get(monkeypatch, lambda url: httpx.Response(200, text="y" * 20_000))
        result = runtime.send("http_get", {"url": "https://example.com"})
        assert result.endswith("Warnings: Body truncated to 10000 characters")
        assert result.startswith("HTTP 200\n\n" + "y" * 10_000 + "\nWarnings")

    def test_rejects_other_schemes(self, runtime, monkeypatch):
        calls = self.fake_get(monkeypatch, lambda url: httpx.Response(200))
        assert runtime.send("http_get", {"url": "file:///etc/passwd"}).startswith(
            "Error: Unsupported URL scheme"
        )
        assert calls == []


class TestThink:
    def test_records_thought(self, runtime):
        assert runtime.send("think", {"thought": "Plan first."}) == "Thought recorded."
