"""Tests for imgrel.output.console module."""

from __future__ import annotations

import threading

import pytest

from imgrel.output.console import ConsoleProtocol, MockConsole, RichConsole, Style


def test_style_str() -> None:
    assert str(Style.WARNING) == "warning"


class TestMockConsole:
    def test_prefixes(self) -> None:
        console = MockConsole()
        console.success("built")
        console.error("failed")
        console.warning("skipped")
        console.info("note")
        assert console.messages == ["OK built", "error: failed", "warning: skipped", "info: note"]

    def test_table_flattens_rows(self) -> None:
        console = MockConsole()
        console.table("Images", ("app", "image"), [("sed-tool", "matrix-sed")])
        assert console.outputs[0].style == Style.HEADER
        assert console.messages[1] == "sed-tool | matrix-sed"

    def test_helpers(self) -> None:
        console = MockConsole()
        console.warning("a")
        console.print("b", Style.DIM)
        assert console.has_warning()
        assert not console.has_error()
        assert console.count(Style.DIM) == 1
        assert len(console.find("b")) == 1
        console.clear()
        assert console.messages == []

    def test_concurrent_writes_are_all_kept(self) -> None:
        console = MockConsole()

        def worker(n: int) -> None:
            for i in range(50):
                console.print(f"{n}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(console.outputs) == 400


def test_implementations_satisfy_protocol() -> None:
    consoles: list[ConsoleProtocol] = [MockConsole(), RichConsole()]
    for console in consoles:
        assert callable(console.table)


def test_rich_console_prints_job_keys_literally(capsys: pytest.CaptureFixture[str]) -> None:
    console = RichConsole()
    console.print("[acme/matrix-sed:1.4.0] tag ghcr.io/acme/matrix-sed:v1")
    console.error("[red]not markup[/red]")

    err = capsys.readouterr().err
    assert "[acme/matrix-sed:1.4.0] tag ghcr.io/acme/matrix-sed:v1" in err
    assert "error: [red]not markup[/red]" in err
