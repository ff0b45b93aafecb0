"""Widgets for the explorer TUI: the output panel and its sinks."""

from __future__ import annotations

from collections import deque

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Label, RichLog

from crossplane_explorer.tui.theme import line_style

MAX_SINK_LINES = 5000


class PanelSink:
    """OutputSink keeping its own scrollback inside an OutputPanel.

    Only the sink currently shown by the panel writes to the screen;
    the others buffer until they are shown.
    """

    def __init__(self, panel: OutputPanel, title: str) -> None:
        self._panel = panel
        self.title = title
        self.lines: deque[str] = deque(maxlen=MAX_SINK_LINES)
        self._partial = ""
        self.disposed = False

    def append_line(self, text: str) -> None:
        self.append(f"{text}\n")

    def append(self, text: str) -> None:
        if self.disposed:
            return
        *complete, self._partial = (self._partial + text).split("\n")
        for line in complete:
            self.lines.append(line)
            self._panel.write_line(self, line)

    def show(self) -> None:
        if not self.disposed:
            self._panel.show_sink(self)

    def dispose(self) -> None:
        if self._partial:
            self.lines.append(self._partial)
            self._panel.write_line(self, self._partial)
            self._partial = ""
        self.disposed = True
        self._panel.sink_disposed(self)


class OutputPanel(Vertical):
    """Titled RichLog switching between watch, log, trace and lint sinks."""

    DEFAULT_CSS = """
    OutputPanel {
        width: 3fr;
        border-left: solid $primary;
    }

    OutputPanel #output-title {
        width: 100%;
        background: $surface;
        text-style: bold;
        padding: 0 1;
    }

    OutputPanel RichLog {
        height: 1fr;
    }
    """

    EMPTY_TITLE = "Output"

    def __init__(self, *, id: str | None = None) -> None:
        super().__init__(id=id)
        self.sinks: list[PanelSink] = []
        self.current: PanelSink | None = None

    def compose(self) -> ComposeResult:
        yield Label(self.EMPTY_TITLE, id="output-title")
        yield RichLog(highlight=False, markup=False, wrap=True, auto_scroll=True, id="output-log")

    def create_sink(self, title: str) -> PanelSink:
        sink = PanelSink(self, title)
        self.sinks.append(sink)
        return sink

    def _title(self, sink: PanelSink) -> str:
        position = f"[{self.sinks.index(sink) + 1}/{len(self.sinks)}]" if sink in self.sinks else ""
        state = " (stopped)" if sink.disposed else ""
        return f"{sink.title}{state} {position}".rstrip()

    def show_sink(self, sink: PanelSink) -> None:
        self.current = sink
        self.query_one("#output-title", Label).update(self._title(sink))
        log = self.query_one("#output-log", RichLog)
        log.clear()
        for line in sink.lines:
            log.write(Text(line, style=line_style(line)))

    def write_line(self, sink: PanelSink, line: str) -> None:
        if sink is self.current:
            self.query_one("#output-log", RichLog).write(Text(line, style=line_style(line)))

    def sink_disposed(self, sink: PanelSink) -> None:
        if sink is self.current:
            self.query_one("#output-title", Label).update(self._title(sink))

    def cycle(self, step: int = 1) -> None:
        """Show the next (or previous) sink."""
        if not self.sinks:
            return
        index = self.sinks.index(self.current) if self.current in self.sinks else -1
        self.show_sink(self.sinks[(index + step) % len(self.sinks)])

    def close_current(self) -> None:
        """Drop the shown sink if it has been disposed."""
        sink = self.current
        if sink is None or not sink.disposed:
            return
        self.sinks.remove(sink)
        self.current = None
        if self.sinks:
            self.show_sink(self.sinks[-1])
        else:
            self.query_one("#output-title", Label).update(self.EMPTY_TITLE)
            self.query_one("#output-log", RichLog).clear()
