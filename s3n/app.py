from __future__ import annotations

import argparse
import asyncio
import logging
import subprocess
import sys
from functools import partial
from typing import Optional

from rich.text import Text
from textual.app import App, ComposeResult, SuspendNotSupported
from textual.binding import Binding
from textual.containers import Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import DataTable, Footer, Header, Input, Static

from .config import (
    Preferences,
    Settings,
    configure_logging,
    load_preferences,
    save_preferences,
)
from .controller import (
    Event,
    FetchRequest,
    ListingFailed,
    ListingLoaded,
    Navigator,
    SessionFinished,
    StatusExpired,
)
from .formatting import format_size, format_time, kind_from_name
from .highlight import ContentFilter
from .listing import Entry
from .s3 import S3Service
from .session import MODE_EDIT, MODE_VIEW, Session, SessionRunner, compose_header

logger = logging.getLogger(__name__)


DIR_STYLE = "bold #2f80ed"


def entry_kind(entry: Entry) -> str:
    if entry.is_dir:
        return "dir"
    return kind_from_name(entry.display_key)


def cell(label: str, style: str = "", justify: str = "left") -> Text:
    return Text(
        label, style=style, justify=justify, no_wrap=True, overflow="ellipsis"
    )


def entry_cells(entry: Entry) -> tuple[Text, ...]:
    if entry.is_dir:
        return (
            cell("📁"),
            cell(entry.display_key, style=DIR_STYLE),
            cell(entry_kind(entry)),
            cell(""),
            cell(""),
            cell(""),
        )
    return (
        cell("📄"),
        cell(entry.display_key),
        cell(entry_kind(entry)),
        cell(format_size(entry.size), justify="right"),
        cell(format_time(entry.last_modified)),
        cell(entry.content_type),
    )


class EntryTable(DataTable):
    def action_select_cursor(self) -> None:
        self.app.action_open()

    def action_cursor_left(self) -> None:
        self.app.action_back()


class ObjectViewer(ModalScreen[None]):
    BINDINGS = [
        ("escape", "close", "Close"),
        ("q", "dismiss_viewer", "Close"),
        ("slash", "filter", "Filter"),
    ]

    CSS = """
    ObjectViewer {
        align: center middle;
    }

    #viewer {
        width: 100%;
        height: 100%;
        margin: 1 2;
        border: round $panel;
        background: $surface;
    }

    #viewer-title {
        height: 1;
        padding: 0 1;
        background: $panel;
        color: $text;
    }

    #viewer-filter {
        height: 1;
        border: none;
        background: $panel;
    }

    #viewer-scroll {
        height: 1fr;
        padding: 0 1;
    }

    #viewer-info {
        height: 1;
        padding: 0 1;
        color: $text-muted;
        content-align: right middle;
    }
    """

    def __init__(self, title: str, text: str) -> None:
        super().__init__()
        self._title = title
        self.content_filter = ContentFilter(text)

    def compose(self) -> ComposeResult:
        with Vertical(id="viewer"):
            yield Static(
                Text.assemble(self._title, "  ", ("Press / to filter", "dim")),
                id="viewer-title",
            )
            with VerticalScroll(id="viewer-scroll"):
                yield Static(self.content_filter.render(), id="viewer-body")
            yield Static("", id="viewer-info")

    def on_mount(self) -> None:
        scroll = self.query_one("#viewer-scroll", VerticalScroll)
        scroll.focus()
        self.watch(scroll, "scroll_y", self._refresh_info)

    def action_dismiss_viewer(self) -> None:
        self.dismiss(None)

    async def action_filter(self) -> None:
        if self.content_filter.enabled:
            return
        self.content_filter.enable()
        filter_input = Input(placeholder="Filter", id="viewer-filter")
        await self.query_one("#viewer", Vertical).mount(
            filter_input, after="#viewer-title"
        )
        filter_input.focus()
        self._refresh_body()

    async def action_close(self) -> None:
        if self.content_filter.enabled:
            self.content_filter.disable()
            await self.query_one("#viewer-filter", Input).remove()
            self.query_one("#viewer-scroll", VerticalScroll).focus()
            self._refresh_body()
            return
        self.dismiss(None)

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "viewer-filter":
            return
        self.content_filter.set_query(event.value)
        self._refresh_body()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "viewer-filter":
            return
        self.query_one("#viewer-scroll", VerticalScroll).focus()

    def _refresh_body(self) -> None:
        self.query_one("#viewer-body", Static).update(self.content_filter.render())
        self._refresh_info()

    def _refresh_info(self) -> None:
        scroll = self.query_one("#viewer-scroll", VerticalScroll)
        if scroll.max_scroll_y > 0:
            percent = int(round(100 * scroll.scroll_y / scroll.max_scroll_y))
        else:
            percent = 100
        parts = [f"{percent}%"]
        if self.content_filter.enabled and self.content_filter.query:
            parts.insert(0, f"{self.content_filter.match_count} matches")
        self.query_one("#viewer-info", Static).update("  ".join(parts))


class BucketBrowser(App):
    CSS = """
    #path-bar {
        height: 3;
        padding: 0 1;
        border: round $panel;
        background: $surface;
        color: $text;
        content-align: left middle;
    }

    #entries {
        height: 1fr;
        border: round $panel;
        scrollbar-gutter: stable;
    }

    #entries > .datatable--cursor {
        text-style: none;
    }

    #status {
        height: 1;
        padding: 0 2;
        color: $text-muted;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("enter", "open", "Enter dir/view file"),
        ("backspace", "back", "Back"),
        Binding("h", "back", "Back", show=False),
        ("ctrl+e", "edit", "Edit file"),
        ("ctrl+r", "reload", "Reload"),
        ("n", "next_page", "Next page"),
        ("p", "previous_page", "Prev page"),
        ("g", "first_page", "First page"),
        ("space", "preview", "Preview"),
        ("t", "toggle_content_type", "Content-Type"),
    ]

    BROWSE_ACTIONS = frozenset(
        {
            "open",
            "back",
            "edit",
            "reload",
            "next_page",
            "previous_page",
            "first_page",
            "preview",
            "toggle_content_type",
        }
    )

    def __init__(
        self,
        settings: Settings,
        service: Optional[S3Service] = None,
        launcher=None,
    ) -> None:
        super().__init__()
        self.settings = settings
        self.service = service or S3Service(
            profile=settings.profile,
            region=settings.region,
            endpoint_url=settings.endpoint_url,
        )
        self.navigator = Navigator(
            bucket=settings.bucket,
            scratch_dir=settings.scratch_dir,
            delimiter=settings.delimiter,
        )
        self.preferences = load_preferences(settings.preferences_path)
        self.runner = SessionRunner(
            self.service,
            settings.bucket,
            launcher or self._run_external,
            editor=settings.editor,
            pager=settings.pager,
        )
        self._row_keys: list[object] = []
        self._row_entries: dict[object, Entry] = {}
        self._rendered_entries: Optional[list[Entry]] = None
        self._rendered_loading = False
        self._restore_key: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static("", id="path-bar")
        yield EntryTable(id="entries")
        yield Static("", id="status")
        yield Footer()

    def on_mount(self) -> None:
        self.title = self.settings.bucket
        self.entry_table = self.query_one("#entries", EntryTable)
        self.path_bar = self.query_one("#path-bar", Static)
        self.status_bar = self.query_one("#status", Static)
        self.entry_table.add_column("", width=2, key="icon")
        self.entry_table.add_column("Name", key="name")
        self.entry_table.add_column("Kind", key="kind")
        self.entry_table.add_column("Size", key="size")
        self.entry_table.add_column("Modified", key="modified")
        self.entry_table.add_column("Content-Type", key="content_type")
        self.entry_table.cursor_type = "row"
        self.entry_table.zebra_stripes = True
        self.set_focus(self.entry_table)
        self._issue(self.navigator.start())

    def check_action(
        self, action: str, parameters: tuple[object, ...]
    ) -> Optional[bool]:
        if action in self.BROWSE_ACTIONS and len(self.screen_stack) > 1:
            return False
        return True

    def action_open(self) -> None:
        entry = self._entry_for_cursor()
        if entry is None:
            return
        if entry.is_dir:
            self._issue(self.navigator.enter(entry))
            return
        self._start_session(entry, MODE_VIEW)

    def action_back(self) -> None:
        previous = self.navigator.current_prefix
        request = self.navigator.back()
        if request is not None:
            self._restore_key = previous
        self._issue(request)

    def action_reload(self) -> None:
        entry = self._entry_for_cursor()
        request = self.navigator.reload()
        if request is not None and entry is not None:
            self._restore_key = entry.key
        self._issue(request)

    def action_next_page(self) -> None:
        self._issue(self.navigator.next_page())

    def action_previous_page(self) -> None:
        self._issue(self.navigator.previous_page())

    def action_first_page(self) -> None:
        self._issue(self.navigator.first_page())

    def action_edit(self) -> None:
        self._start_session(self._entry_for_cursor(), MODE_EDIT)

    def action_preview(self) -> None:
        entry = self._entry_for_cursor()
        if not self.navigator.begin_preview(entry):
            return
        self.run_worker(self._open_viewer(entry), group="preview", exclusive=True)

    async def action_toggle_content_type(self) -> None:
        if self.navigator.busy:
            return
        self.preferences = Preferences(
            show_content_type=not self.preferences.show_content_type
        )
        await asyncio.to_thread(
            save_preferences, self.settings.preferences_path, self.preferences
        )
        self.action_reload()

    def _issue(self, request: Optional[FetchRequest]) -> None:
        if request is None:
            return
        self._render()
        self.run_worker(self._fetch(request), group="listing")

    async def _fetch(self, request: FetchRequest) -> None:
        try:
            page = await self.service.list_page(
                self.settings.bucket,
                request.prefix,
                delimiter=self.settings.delimiter,
                max_keys=self.settings.page_size,
                continuation_token=request.token,
                with_content_type=self.preferences.show_content_type,
            )
        except Exception as exc:
            self._apply(ListingFailed(request=request, error=exc))
            return
        self._apply(ListingLoaded(request=request, page=page))

    def _start_session(self, entry: Optional[Entry], mode: str) -> None:
        session = self.navigator.begin_session(entry, mode)
        if session is None:
            return
        self._render()
        self.run_worker(self._run_session(session), group="session", exclusive=True)

    async def _run_session(self, session: Session) -> None:
        if session.mode == MODE_EDIT:
            result = await self.runner.edit(session)
        else:
            result = await self.runner.view(session, self.size.width)
        self._apply(SessionFinished(result=result))

    def _run_external(self, argv: list[str]) -> int:
        try:
            with self.suspend():
                completed = subprocess.run(argv, check=False)
        except SuspendNotSupported as exc:
            raise OSError(f"terminal cannot be handed over: {exc}") from exc
        self.refresh()
        return completed.returncode

    async def _open_viewer(self, entry: Entry) -> None:
        bucket = self.settings.bucket
        try:
            obj = await self.service.get_object(bucket, entry.key)
        except Exception as exc:
            self.navigator.set_status(f"Error: {exc}")
            return
        finally:
            self.navigator.end_preview()
            self._render()
        header = compose_header(bucket, obj, self.size.width)
        text = header + obj.body.decode("utf-8", errors="replace")
        self.push_screen(ObjectViewer(f"s3://{bucket}/{entry.key}", text))

    def _apply(self, event: Event) -> None:
        token = self.navigator.dispatch(event)
        if token is not None:
            self.set_timer(
                self.settings.status_clear_seconds,
                partial(self._apply, StatusExpired(token=token)),
            )
        self._render()

    def _render(self) -> None:
        if not hasattr(self, "entry_table"):
            return
        nav = self.navigator
        self.sub_title = nav.location
        page = f"page {nav.cursor.page_number}"
        if nav.cursor.has_more:
            page = f"{page}, more available"
        self.path_bar.update(Text(f"{nav.location}  ({page})"))
        stale = nav.entries is not self._rendered_entries
        if stale or nav.loading != self._rendered_loading:
            self._render_table()
        if nav.loading:
            self.status_bar.update("Loading...")
        elif nav.status.visible:
            self.status_bar.update(Text(nav.status.text))
        else:
            self.status_bar.update("")

    def _render_table(self) -> None:
        nav = self.navigator
        self._clear_table()
        self._rendered_entries = nav.entries
        self._rendered_loading = nav.loading
        if nav.loading:
            self.entry_table.add_row("", "Loading...", "", "", "", "")
            return
        for entry in nav.entries:
            row_key = self.entry_table.add_row(*entry_cells(entry), key=entry.key)
            self._row_keys.append(row_key)
            self._row_entries[row_key] = entry
        if self._restore_key is not None:
            self._restore_cursor(self._restore_key)
            self._restore_key = None

    def _clear_table(self) -> None:
        self.entry_table.clear()
        self._row_keys = []
        self._row_entries = {}

    def _entry_for_cursor(self) -> Optional[Entry]:
        if self.navigator.loading or not hasattr(self, "entry_table"):
            return None
        row = self.entry_table.cursor_row
        if row is None or row < 0 or row >= len(self._row_keys):
            return None
        return self._row_entries.get(self._row_keys[row])

    def _restore_cursor(self, key: str) -> None:
        for index, row_key in enumerate(self._row_keys):
            entry = self._row_entries.get(row_key)
            if entry is not None and entry.key == key:
                self.entry_table.move_cursor(row=index, animate=False)
                return


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3n",
        description="Browse and edit an S3 bucket like a filesystem",
    )
    parser.add_argument("bucket", nargs="?", help="Bucket to browse")
    parser.add_argument("-p", "--profile", help="AWS profile for the S3 client")
    parser.add_argument("--region", help="AWS region override for the S3 client")
    parser.add_argument(
        "--endpoint-url",
        help="Custom S3 endpoint (e.g. http://localhost:4566 for LocalStack)",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        help="Objects fetched per listing page (1-1000, default 100)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.bucket:
        parser.print_usage(sys.stderr)
        print("Please provide a bucket name", file=sys.stderr)
        return 1
    try:
        settings = Settings.from_env(
            args.bucket,
            profile=args.profile,
            region=args.region,
            endpoint_url=args.endpoint_url,
            page_size=args.page_size,
        )
        configure_logging(settings)
        service = S3Service(
            profile=settings.profile,
            region=settings.region,
            endpoint_url=settings.endpoint_url,
        )
        service.connect()
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    logger.debug("starting browser for bucket %s", settings.bucket)
    app = BucketBrowser(settings, service=service)
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
