"""Modal dialogs for confirmations and picking one value from a list.

Usage:
    from crossplane_explorer.tui.components import ConfirmDialog, PickerDialog

    # From a worker
    if await self.app.push_screen_wait(ConfirmDialog("Delete", "Delete xrd foo?")):
        ...

    revision = await self.app.push_screen_wait(
        PickerDialog("Rollback", [("3  deployed", "3"), ("2  superseded", "2")])
    )
"""

from __future__ import annotations

from typing import Literal

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Label, OptionList, Static
from textual.widgets.option_list import Option

ButtonVariant = Literal["default", "primary", "success", "warning", "error"]


def dialog_css(name: str) -> str:
    """Shared centered-dialog CSS for the screen class ``name``."""
    return f"""
    {name} {{
        align: center middle;
    }}

    {name} > Container {{
        width: auto;
        max-width: 80%;
        min-width: 40;
        height: auto;
        max-height: 80%;
        background: $surface;
        border: thick $primary;
        padding: 1 2;
    }}

    {name} .dialog-title {{
        text-style: bold;
        text-align: center;
        width: 100%;
        margin-bottom: 1;
    }}

    {name} .dialog-buttons {{
        width: 100%;
        height: auto;
        align: center middle;
        margin-top: 1;
    }}

    {name} .dialog-buttons Button {{
        margin: 0 1;
        min-width: 10;
    }}

    {name} OptionList {{
        height: auto;
        max-height: 20;
        min-width: 40;
    }}
    """


class ConfirmDialog(ModalScreen[bool]):
    """Yes/no confirmation; Escape answers no.

    Args:
        title: Dialog title.
        body: Question shown to the user.
        confirm_label: Label of the confirming button.
        variant: Button variant of the confirming button.
    """

    DEFAULT_CSS = dialog_css("ConfirmDialog")

    BINDINGS = [
        Binding("escape", "cancel", "Cancel", show=False),
        Binding("y", "confirm", "Yes", show=False),
        Binding("n", "cancel", "No", show=False),
    ]

    def __init__(
        self,
        title: str,
        body: str,
        confirm_label: str = "Yes",
        variant: ButtonVariant = "error",
    ) -> None:
        super().__init__()
        self._title = title
        self._body = body
        self._confirm_label = confirm_label
        self._variant: ButtonVariant = variant

    def compose(self) -> ComposeResult:
        with Container():
            yield Label(self._title, classes="dialog-title")
            yield Static(self._body, markup=False)
            with Horizontal(classes="dialog-buttons"):
                yield Button(self._confirm_label, id="confirm", variant=self._variant)
                yield Button("Cancel", id="cancel")

    def on_mount(self) -> None:
        self.query_one("#cancel", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


class PickerDialog(ModalScreen[str | None]):
    """Pick one value from a list; Escape returns None.

    Args:
        title: Dialog title.
        choices: ``(label, value)`` pairs in display order.
    """

    DEFAULT_CSS = dialog_css("PickerDialog")

    BINDINGS = [Binding("escape", "cancel", "Cancel", show=False)]

    def __init__(self, title: str, choices: list[tuple[str, str]]) -> None:
        super().__init__()
        self._title = title
        self._choices = choices

    def compose(self) -> ComposeResult:
        with Container():
            yield Label(self._title, classes="dialog-title")
            yield OptionList(*(Option(label, id=value) for label, value in self._choices))

    def on_mount(self) -> None:
        self.query_one(OptionList).focus()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.dismiss(event.option.id)

    def action_cancel(self) -> None:
        self.dismiss(None)
