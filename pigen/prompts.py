"""Terminal prompts for choosing a cloud provider and entering its settings."""

from __future__ import annotations

from dataclasses import dataclass, field

import click

_KEYS = {
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\xe0H": "up",
    "\xe0P": "down",
    "\r": "enter",
    "\n": "enter",
    "\t": "tab",
    "\x7f": "backspace",
    "\x08": "backspace",
}


def _read_key() -> str:
    char = click.getchar()
    return _KEYS.get(char, char)


@dataclass
class MenuModel:
    """A single-choice menu driven by key names."""

    options: list[str]
    selected: int = 0
    done: bool = False
    choice: str = ""

    def update(self, key: str) -> bool:
        """Apply a key; return True when the menu should close."""
        if key == "up":
            if self.selected > 0:
                self.selected -= 1
        elif key == "down":
            if self.selected < len(self.options) - 1:
                self.selected += 1
        elif key == "enter":
            self.done = True
            self.choice = self.options[self.selected]
            return True
        elif key == "q":
            return True
        return False

    def view(self) -> str:
        if self.done:
            return ""
        lines = "".join(
            f"{'>' if i == self.selected else ' '} {option}\n"
            for i, option in enumerate(self.options)
        )
        return "Select Cloud Provider:\n\n" + lines + "\n↑/↓ to move, enter to select"


@dataclass
class FormModel:
    """A form of text fields driven by key names."""

    placeholders: list[str]
    values: list[str] = field(default_factory=list)
    focus: int = 0
    done: bool = False
    char_limit: int = 64

    def __post_init__(self) -> None:
        if not self.values:
            self.values = ["" for _ in self.placeholders]

    def update(self, key: str) -> bool:
        """Apply a key; return True when the form is submitted."""
        count = len(self.placeholders)
        if key == "enter":
            if self.focus == count - 1:
                self.done = True
                return True
            self.focus += 1
        elif key in ("tab", "down"):
            self.focus = (self.focus + 1) % count
        elif key == "up":
            self.focus = (self.focus - 1 + count) % count
        elif key == "backspace":
            self.values[self.focus] = self.values[self.focus][:-1]
        elif len(key) == 1 and key.isprintable():
            if len(self.values[self.focus]) < self.char_limit:
                self.values[self.focus] += key
        return False

    def view(self) -> str:
        if self.done:
            return "Form submitted successfully.\n"
        fields = "".join(
            f"> {value or placeholder}\n"
            for placeholder, value in zip(self.placeholders, self.values)
        )
        return "Enter GCP Configuration:\n\n" + fields + "\nTab to switch, enter to submit."


def choose_provider(options: tuple[str, ...] | list[str] = ("GCP", "AWS", "AZURE")) -> str:
    """Let the user pick a provider; "" if they quit."""
    menu = MenuModel(list(options))
    click.echo(menu.view())
    while not menu.update(_read_key()):
        click.echo(menu.view())
    return menu.choice


def prompt_gcp_settings() -> tuple[str, str]:
    """Ask for the GCP project id and region."""
    click.echo("Enter your GCP Project ID: ", nl=False)
    form = FormModel(["Project ID", "Region"])
    click.echo(form.view())
    while not form.update(_read_key()):
        click.echo(form.view())
    click.echo(form.view())
    project_id, region = form.values
    return project_id, region