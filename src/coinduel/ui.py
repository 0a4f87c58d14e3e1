"""Terminal front-end — rich rendering plus a line-oriented command loop.

Every screen is rendered from an immutable ``SessionView`` so the
renderer never reads state the listener thread is changing.

Commands at the prompt:
    <Enter>          advance / select the coin under the cursor
    l, left          move left      r, right    move right
    a, accept        accept the oldest request
    d, decline       decline the oldest request
    .                redraw
    menu             back to the menu
    q, quit          leave
Anything else is text input (your name on the menu, your friend's name on
the friend screen).
"""

from __future__ import annotations

import threading

from rich.align import Align
from rich.columns import Columns
from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from coinduel.game.engine import Outcome
from coinduel.session import MENU_CHOICES, REQUEST_CHOICES, GameSession, Screen, SessionView

WELCOME_TEXT = """\
Welcome to coinduel! Here's how to get started:
1. Pick a name and an opponent: a friend or the computer.
2. Take turns taking a coin from either end of the row.
3. Whoever collects more wins.

Press Enter to continue..."""

HELP_TEXT = """\
How to Play:

1. Use left and right to jump between the two ends of the row.
2. Press Enter to take the highlighted coin.
3. Players alternate. The goal is the highest total value.
4. The game ends when all coins are taken. The higher total wins.

Coin colors:
  [green]green[/]   active end (available)
  [blue]blue[/]    already taken
  [orange1]orange[/]  cursor"""


# ----------------------------------------------------------------------
# Screen builders
# ----------------------------------------------------------------------

def build_header(title: str) -> Panel:
    return Panel(
        Align.center(Text(title, style="bold italic black")),
        style="on gold1",
    )


def build_welcome(view: SessionView) -> Group:
    parts = [Panel(WELCOME_TEXT, border_style="white")]
    if view.start_url:
        parts.append(Align.center(Text(view.start_url, style="underline cyan")))
    return Group(build_header("Collect Coins"), *parts)


def build_help(view: SessionView) -> Group:
    start = Panel(Align.center(Text("Start Game", style="bold white")), style="on orange_red1")
    return Group(Panel(Text.from_markup(HELP_TEXT), border_style="white"), start)


def build_menu(view: SessionView) -> Group:
    options = []
    for i, label in enumerate(MENU_CHOICES):
        style = "bold white on orange_red1" if i == view.choice else "black on gold1"
        options.append(Panel(Text(label, style=style), border_style=style.split()[-1]))
    prompt = Text("Enter Your Name:", style="bold italic orange_red1")
    return Group(build_header("Collect Coins"), Align.center(prompt), Columns(options))


def build_friend(view: SessionView) -> Group:
    prompt = Text(f"Hello {view.player_name}! What's your friend's name?", style="orange_red1")
    lines = [Align.center(prompt), Align.center(Text("Requests", style="bold green"))]
    if view.pending:
        lines.append(_requests_text(view))
    if view.message:
        lines.append(Align.center(Text(view.message, style="red")))
    return Group(*lines)


def build_requests(view: SessionView) -> Group:
    return Group(build_header("Game Requests"), _requests_text(view))


def _requests_text(view: SessionView) -> Text:
    text = Text()
    for i, name in enumerate(view.pending):
        marker = ">" if i == 0 else " "
        text.append(f"{marker} {name} wants to play with you ", style="orange_red1")
        if i == 0:
            for j, label in enumerate(REQUEST_CHOICES):
                color = "green" if j == 0 else "red"
                style = f"bold {color} reverse" if j == view.choice else color
                text.append(f"[{label}]", style=style)
                text.append(" ")
        text.append("\n")
    return text


def build_coins(view: SessionView) -> Text:
    row = Text()
    for i, (value, taken) in enumerate(zip(view.coins, view.picked)):
        if taken:
            style = "bold white on blue"
        elif i == view.coin_cursor:
            style = "bold white on orange_red1"
        elif i in (view.first_active, view.last_active):
            style = "bold white on green"
        else:
            style = "black on gold1"
        row.append(f" {value:>2} ", style=style)
        row.append(" ")
    return row


def build_game(view: SessionView) -> Group:
    opponent = view.opponent_name or "Computer"
    active = "bold black on gold1"
    idle = "bold gold1 on grey23"
    me = Text(f" {view.player_name}: {view.local_score} ", style=active if view.my_turn else idle)
    them = Text(f" {opponent}: {view.opponent_score} ", style=idle if view.my_turn else active)
    parts = [
        build_header("Coins"),
        Align.center(build_coins(view)),
        Text(""),
        Align.center(Text.assemble(me, "     ", them)),
        Text(""),
        Text("Choose a coin with left/right and press Enter to select"),
    ]
    if view.message:
        parts.append(Text(view.message, style="yellow"))
    return Group(*parts)


def build_result(view: SessionView) -> Group:
    if view.outcome is Outcome.WIN:
        message = "Congratulations, you win :)"
    else:
        message = "Unfortunately you lost :("
    inner = Panel(Align.center(Text(message, style="gold1")), style="on purple4", border_style="dark_violet")
    again = Panel(Align.center(Text("Play Again", style="bold white")), style="on orange_red1")
    score = Text(f"{view.local_score} - {view.opponent_score}", style="bold")
    return Group(Panel(inner, border_style="gold1"), Align.center(score), again)


_BUILDERS = {
    Screen.WELCOME: build_welcome,
    Screen.HELP: build_help,
    Screen.MENU: build_menu,
    Screen.FRIEND: build_friend,
    Screen.REQUESTS: build_requests,
    Screen.GAME: build_game,
    Screen.RESULT: build_result,
}


def render(view: SessionView) -> Group:
    body = _BUILDERS[view.screen](view)
    footer = Text("Type 'q' to quit.", style="red")
    return Group(body, Text(""), footer)


# ----------------------------------------------------------------------
# Command loop
# ----------------------------------------------------------------------

def handle_command(session: GameSession, line: str) -> bool:
    """Apply one line of input. Returns False when the user quits."""
    cmd = line.strip()
    lowered = cmd.lower()
    screen = session.view().screen

    if lowered in ("q", "quit"):
        return False
    if lowered == "":
        session.advance()
    elif lowered in ("l", "left"):
        session.move_left()
    elif lowered in ("r", "right"):
        session.move_right()
    elif lowered in ("a", "accept") and screen in (Screen.REQUESTS, Screen.FRIEND):
        session.accept_request()
    elif lowered in ("d", "decline") and screen in (Screen.REQUESTS, Screen.FRIEND):
        session.decline_request()
    elif lowered == "menu":
        session.back_to_menu()
    elif lowered == ".":
        pass
    elif screen is Screen.MENU:
        session.submit_name(cmd)
    elif screen is Screen.FRIEND:
        session.invite(cmd)
    return True


PROMPT = "[bold]> [/]"


class LiveScreen:
    """Redraws the screen whenever the session changes under a waiting prompt."""

    def __init__(self, session: GameSession, console: Console) -> None:
        self._session = session
        self._console = console
        self._lock = threading.Lock()
        self._at_prompt = threading.Event()
        session.subscribe(self.on_change)

    def draw(self, with_prompt: bool = False) -> None:
        with self._lock:
            self._console.clear()
            self._console.print(render(self._session.view()))
            if with_prompt:
                self._console.print(PROMPT, end="")

    def on_change(self) -> None:
        # Local commands redraw from the loop; only inbound changes land here.
        if self._at_prompt.is_set():
            self.draw(with_prompt=True)

    def prompt(self) -> str:
        self._at_prompt.set()
        try:
            self.draw()
            return self._console.input(PROMPT)
        finally:
            self._at_prompt.clear()


def run(session: GameSession, console: Console | None = None) -> None:
    screen = LiveScreen(session, console or Console())
    while True:
        try:
            line = screen.prompt()
        except (EOFError, KeyboardInterrupt):
            return
        if not handle_command(session, line):
            return
