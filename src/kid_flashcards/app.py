"""Interactive CLI application."""
import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from kid_flashcards import repository
from kid_flashcards.config import DEFAULT_DB_PATH
from kid_flashcards.db import init_db
from kid_flashcards.errors import FlashcardError, InvalidTransition, PersistenceFailure
from kid_flashcards.models import CardFace
from kid_flashcards.session import session_summary
from kid_flashcards.sm2 import Rating
from kid_flashcards.store import LOCAL_PROFILE, FlashcardStore

console = Console()
logger = logging.getLogger(__name__)

EXIT_WORDS = ("q", "menu")

RATING_CHOICES = {
    "a": Rating.AGAIN,
    "h": Rating.HARD,
    "g": Rating.GOOD,
}


class SessionExitRequested(Exception):
    """Raised when the learner leaves a review session early."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def setup_logging(level: int = logging.WARNING) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def render_face(face: CardFace) -> str:
    return f"[bold]{face.icon}  {face.title}[/bold]\n[dim]{face.description}[/dim]"


def show_welcome(store: FlashcardStore):
    who = "Guest" if store.is_guest else store.user_id
    console.print(Panel(
        f"[bold]Flashcard Friends[/bold]\n[dim]Playing as {who}[/dim]",
        title="Welcome", border_style="magenta",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("review", "Review the cards that are due"),
        ("dashboard", "Progress for this card set"),
        ("sets", "Pick a different card set"),
        ("reset", "Start this card set over"),
        ("login", "Save progress under your name"),
        ("logout", "Play as a guest"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<12}[/cyan] {desc}")


def show_completion(store: FlashcardStore) -> None:
    summary = session_summary(store.session)
    table = Table(title="Great work!")
    table.add_column("Result", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Cards finished", f"{summary['reviewed_cards']}/{summary['total_cards']}")
    table.add_row("Got it", str(summary["easy_count"]))
    table.add_row("Hard", str(summary["hard_count"]))
    table.add_row("Try again", str(summary["again_count"]))
    table.add_row("Accuracy", f"{summary['accuracy']}%")
    minutes, seconds = divmod(summary["duration_seconds"], 60)
    table.add_row("Time", f"{minutes}m {seconds:02d}s")
    console.print(table)


def review_cards(store: FlashcardStore) -> None:
    """Walk the learner through the active session until it completes."""
    while store.current_card is not None:
        card = store.current_card
        session = store.session
        console.print(Panel(
            render_face(card.front),
            title=f"{session.reviewed_cards} / {session.total_cards} completed",
            border_style="cyan",
        ))
        answer = session_prompt(
            "[dim]Press Enter to flip the card, 'k' if you already know it[/dim]", default="",
        )
        if answer.strip().lower() == "k":
            store.know(card.id)
            console.print("[green]Awesome, you knew it![/green]\n")
            continue
        store.reveal_back()
        console.print(Panel(render_face(card.back), border_style="green"))
        choice = session_prompt(
            "How did you do? (a=ask me again, h=hard, g=got it)",
            choices=[*RATING_CHOICES, "q"],
        )
        store.rate(card.id, RATING_CHOICES[choice])
        console.print()


def run_review_session(store: FlashcardStore) -> None:
    if not store.start_review():
        console.print("[yellow]No cards to review right now! Come back later.[/yellow]")
        return
    console.print(f"\n[bold]Review time:[/bold] {store.session.total_cards} cards\n")
    try:
        while True:
            review_cards(store)
            show_completion(store)
            if not store.stats["due_cards"]:
                break
            again = Prompt.ask("More cards are due. Review again?", choices=["y", "n"], default="n")
            if again != "y" or not store.review_again():
                break
    except SessionExitRequested:
        console.print("[dim]Stopping here. Your answers are saved.[/dim]")
    store.reset_session()


def cmd_dashboard(store: FlashcardStore):
    stats = store.stats
    card_set = store.card_set
    console.print(Panel(
        f"[bold]{card_set.cover}  {card_set.name}[/bold]\n[dim]{card_set.description}[/dim]",
        title="Dashboard", border_style="blue",
    ))
    total = stats["total_cards"]
    learned = stats["mastered_cards"]
    filled = int(learned / total * 20) if total else 0
    bar = f"[green]{'█' * filled}{'░' * (20 - filled)}[/green]"
    console.print(f"\n  Learned: [bold]{learned}/{total}[/bold] {bar}\n")

    table = Table(title="Today")
    table.add_column("", style="cyan")
    table.add_column("Cards", justify="right")
    table.add_row("Ready to review", str(stats["due_cards"]))
    table.add_row("Reviewed today", str(stats["reviews_today"]))
    table.add_row("Mastered", str(stats["mastered_cards"]))
    table.add_row("Tricky", str(stats["difficult_cards"]))
    console.print(table)
    if store.retry_queue:
        console.print(f"[yellow]{len(store.retry_queue)} saves are waiting to be retried.[/yellow]")


def cmd_sets(store: FlashcardStore):
    card_sets = store.card_sets()
    progress = store.load_all_progress()
    table = Table(title="Card Sets")
    table.add_column("#", justify="right")
    table.add_column("Set")
    table.add_column("Progress", justify="right")
    for i, card_set in enumerate(card_sets, 1):
        pct = progress.get(card_set.id, {}).get("progress_percentage")
        marker = " ←" if store.card_set and card_set.id == store.card_set.id else ""
        table.add_row(
            str(i),
            f"{card_set.cover}  {card_set.name}{marker}",
            f"{pct}%" if pct is not None else "",
        )
    console.print(table)
    choice = Prompt.ask("Pick a set", choices=[str(i) for i in range(1, len(card_sets) + 1)])
    selected = store.select_card_set(card_sets[int(choice) - 1].id)
    if selected.id != card_sets[int(choice) - 1].id:
        console.print(f"[yellow]That set could not be loaded, using {selected.name} instead.[/yellow]")
    else:
        console.print(f"[green]Now learning {selected.name}![/green]")


def cmd_reset(store: FlashcardStore):
    confirm = Prompt.ask(
        f"Start {store.card_set.name} over from the beginning?", choices=["y", "n"], default="n",
    )
    if confirm == "y":
        store.reset_progress()
        console.print("[green]All cards are fresh again.[/green]")


def cmd_login(store: FlashcardStore, db_path: str):
    name = Prompt.ask("What's your name?").strip()
    if not name:
        return
    store.sign_in(name)
    repository.set_setting(db_path, LOCAL_PROFILE, "last_user", name)
    console.print(f"[green]Hi {name}! Your progress will be saved.[/green]")


def cmd_logout(store: FlashcardStore, db_path: str):
    store.sign_out()
    repository.set_setting(db_path, LOCAL_PROFILE, "last_user", "")
    console.print("[dim]Playing as a guest now.[/dim]")


def main(db_path: str = DEFAULT_DB_PATH):
    setup_logging()
    init_db(db_path)
    user_id = repository.get_setting(db_path, LOCAL_PROFILE, "last_user") or None
    store = FlashcardStore(db_path=db_path, user_id=user_id)
    try:
        store.select_card_set()
    except PersistenceFailure as e:
        logger.warning(f"Could not load progress for {user_id}: {e}")
        console.print("[red]Saved progress could not be loaded, playing as a guest.[/red]")
        store = FlashcardStore(db_path=db_path)
        store.select_card_set()

    show_welcome(store)

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="review").strip().lower()
        try:
            if choice == "review":
                run_review_session(store)
            elif choice == "dashboard":
                cmd_dashboard(store)
            elif choice == "sets":
                cmd_sets(store)
            elif choice == "reset":
                cmd_reset(store)
            elif choice == "login":
                cmd_login(store, db_path)
            elif choice == "logout":
                cmd_logout(store, db_path)
            elif choice in ("quit", "exit", "q"):
                store.close()
                console.print("[dim]Bye! See you next time.[/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
            if store.retry_queue:
                store.retry_pending()
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except InvalidTransition as e:
            logger.warning(f"Session out of sync: {e}")
            store.reset_session()
            console.print("[red]Something got mixed up, back to the dashboard.[/red]")
        except FlashcardError as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
