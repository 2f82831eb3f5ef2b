"""Interactive CLI application."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from interview_tutor.bank import QuestionBank
from interview_tutor.config import Settings, load_settings
from interview_tutor.errors import TutorError
from interview_tutor.grader import OpenAIGrader
from interview_tutor.grading import GradingOrchestrator
from interview_tutor.history import SqliteHistoryStore
from interview_tutor.models import ExamRecord
from interview_tutor.report import get_score_color, get_score_label, get_subject_stats, get_subject_trend
from interview_tutor.selection import SelectionEngine, Strategy
from interview_tutor.session import ExamSession
from interview_tutor.transfer import ImportMode, ImportOutcome, export_to_file, import_from_file

console = Console()

SESSION_HELP = "[dim]Type your answer, then :next. Also :prev, :hint, :quit[/dim]"


class SessionExitRequested(Exception):
    """The user left an exam before finishing it."""


@dataclass
class Tutor:
    settings: Settings
    store: object
    bank: QuestionBank
    engine: SelectionEngine
    orchestrator: GradingOrchestrator


def build_tutor(settings: Settings) -> Tutor:
    store = SqliteHistoryStore(settings.db_path)
    bank = QuestionBank(settings.bank_dir)
    grader = OpenAIGrader(settings)
    return Tutor(
        settings=settings,
        store=store,
        bank=bank,
        engine=SelectionEngine(bank, store),
        orchestrator=GradingOrchestrator(store, grader, timeout=settings.grader_timeout),
    )


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def show_welcome():
    console.print(Panel(
        "[bold]Interview Tutor[/bold]\n[dim]Practice questions, AI-graded answers[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("exam", "Start a practice exam"),
        ("history", "Past exams"),
        ("grade", "Grade (or re-grade) an exam"),
        ("results", "Show an exam's evaluation"),
        ("report", "Coverage per subject"),
        ("trend", "Score trend for one subject"),
        ("export", "Export a subject's history"),
        ("import", "Import a subject's history"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def choose_subject(tutor: Tutor) -> Optional[str]:
    catalog = tutor.bank.catalog()
    if not catalog:
        console.print(f"[yellow]No question banks found in {tutor.settings.bank_dir}[/yellow]")
        return None
    for s in catalog:
        console.print(f"  [cyan]{s.code:<20}[/cyan] {s.name} ({s.total_questions} questions)")
    return Prompt.ask("Subject", choices=[s.code for s in catalog])


def run_exam_session(session: ExamSession) -> ExamRecord:
    """Drive a session from the terminal until the last answer is submitted."""
    while not session.is_completed:
        q = session.current_question
        title = f"Question {session.index + 1}/{session.total}"
        if q.category:
            title += f" · {q.category}"
        console.print(Panel(escape(q.text), title=escape(title), border_style="cyan"))
        if session.current_text:
            console.print(f"[dim]Your answer:[/dim] {escape(session.current_text)}")
        console.print(SESSION_HELP)

        line = Prompt.ask(">", default="", show_default=False)
        cmd = line.strip().lower()
        if cmd == ":quit":
            raise SessionExitRequested()
        elif cmd == ":hint":
            console.print(Panel(escape(session.show_hint()), title="Hint / Answer Key", border_style="magenta"))
            session.hide_hint()
        elif cmd == ":prev":
            if not session.prev():
                console.print("[yellow]Already at the first question.[/yellow]")
        elif cmd == ":next":
            if not session.next():
                console.print("[yellow]Write an answer before moving on.[/yellow]")
        elif line.strip():
            session.set_answer(line)
        session.settle()
    return session.record


def grade_with_progress(tutor: Tutor, exam_id: str, force: bool = False) -> ExamRecord:
    with Progress(
        TextColumn("[bold]Grading[/bold]"), BarColumn(), TaskProgressColumn(), console=console,
    ) as progress:
        task = progress.add_task("grading", total=1.0)
        return tutor.orchestrator.grade_exam(
            exam_id, force=force, on_progress=lambda f: progress.update(task, completed=f),
        )


def show_results(record: ExamRecord):
    color = get_score_color(record.overall_score)
    score = "pending" if record.overall_score is None else f"{record.overall_score:.0f}%"
    console.print(Panel(
        f"Subject: [bold]{record.subject_id}[/bold]   Score: [{color}]{score}[/{color}]",
        title=f"Exam {record.id}",
    ))
    for i, a in enumerate(record.answers, 1):
        console.print(f"\n[bold]Q{i}.[/bold] {escape(a.question_text)}")
        console.print(f"[dim]Your answer:[/dim] {escape(a.user_answer)}" + ("  [magenta](hint used)[/magenta]" if a.hint_used else ""))
        if a.evaluation is None:
            console.print("[cyan]Not graded yet.[/cyan]")
            continue
        ev = a.evaluation
        console.print(f"[{get_score_color(ev.score)}]{ev.score:.0f}/100 ({escape(ev.grade)})[/{get_score_color(ev.score)}] {escape(ev.feedback)}")
        for s in ev.strengths:
            console.print(f"  [green]+[/green] {escape(s)}")
        for s in ev.improvements:
            console.print(f"  [yellow]-[/yellow] {escape(s)}")
        if ev.sample_answer:
            console.print(f"[dim]Sample answer: {escape(ev.sample_answer)}[/dim]")


def cmd_exam(tutor: Tutor):
    subject = choose_subject(tutor)
    if not subject:
        return
    count = IntPrompt.ask("Number of questions", default=10)
    strategy = Prompt.ask("Strategy", choices=[s.value for s in Strategy], default=Strategy.RANDOM.value)
    selection = tutor.engine.draw(subject, count, strategy)
    if not selection.questions:
        console.print("[red]No questions found for this subject.[/red]")
        return
    if selection.exhausted_unanswered:
        console.print("[yellow]Not enough unanswered questions left; "
                      "filling with the least answered ones.[/yellow]")
    session = ExamSession(subject, selection.questions, tutor.store)
    try:
        record = run_exam_session(session)
    except SessionExitRequested:
        console.print("[dim]Exam abandoned; nothing was saved.[/dim]")
        return
    console.print(f"[green]Exam saved as {record.id}.[/green]")
    if Confirm.ask("Grade it now?", default=True):
        show_results(grade_with_progress(tutor, record.id))


def cmd_history(tutor: Tutor):
    records = tutor.store.list_all()
    if not records:
        console.print("[yellow]No history yet. Start your first exam![/yellow]")
        return
    table = Table(title="Exam History")
    table.add_column("Id", style="dim")
    table.add_column("Date")
    table.add_column("Subject", style="cyan")
    table.add_column("Questions", justify="right")
    table.add_column("Score", justify="right")
    for r in records:
        color = get_score_color(r.overall_score)
        score = "Pending" if r.overall_score is None else f"{r.overall_score:.0f}%"
        table.add_row(r.id, r.timestamp[:16].replace("T", " "), r.subject_id,
                      str(r.total_questions), f"[{color}]{score}[/{color}]")
    console.print(table)


def cmd_grade(tutor: Tutor):
    exam_id = Prompt.ask("Exam id (blank = all pending)", default="", show_default=False).strip()
    if not exam_id:
        outcomes = tutor.orchestrator.grade_pending()
        if not outcomes:
            console.print("[green]Nothing pending.[/green]")
        for o in outcomes:
            if o.ok:
                console.print(f"[green]{o.exam_id}: {o.record.overall_score:.0f}%[/green]")
            else:
                console.print(f"[red]{o.exam_id}: {escape(f'[{o.error.kind}] {o.error}')}[/red]")
        return
    force = Confirm.ask("Re-evaluate every answer?", default=False)
    show_results(grade_with_progress(tutor, exam_id, force=force))


def cmd_results(tutor: Tutor):
    exam_id = Prompt.ask("Exam id").strip()
    record = tutor.store.find_by_id(exam_id)
    if record is None:
        console.print(f"[red]No exam with id {exam_id}[/red]")
        return
    show_results(record)


def cmd_report(tutor: Tutor):
    stats = get_subject_stats(tutor.store.list_all(), tutor.bank.catalog())
    table = Table(title="Report Card")
    table.add_column("Subject", style="cyan")
    table.add_column("Answered", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Coverage")
    for s in stats:
        filled = int(s.coverage / 5)
        bar = f"{'█' * filled}{'░' * (20 - filled)}"
        table.add_row(s.name, f"{s.unique_answered}/{s.total_questions_in_bank}",
                      str(s.total_attempts), f"{bar} {s.coverage:.0f}%")
    console.print(table)


def cmd_trend(tutor: Tutor):
    subject = choose_subject(tutor)
    if not subject:
        return
    trend = get_subject_trend(tutor.store.list_by_subject(subject), subject)
    if not trend.exam_count:
        console.print("[yellow]No graded exams yet for this subject.[/yellow]")
        return
    color = get_score_color(trend.average_score)
    console.print(f"\n  Average: [{color}]{trend.average_score}% {get_score_label(trend.average_score)}[/{color}]"
                  f"  |  Exams: [bold]{trend.exam_count}[/bold]\n")
    for p in trend.points:
        filled = int(p.overall_score / 5)
        console.print(f"  {p.timestamp[:16].replace('T', ' ')}  {'█' * filled:<20} "
                      f"{p.overall_score:.0f}% ({p.total_questions} q)")


def cmd_export(tutor: Tutor):
    subject = choose_subject(tutor)
    if not subject:
        return
    directory = Prompt.ask("Directory", default=".")
    path = export_to_file(tutor.store, subject, directory)
    console.print(f"[green]Exported to {path}[/green]")


def cmd_import(tutor: Tutor):
    subject = choose_subject(tutor)
    if not subject:
        return
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    mode = Prompt.ask("Mode", choices=[m.value for m in ImportMode], default=ImportMode.ADD.value)
    if mode == ImportMode.OVERRIDE.value and not Confirm.ask(
        f"Replace all {subject} history with the file?", default=False,
    ):
        return
    result = import_from_file(tutor.store, file_path, subject, mode)
    if result.outcome == ImportOutcome.NO_NEW_DATA:
        console.print("[cyan]All records already exist.[/cyan]")
    else:
        console.print(f"[green]Imported {result.imported} records ({result.mode.value}).[/green]")
    if result.discarded_other_subject:
        console.print(f"[yellow]Skipped {result.discarded_other_subject} records for other subjects.[/yellow]")
    if result.dropped_invalid:
        console.print(f"[yellow]Skipped {result.dropped_invalid} malformed records.[/yellow]")
    cmd_report(tutor)


COMMANDS = {
    "exam": cmd_exam,
    "history": cmd_history,
    "grade": cmd_grade,
    "results": cmd_results,
    "report": cmd_report,
    "trend": cmd_trend,
    "export": cmd_export,
    "import": cmd_import,
}


def main():
    settings = load_settings()
    setup_logging(settings.log_level)
    tutor = build_tutor(settings)

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="exam").strip().lower()
        if choice in ("quit", "exit", "q"):
            console.print("[dim]Good luck with your interviews![/dim]")
            break
        command = COMMANDS.get(choice)
        if command is None:
            console.print("[red]Unknown command. Try again.[/red]")
            continue
        try:
            command(tutor)
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except TutorError as e:
            console.print(f"[red]{escape(f'[{e.kind}] {e}')}[/red]")


if __name__ == "__main__":
    main()
