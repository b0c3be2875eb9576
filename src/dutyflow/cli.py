"""
cli.py – ``dutyflow`` command line

Run:
    dutyflow generate roster.json --title "Semester End" --save
    dutyflow rebalance allotment.json --out balanced.json
    dutyflow summary <allotment-id> --name "Dr. Rao"
    dutyflow export <allotment-id> --format xlsx --out sheet.xlsx
    dutyflow history
    dutyflow saved list
    dutyflow notify <allotment-id> --dry-run

Roster files are JSON: ``{"invigilators": [...], "examinations": [...]}``.
Anywhere an allotment is expected, pass either a saved-allotment JSON file
or the id of a saved / history entry.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from dutyflow import __version__, storage
from dutyflow.allotment_agent import AllotmentBlocked, generate_allotment
from dutyflow.config import get_settings
from dutyflow.export import (
    export_allotment_xlsx,
    export_assignments_xlsx,
    generate_allotment_pdf,
    generate_duty_summary_pdf,
)
from dutyflow.guardrails import GuardrailLevel, GuardrailResult
from dutyflow.models import Examination, Invigilator, SavedAllotment
from dutyflow.notifications import build_notices, send_bulk_emails
from dutyflow.rebalancer import rebalance_with_stats
from dutyflow.reports import (
    daily_workload,
    day_wise_schedule,
    duties_per_invigilator,
    invigilator_duty_summary,
    sort_sessions,
)
from dutyflow.trace import RunTrace

console = Console()

LEVEL_STYLE = {
    GuardrailLevel.BLOCK: "bold red",
    GuardrailLevel.WARN:  "bold yellow",
    GuardrailLevel.INFO:  "cyan",
}


def configure_logging(level: str = "INFO") -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


# ─── Input loading ───────────────────────────────────────────────────────────

def _read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def load_roster(path: str) -> tuple[list[Invigilator], list[Examination]]:
    """Invigilators (seniority order) and examinations from a JSON file."""
    data = _read_json(Path(path))
    invigilators = [Invigilator.model_validate(i) for i in data.get("invigilators", [])]
    examinations = [Examination.model_validate(e) for e in data.get("examinations", [])]
    return invigilators, examinations


def load_allotment(source: str) -> SavedAllotment:
    """
    Resolve *source* as a JSON file, then a saved allotment id, then a
    history entry id.

    Raises:
        LookupError – nothing matches *source*.
    """
    path = Path(source)
    if path.is_file():
        return SavedAllotment.model_validate(_read_json(path))
    allotment = storage.get_allotment(source)
    if allotment is not None:
        return allotment
    entry = storage.get_history_entry(source)
    if entry is not None:
        return entry[0]
    raise LookupError(f"No allotment file or saved id matches '{source}'.")


def _write_allotment(allotment: SavedAllotment, out: str) -> None:
    Path(out).write_text(
        allotment.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
    )
    console.print(f"[green]Wrote[/green] {out}")


# ─── Display helpers ─────────────────────────────────────────────────────────

def show_guardrails(result: GuardrailResult) -> None:
    if not result.violations:
        console.print("[bold green]✅ All guardrails passed.[/bold green]")
        return
    table = Table(box=box.SIMPLE_HEAD, header_style="bold white on dark_red", padding=(0, 1))
    table.add_column("Code",    no_wrap=True)
    table.add_column("Level",   justify="center")
    table.add_column("Message", style="white")
    for v in result.violations:
        style = LEVEL_STYLE[v.level]
        table.add_row(v.code, f"[{style}]{v.level.value}[/{style}]", v.message)
    console.print(Panel(table, title="[bold]Guardrails[/bold]", border_style="yellow"))


def show_assignments(allotment: SavedAllotment) -> None:
    table = Table(box=box.SIMPLE_HEAD, header_style="bold white on blue", padding=(0, 1))
    table.add_column("Date",         no_wrap=True)
    table.add_column("Subject")
    table.add_column("Time",         no_wrap=True)
    table.add_column("Invigilators", style="cyan")
    for a in sort_sessions(allotment.assignments):
        table.add_row(a.date, a.subject, a.time, ", ".join(a.invigilators) or "[dim]—[/dim]")
    console.print(Panel(
        table,
        title=f"[bold]{allotment.exam_title}[/bold]",
        subtitle=f"[dim]id {allotment.id}[/dim]",
        border_style="blue",
    ))


def show_duty_counts(allotment: SavedAllotment, before: Optional[SavedAllotment] = None) -> None:
    table = Table(box=box.SIMPLE_HEAD, header_style="bold white on dark_violet", padding=(0, 1))
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Designation", style="dim white")
    table.add_column("Type", justify="center")
    if before is not None:
        table.add_column("Before", justify="right")
    table.add_column("Duties", justify="right", style="bold")

    old = {}
    if before is not None:
        old = {c.name: c.duties for c in duties_per_invigilator(before.invigilators, before.assignments)}
    part_time = {inv.name for inv in allotment.invigilators if inv.is_part_time}
    counts = duties_per_invigilator(allotment.invigilators, allotment.assignments)
    for i, c in enumerate(counts, start=1):
        row = [str(i), c.name, c.designation, "PT" if c.name in part_time else "FT"]
        if before is not None:
            row.append(str(old.get(c.name, 0)))
        row.append(str(c.duties))
        table.add_row(*row)
    console.print(Panel(table, title="[bold]Duties per invigilator[/bold]", border_style="magenta"))


def show_trace(trace: RunTrace) -> None:
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold cyan", padding=(0, 1))
    table.add_column("Step")
    table.add_column("Status", justify="center")
    table.add_column("ms", justify="right")
    table.add_column("Output", style="dim white")
    for s in trace.steps:
        table.add_row(s.step_name, s.status, f"{s.duration_ms:.1f}", s.output_summary)
    console.print(Panel(
        table,
        title=f"[bold]Run {trace.run_id}[/bold] · {trace.mode} · {trace.total_ms:.0f} ms",
        border_style="cyan",
    ))


# ─── Commands ────────────────────────────────────────────────────────────────

def cmd_generate(args: argparse.Namespace) -> int:
    invigilators, examinations = load_roster(args.input)
    settings = get_settings()
    with console.status("Generating duty allotment…"):
        run = generate_allotment(
            invigilators,
            examinations,
            exam_title=args.title or "",
            college_name=args.college or "",
            settings=settings,
            rebalance_after=not args.no_rebalance,
        )
    storage.append_history(run.allotment, run.trace)
    if args.save:
        storage.save_allotment(run.allotment)

    show_assignments(run.allotment)
    show_duty_counts(run.allotment)
    show_guardrails(run.guardrails)
    show_trace(run.trace)
    if args.out:
        _write_allotment(run.allotment, args.out)
    return 0


def cmd_rebalance(args: argparse.Namespace) -> int:
    allotment = load_allotment(args.source)
    assignments, stats = rebalance_with_stats(allotment.invigilators, allotment.assignments)
    balanced = allotment.model_copy(update={"assignments": assignments})

    show_duty_counts(balanced, before=allotment)
    note = "" if stats.converged else " [yellow](pass cap reached)[/yellow]"
    console.print(
        f"[bold]{stats.swaps}[/bold] swap(s) in [bold]{stats.passes}[/bold] "
        f"pass(es) across {stats.full_time_count} full-time staff{note}"
    )
    if args.save:
        storage.save_allotment(balanced)
        console.print(f"[green]Saved[/green] {balanced.id}")
    if args.out:
        _write_allotment(balanced, args.out)
    return 0


def cmd_summary(args: argparse.Namespace) -> int:
    allotment = load_allotment(args.source)

    if args.name:
        inv = next((i for i in allotment.invigilators if i.name == args.name), None)
        if inv is None:
            console.print(f"[bold red]Unknown invigilator:[/bold red] {args.name}")
            return 2
        table = Table(box=box.ROUNDED, header_style="bold cyan", padding=(0, 1))
        for col in ("Date", "Day", "Subject", "Time"):
            table.add_column(col)
        duties = invigilator_duty_summary(inv, allotment.assignments)
        for d in duties:
            table.add_row(d.date, d.day, d.subject, d.time)
        console.print(Panel(
            table, title=f"[bold]{inv.name}[/bold] · {len(duties)} duties", border_style="cyan",
        ))
        return 0

    if args.date:
        schedule = day_wise_schedule([allotment], args.date)
        if schedule is None:
            console.print(f"[yellow]No sessions on {args.date}.[/yellow]")
            return 0
        table = Table(box=box.ROUNDED, header_style="bold cyan", padding=(0, 1))
        table.add_column("Time", no_wrap=True)
        table.add_column("Subject")
        table.add_column("Invigilators")
        for s in schedule.sessions:
            table.add_row(s.time, s.subject, ", ".join(i.name for i in s.invigilators))
        console.print(Panel(table, title=f"[bold]{schedule.date}[/bold]", border_style="cyan"))
        return 0

    show_duty_counts(allotment)
    workload = Table(box=box.SIMPLE, header_style="bold cyan", padding=(0, 1))
    workload.add_column("Date")
    workload.add_column("Assigned", justify="right")
    workload.add_column("Free", justify="right")
    for w in daily_workload(allotment):
        workload.add_row(w.date, str(w.assigned), str(w.free))
    console.print(Panel(workload, title="[bold]Daily workload[/bold]", border_style="green"))
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    allotment = load_allotment(args.source)
    if args.format == "duty-pdf":
        inv = next((i for i in allotment.invigilators if i.name == args.name), None)
        if inv is None:
            console.print("[bold red]--name must match an invigilator for duty-pdf.[/bold red]")
            return 2
        data = generate_duty_summary_pdf(
            inv, allotment.assignments, allotment.college_name, allotment.exam_title,
        )
    elif args.format == "pdf":
        data = generate_allotment_pdf(allotment)
    elif args.format == "sessions-xlsx":
        data = export_assignments_xlsx(allotment.assignments)
    else:
        data = export_allotment_xlsx(allotment)
    Path(args.out).write_bytes(data)
    console.print(f"[green]Wrote[/green] {args.out} ({len(data):,} bytes)")
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    if args.show:
        entry = storage.get_history_entry(args.show)
        if entry is None:
            console.print(f"[yellow]No history entry {args.show}.[/yellow]")
            return 1
        allotment, trace = entry
        show_assignments(allotment)
        if trace is not None:
            show_trace(trace)
        return 0
    _list_allotments(storage.list_history(), "Generation history")
    return 0


def cmd_saved(args: argparse.Namespace) -> int:
    if args.action == "delete":
        if not args.id:
            console.print("[bold red]saved delete needs an id.[/bold red]")
            return 2
        if storage.delete_allotment(args.id):
            console.print(f"[green]Deleted[/green] {args.id}")
            return 0
        console.print(f"[yellow]No saved allotment {args.id}.[/yellow]")
        return 1
    if args.action == "clear":
        n = storage.clear_saved_allotments()
        console.print(f"[green]Cleared[/green] {n} saved allotment(s)")
        return 0
    _list_allotments(storage.list_saved_allotments(), "Saved allotments")
    return 0


def _list_allotments(allotments: list[SavedAllotment], title: str) -> None:
    table = Table(box=box.SIMPLE_HEAD, header_style="bold white on blue", padding=(0, 1))
    table.add_column("Id", no_wrap=True)
    table.add_column("Title")
    table.add_column("First exam", no_wrap=True)
    table.add_column("Sessions", justify="right")
    for a in allotments:
        table.add_row(a.id, a.exam_title, a.first_exam_date, str(len(a.assignments)))
    if not allotments:
        table.add_row("[dim]—[/dim]", "[dim]nothing yet[/dim]", "", "")
    console.print(Panel(table, title=f"[bold]{title}[/bold]", border_style="blue"))


def cmd_notify(args: argparse.Namespace) -> int:
    allotment = load_allotment(args.source)
    notices = build_notices(allotment)
    if args.dry_run:
        for n in notices:
            console.print(f"[cyan]→[/cyan] {n.to}  [dim]{n.subject} · {n.pdf_filename}[/dim]")
        console.print(f"[bold]{len(notices)}[/bold] notice(s) would be sent.")
        return 0
    if not get_settings().smtp.is_configured:
        console.print("[bold red]Email not configured.[/bold red] Set SMTP_USER and SMTP_PASS in .env.")
        return 1
    with console.status(f"Sending {len(notices)} notice(s)…"):
        result = send_bulk_emails(notices)
    for r in result.results:
        mark = "[green]✓[/green]" if r.success else "[red]✗[/red]"
        console.print(f"{mark} {r.to}  [dim]{r.message}[/dim]")
    console.print(f"Sent {result.successful}/{result.total}, failed {result.failed}.")
    return 0 if result.failed == 0 else 1


# ─── Argument parsing ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="dutyflow",
        description="DutyFlow – invigilation duty allotment and seniority rebalancing",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--log-level", default=None, help="DEBUG | INFO | WARNING (default from .env)")
    sub = p.add_subparsers(dest="command", required=True)

    g = sub.add_parser("generate", help="Generate an allotment from a roster JSON file")
    g.add_argument("input", help="JSON with 'invigilators' and 'examinations'")
    g.add_argument("--title", help="Exam title (default 'Examination from <first date>')")
    g.add_argument("--college", help="College name (default DUTYFLOW_COLLEGE_NAME)")
    g.add_argument("--no-rebalance", action="store_true", help="Skip the seniority rebalancer")
    g.add_argument("--save", action="store_true", help="Also store under saved allotments")
    g.add_argument("--out", help="Write the allotment JSON here")
    g.set_defaults(func=cmd_generate)

    r = sub.add_parser("rebalance", help="Rebalance an existing allotment by seniority")
    r.add_argument("source", help="Allotment JSON file or saved / history id")
    r.add_argument("--save", action="store_true", help="Save the rebalanced allotment")
    r.add_argument("--out", help="Write the rebalanced allotment JSON here")
    r.set_defaults(func=cmd_rebalance)

    s = sub.add_parser("summary", help="Duty counts, one person's duties or one day")
    s.add_argument("source", help="Allotment JSON file or saved / history id")
    s.add_argument("--name", help="Show the duties of this invigilator")
    s.add_argument("--date", help="Show the schedule for this date (YYYY-MM-DD)")
    s.set_defaults(func=cmd_summary)

    e = sub.add_parser("export", help="Export an allotment to XLSX or PDF")
    e.add_argument("source", help="Allotment JSON file or saved / history id")
    e.add_argument("--format", default="xlsx",
                   choices=["xlsx", "sessions-xlsx", "pdf", "duty-pdf"])
    e.add_argument("--name", help="Invigilator for --format duty-pdf")
    e.add_argument("--out", required=True, help="Output file")
    e.set_defaults(func=cmd_export)

    h = sub.add_parser("history", help="List generated allotments")
    h.add_argument("--show", metavar="ID", help="Show one entry with its run trace")
    h.set_defaults(func=cmd_history)

    sv = sub.add_parser("saved", help="List, delete or clear saved allotments")
    sv.add_argument("action", nargs="?", default="list", choices=["list", "delete", "clear"])
    sv.add_argument("id", nargs="?", help="Allotment id for delete")
    sv.set_defaults(func=cmd_saved)

    n = sub.add_parser("notify", help="Email every invigilator their duties")
    n.add_argument("source", help="Allotment JSON file or saved / history id")
    n.add_argument("--dry-run", action="store_true", help="List recipients without sending")
    n.set_defaults(func=cmd_notify)
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or get_settings().app.log_level)
    try:
        return args.func(args)
    except AllotmentBlocked as exc:
        console.print("[bold red]Generation blocked by input guardrails.[/bold red]")
        show_guardrails(exc.result)
        return 1
    except (ValidationError, json.JSONDecodeError) as exc:
        console.print(f"[bold red]Invalid input:[/bold red] {exc}")
        return 2
    except (LookupError, FileNotFoundError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        return 2
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
