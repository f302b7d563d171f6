# heavythink/main.py
"""
Interactive REPL — the terminal front end for the heavy pipeline.

Usage:
    heavy --config heavy.yaml
    python -m heavythink.main --config heavy.yaml

Commands:
    /deep            Toggle DeepThink (6 agents, critique ring, review)
    /elaborate       Toggle the elaboration stage for standard runs
    /attach <path>   Attach one file to the next query (size-capped)
"""

from __future__ import annotations

import argparse
import io
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from heavythink import fences, log
from heavythink.config import build_session, load_config
from heavythink.errors import AttachmentTooLarge
from heavythink.orchestration import StageEvent
from heavythink.prefs import Preferences
from heavythink.session import ChatSession


console = Console()
OUTPUT_DIR = Path("./outputs")


# ── Display helpers ─────────────────────────────────────────────────────

def display_response(response: str, accent: str, title: str = "Synthesizer Agent"):
    console.print(Panel(
        Markdown(response),
        title=f"[bold {accent}]{title}[/bold {accent}]",
        border_style=accent,
        padding=(1, 2),
    ))


def display_runnable(response: str):
    """List the fenced blocks the answer offers as runnable."""
    blocks = [b for b in fences.scan(response) if b.runnable]
    if not blocks:
        return
    langs = ", ".join(b.language for b in blocks)
    console.print(f"[dim]Runnable blocks: {langs}[/dim]")


def progress_bars(done) -> str:
    if isinstance(done, tuple):
        return "".join("■" if d else "□" for d in done)
    return "■" if done else "□"


def on_progress(stage: str, index: Optional[int], snapshot: dict):
    log.detail(f"{stage:<20} {progress_bars(snapshot[stage])}")


def on_stage(event: StageEvent):
    log.detail(f"status: {event.status}")


def export_response(response: str, question: str, fmt: str = "md") -> Path:
    """Write the last answer to ./outputs as markdown, html or txt."""
    OUTPUT_DIR.mkdir(exist_ok=True)
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = "".join(c if c.isalnum() else "_" for c in question[:30]).strip("_")
    ext_map = {"html": ".html", "md": ".md", "txt": ".txt"}
    filepath = OUTPUT_DIR / f"{ts}_{slug}{ext_map.get(fmt, '.md')}"

    if fmt not in ("html", "txt"):
        filepath.write_text(f"# Query\n\n{question}\n\n---\n\n# Response\n\n{response}")
        return filepath

    export_con = Console(file=io.StringIO(), record=True, width=120, force_terminal=False)
    export_con.print(Panel(Markdown(response), subtitle=question[:60], padding=(1, 2), width=120))
    if fmt == "html":
        filepath.write_text(export_con.export_html(inline_styles=True))
    else:
        filepath.write_text(export_con.export_text())
    return filepath


def print_help():
    table = Table(title="Commands", show_header=False)
    table.add_column("Command", style="cyan")
    table.add_column("Description")
    table.add_row("/deep", "Toggle DeepThink mode")
    table.add_row("/elaborate", "Toggle the elaboration stage (standard mode)")
    table.add_row("/attach <path>", "Attach a file to the next query")
    table.add_row("/detach", "Drop the pending attachment")
    table.add_row("/status", "Show mode, model and last run's progress")
    table.add_row("/theme", "Toggle light/dark theme")
    table.add_row("/verbose", "Toggle per-agent logging")
    table.add_row("/export [md|html|txt]", "Save the last answer to ./outputs")
    table.add_row("/clear", "Clear the conversation")
    table.add_row("quit", "Exit")
    console.print(table)


def print_status(session: ChatSession):
    table = Table(title="Session Status", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("DeepThink", "on" if session.deep_think else "off")
    table.add_row("Elaborate", "on" if session.elaborate else "off")
    table.add_row("Turns", str(len(session.history)))
    attachment = session.pending_attachment
    table.add_row("Attachment", f"{attachment.name} ({attachment.mime_type})" if attachment else "(none)")
    for stage, done in session.progress.snapshot().items():
        if done != ():
            table.add_row(f"  {stage}", progress_bars(done))
    console.print(table)


# ── Main loop ───────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Multi-agent heavy answer REPL")
    parser.add_argument("--config", "-c", help="Path to run config YAML")
    parser.add_argument("--deep", action="store_true", help="Start in DeepThink mode")
    parser.add_argument("--verbose", "-v", action="store_true", help="Per-agent logging")
    args = parser.parse_args()

    log.verbose = args.verbose
    cfg = load_config(args.config)
    if args.deep:
        cfg.deep_think = True

    session = build_session(cfg)
    session.progress.set_listener(on_progress)
    prefs = Preferences()
    last_response = None
    last_question = None

    console.print(Panel.fit(
        f"[bold {prefs.accent}]Heavy Agents Ready[/bold {prefs.accent}]\n"
        f"DeepThink: [yellow]{'on' if session.deep_think else 'off'}[/yellow]",
        title="heavy",
        border_style=prefs.accent,
    ))
    console.print("[dim]Type /help for commands[/dim]\n")

    while True:
        try:
            question = console.input("[bold green]You:[/bold green] ").strip()
            lower = question.lower()

            if not question and session.pending_attachment is None:
                continue

            if lower in ("quit", "exit", "q"):
                break

            if lower in ("/help", "help", "?"):
                print_help()
                continue

            if lower == "/clear":
                session.clear()
                console.print("[dim]Conversation cleared.[/dim]\n")
                continue

            if lower == "/deep":
                state = session.toggle_deep_think()
                console.print(f"[dim]DeepThink: {'ON' if state else 'OFF'}[/dim]\n")
                continue

            if lower == "/elaborate":
                state = session.toggle_elaborate()
                console.print(f"[dim]Elaborate: {'ON' if state else 'OFF'}[/dim]\n")
                continue

            if lower == "/verbose":
                log.verbose = not log.verbose
                console.print(f"[dim]Verbose: {'ON' if log.verbose else 'OFF'}[/dim]\n")
                continue

            if lower == "/theme":
                console.print(f"[dim]Theme: {prefs.toggle_theme()}[/dim]\n")
                continue

            if lower == "/status":
                print_status(session)
                console.print()
                continue

            if lower.startswith("/attach "):
                try:
                    att = session.attach(question[8:].strip())
                    console.print(f"[dim]Attached {att.name} ({att.mime_type})[/dim]\n")
                except AttachmentTooLarge as e:
                    console.print(f"[red]{e}[/red]\n")
                except OSError as e:
                    console.print(f"[red]Error: {e}[/red]\n")
                continue

            if lower == "/detach":
                session.detach()
                console.print("[dim]Attachment removed.[/dim]\n")
                continue

            if lower.startswith("/export"):
                if not last_response:
                    console.print("[dim]No response to export yet.[/dim]\n")
                    continue
                parts = question.split()
                fmt = parts[1].lower() if len(parts) > 1 else "md"
                fp = export_response(last_response, last_question, fmt=fmt)
                console.print(f"[bold green]Exported:[/bold green] {fp}\n")
                continue

            if question.startswith("/"):
                console.print(f"[red]Unknown command: {question.split()[0]}[/red]")
                console.print("[dim]Type /help for commands.[/dim]\n")
                continue

            # ── Process normal question ──
            response = session.submit(question, on_stage=on_stage)
            last_response = response
            last_question = question

            console.print()
            display_response(response, prefs.accent)
            display_runnable(response)
            console.print()

        except KeyboardInterrupt:
            break
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]\n")
            import traceback
            console.print(f"[dim]{traceback.format_exc()}[/dim]\n")

    console.print("\n[dim]Goodbye![/dim]")


if __name__ == "__main__":
    main()
