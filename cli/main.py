"""funnelcap CLI: entry-point for crawl, capture and clone operations.

Usage:
    python cli/main.py --help

Sub-commands:
    db init   → create the SQLite database
    crawl     → capture a funnel (standard BFS or quiz mode)
    capture   → snapshot one page as a self-contained HTML document
    clone     → clone a page with copy rewritten for a new product
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from funnelcap.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import json
from typing import Optional

import typer

from funnelcap.config import settings
from funnelcap.db import get_connection, init_db

app = typer.Typer(
    name="funnelcap",
    help="Funnel capture and page cloning CLI.",
    no_args_is_help=True,
)

# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


# ---------------------------------------------------------------------------
# Crawl
# ---------------------------------------------------------------------------
@app.command("crawl")
def crawl_cmd(
    url: str = typer.Option(..., help="Entry URL of the funnel."),
    quiz: bool = typer.Option(False, "--quiz", help="Quiz mode: keep clicking the advance control."),
    max_steps: Optional[int] = typer.Option(None, help="Maximum steps (standard mode)."),
    max_depth: Optional[int] = typer.Option(None, help="Maximum link depth (standard mode)."),
    quiz_max_steps: Optional[int] = typer.Option(None, help="Maximum steps (quiz mode)."),
    screenshots: bool = typer.Option(True, "--screenshots/--no-screenshots", help="Capture full-page screenshots."),
    snapshots: bool = typer.Option(False, "--snapshots", help="Store a self-contained HTML snapshot per step."),
    headed: bool = typer.Option(False, "--headed", help="Show the browser window."),
    output: Optional[Path] = typer.Option(None, help="Write the full result as JSON to this file."),
) -> None:
    """Crawl a funnel and print its steps."""
    from funnelcap.capture.models import CrawlParams
    from funnelcap.capture.navigator import crawl
    from funnelcap.errors import NavigationError

    params = CrawlParams(
        entry_url=url,
        headless=False if headed else None,
        max_steps=max_steps,
        max_depth=max_depth,
        quiz_mode=quiz,
        quiz_max_steps=quiz_max_steps,
        capture_screenshots=screenshots,
        capture_snapshots=snapshots,
    )
    typer.echo(f"[crawl] Starting {'quiz' if quiz else 'standard'} crawl of {url!r} …")
    try:
        result = crawl(params)
    except NavigationError as exc:
        typer.echo(f"[crawl] {exc}")
        raise typer.Exit(1)

    for step in result.steps:
        typer.echo(
            f"  {step.step_index:>2}. {step.title[:60]!r}  {step.url}  "
            f"(links={len(step.links)} forms={len(step.forms)} requests={len(step.network_events)})"
        )
    typer.echo(f"[crawl] {result.total_steps} step(s) in {result.duration_ms} ms")
    if output:
        output.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        typer.echo(f"[crawl] Result written to {output}")


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------
@app.command("capture")
def capture_cmd(
    url: str = typer.Option(..., help="Page to capture."),
    render: Optional[bool] = typer.Option(
        None, "--render/--static", help="Force the browser or a static fetch (default: auto)."
    ),
    output: Optional[Path] = typer.Option(None, help="Write the HTML to this file instead of stdout."),
) -> None:
    """Capture one page as a self-contained HTML document."""
    from funnelcap.capture.snapshot import capture_page

    typer.echo(f"[capture] Capturing {url!r} …", err=True)
    page = capture_page(url, render=render)
    typer.echo(
        f"[capture] {page.method_used}: {page.rendered_size} chars, "
        f"{page.css_count} stylesheet(s), {page.img_count} image(s)",
        err=True,
    )
    if output:
        output.write_text(page.html, encoding="utf-8")
        typer.echo(f"[capture] Written to {output}", err=True)
    else:
        typer.echo(page.html)


# ---------------------------------------------------------------------------
# Clone
# ---------------------------------------------------------------------------
@app.command("clone")
def clone_cmd(
    url: str = typer.Option(..., help="Page to clone."),
    product_name: str = typer.Option("", help="Name of the new product."),
    product_description: str = typer.Option("", help="Description of the new product."),
    framework: Optional[str] = typer.Option(None, help="Copywriting framework (e.g. AIDA)."),
    target: Optional[str] = typer.Option(None, help="Target audience."),
    custom_prompt: Optional[str] = typer.Option(None, help="Extra copy instructions."),
    mode: str = typer.Option("rewrite", help="Clone mode: rewrite | identical."),
    output: Optional[Path] = typer.Option(None, help="Write the cloned HTML to this file."),
    report: Optional[Path] = typer.Option(None, help="Write the replacement report as JSON."),
) -> None:
    """Clone a page, rewriting its copy for a new product."""
    from funnelcap.errors import ConfigurationError
    from funnelcap.jobs import get_job
    from funnelcap.pipeline.runner import create_clone, run_clone_job
    from funnelcap.rewrite.client import ProductBrief

    if mode == "rewrite" and not (product_name and product_description):
        typer.echo("[clone] --product-name and --product-description are required in rewrite mode.")
        raise typer.Exit(1)

    brief = ProductBrief(
        product_name=product_name,
        product_description=product_description,
        framework=framework,
        target=target,
        custom_prompt=custom_prompt,
    )
    conn = get_connection()
    init_db(conn)
    try:
        try:
            job_id = create_clone(conn, url, brief, mode)
        except (ConfigurationError, ValueError) as exc:
            typer.echo(f"[clone] {exc}")
            raise typer.Exit(1)
        typer.echo(f"[clone] Job {job_id}: cloning {url!r} ({mode}) …", err=True)
        final = run_clone_job(job_id, url, brief, mode, conn=conn)
    finally:
        conn.close()

    if final is None:
        job = get_job(job_id)
        typer.echo(f"[clone] Failed: {job.error if job else 'unknown error'}")
        raise typer.Exit(1)

    summary = final.get("report", {})
    typer.echo(
        f"[clone] Replaced {summary.get('replaced', 0)}/{summary.get('total', 0)} text unit(s)",
        err=True,
    )
    if report:
        report.write_text(json.dumps(summary, indent=2), encoding="utf-8")
    if output:
        output.write_text(final.get("final_html", ""), encoding="utf-8")
        typer.echo(f"[clone] Written to {output}", err=True)
    else:
        typer.echo(final.get("final_html", ""))


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
