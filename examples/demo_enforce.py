"""Demo script for the log enforcer.

This demonstrates:
1. Detectors - finding print() and console.* calls
2. Exclusion Classifier - exempting tests and CLI entry points
3. Fixers - previewing a dry-run rewrite
4. Orchestrator - enforcing and fixing a whole project
5. Cache - serving an unchanged project from disk

Usage:
    python examples/demo_enforce.py
"""

import asyncio
import tempfile
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from log_enforcer.audit import build_analyzer
from log_enforcer.config import build_config
from log_enforcer.engine import AnalysisCache, LogEnforcer
from log_enforcer.models import EnforceOptions, EnforcementResult

console = Console()


SAMPLE_FILES = {
    "src/billing/invoice.py": '''"""Invoice generation."""

import json
import sys


def render(invoice):
    print("rendering invoice", invoice["id"])
    if not invoice.get("lines"):
        print("invoice has no lines", file=sys.stderr)
    # log-enforcer-disable-next-line
    print(json.dumps(invoice))
    return invoice
''',
    "src/api/user-service.ts": """import { Request } from 'express';

export function getUser(req: Request) {
  console.log('fetching user', req.params.id);
  console.warn('deprecated endpoint');
  return { id: req.params.id };
}
""",
    "lib/worker.js": """const pino = require('pino');
const jobLog = pino();

module.exports = function work(job) {
  console.error('job failed', job.id);
};
""",
    "tests/test_invoice.py": "print('allowed in tests')\n",
    "scripts/seed.py": "print('allowed in scripts')\n",
}


def create_project(root: Path) -> None:
    for relative, content in SAMPLE_FILES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def show_result(title: str, result: EnforcementResult) -> None:
    status = "[green]PASSED[/green]" if result.success else "[red]FAILED[/red]"
    console.print(f"{title}: {status}")

    table = Table(title="Violations")
    table.add_column("File", style="cyan")
    table.add_column("Line", style="green")
    table.add_column("Call", style="yellow")
    table.add_column("Level")
    for v in result.violations:
        table.add_row(Path(v.file_path).name, str(v.line), v.label, v.level)
    if result.violations:
        console.print(table)

    stats = result.stats
    console.print(
        f"  Files: {stats.files_total}  Excluded: {stats.files_excluded}  "
        f"Errors: {stats.files_errored}  Fixed: {stats.files_fixed}  Cache hits: {stats.cache_hits}"
    )


def demo_dry_run(root: Path) -> None:
    """Preview the rewrite of one file without touching it."""
    console.print("\n[bold cyan]═══ Dry-Run Fix Demo ═══[/bold cyan]\n")

    config = build_config({"languages": {"typescript": {"namingStrategy": "module"}}})
    analyzer = build_analyzer(config, "typescript", root)
    fix = analyzer.fix(root / "src/api/user-service.ts", dry_run=True)

    for change in fix.changes:
        console.print(f"  line {change.line} [dim]{change.type.value}[/dim]: {change.new}")
    console.print(Syntax(fix.fixed_content, "typescript", line_numbers=True))


async def demo_enforce(root: Path) -> None:
    """Enforce, fix, then re-run against the warm cache."""
    console.print("\n[bold cyan]═══ Enforcement Demo ═══[/bold cyan]\n")

    config = build_config()
    enforcer = LogEnforcer(config, cache=AnalysisCache.from_config(config, root), root=root)

    show_result("Initial run", await enforcer.enforce())
    show_result("Fix run", await enforcer.enforce(EnforceOptions(fix=True)))
    show_result("Cached run", await enforcer.enforce())

    console.print(Syntax((root / "src/billing/invoice.py").read_text(encoding="utf-8"), "python", line_numbers=True))
    console.print(f"\nCache: {enforcer.cache_stats()}")


async def run_demo():
    """Run the complete demo."""
    console.print(Panel.fit(
        "[bold magenta]Log Enforcer[/bold magenta]\n"
        "[cyan]Structured logging for Python, JavaScript and TypeScript[/cyan]",
        border_style="bright_blue",
    ))

    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        create_project(root)

        try:
            demo_dry_run(root)
            await demo_enforce(root)
        except Exception as e:
            console.print(f"\n[bold red]Error:[/bold red] {e}")
            import traceback
            traceback.print_exc()


if __name__ == "__main__":
    asyncio.run(run_demo())
