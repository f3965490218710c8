"""Invoke tasks for DocForge application management."""

import sys
from pathlib import Path

from invoke import task
from invoke.context import Context

# Default data directory; docforge/cli/server.py writes its log there
LOG_FILE = Path("data/docforge.log")


@task
def start(ctx: Context, host: str = "0.0.0.0", port: int = 8000, reload: bool = False) -> None:
    """Start the DocForge FastAPI server in the foreground.

    Args:
        ctx: Invoke context
        host: Host to bind to (default: 0.0.0.0)
        port: Port to bind to (default: 8000)
        reload: Enable auto-reload for development
    """
    cmd = f"docforge-server start --host {host} --port {port} --foreground"
    if reload:
        cmd += " --reload"

    try:
        ctx.run(cmd, pty=True)
    except KeyboardInterrupt:
        print("\nServer stopped")
        sys.exit(0)


@task(name="start-background")
def start_background(ctx: Context, host: str = "0.0.0.0", port: int = 8000) -> None:
    """Start the DocForge FastAPI server in the background."""
    ctx.run(f"docforge-server start --host {host} --port {port}")


@task
def stop(ctx: Context) -> None:
    """Stop the DocForge FastAPI server."""
    ctx.run("docforge-server stop")


@task
def restart(ctx: Context, host: str = "0.0.0.0", port: int = 8000) -> None:
    ctx.run(f"docforge-server restart --host {host} --port {port}")


@task
def status(ctx: Context) -> None:
    """Check the status of the DocForge server."""
    ctx.run("docforge-server status", warn=True)


@task
def logs(ctx: Context, follow: bool = False, lines: int = 50) -> None:
    """View the DocForge server logs.

    Args:
        ctx: Invoke context
        follow: Follow log output (like tail -f)
        lines: Number of lines to show (default: 50)
    """
    if not LOG_FILE.exists():
        print("No log file found. Server may not have been started in background mode.")
        return

    if follow:
        ctx.run(f"tail -f {LOG_FILE}", pty=True)
    else:
        ctx.run(f"tail -n {lines} {LOG_FILE}")


@task
def test(ctx: Context, verbose: bool = False, coverage: bool = False) -> None:
    """Run the test suite.

    Set TEST_MONGODB_URL to point the database tests at a MongoDB server.

    Args:
        ctx: Invoke context
        verbose: Enable verbose output
        coverage: Run with coverage report
    """
    cmd = "pytest"
    if verbose:
        cmd += " -v"
    if coverage:
        cmd += " --cov=docforge --cov-report=term-missing"
    ctx.run(cmd, pty=True)


@task(name="purge-sessions")
def purge_sessions(ctx: Context, dry_run: bool = False) -> None:
    """Remove expired, never-completed batch sessions."""
    cmd = "docforge-purge"
    if dry_run:
        cmd += " --dry-run"
    ctx.run(cmd)


@task
def clean(ctx: Context, all: bool = False) -> None:
    """Clean up temporary files.

    Args:
        ctx: Invoke context
        all: Also remove generated document files
    """
    import shutil

    for pattern in ["__pycache__", "*.pyc", "*.pyo", ".pytest_cache"]:
        ctx.run(f"find . -name '{pattern}' -exec rm -rf {{}} + 2>/dev/null || true", warn=True)

    for path in ["build", "dist", "*.egg-info", ".eggs"]:
        ctx.run(f"rm -rf {path} 2>/dev/null || true", warn=True)

    if all:
        documents_path = Path("data/documents")
        if documents_path.exists():
            print("Removing generated document files...")
            shutil.rmtree(documents_path)
            documents_path.mkdir(parents=True)

    print("Cleanup complete")
