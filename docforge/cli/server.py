"""DocForge server control.

Usage:
    docforge-server start [--host HOST] [--port PORT] [--reload] [--foreground]
    docforge-server stop
    docforge-server restart [--host HOST] [--port PORT]
    docforge-server status
    docforge-server check

The PID and log files live in the configured data directory, so
``DOCFORGE_STORAGE_DATA_DIR`` moves them along with the stored documents.
"""

import argparse
import json
import os
import signal
import subprocess
import sys
import time
import urllib.error
import urllib.request
from pathlib import Path

import uvicorn
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from docforge.config import settings

APP_PATH = "docforge.main:app"
STARTUP_TIMEOUT_SECONDS = 15.0
STOP_TIMEOUT_SECONDS = 5.0
MONGO_PING_TIMEOUT_MS = 2000


def pid_file() -> Path:
    return settings.data_dir / "docforge.pid"


def log_file() -> Path:
    return settings.data_dir / "docforge.log"


def get_pid() -> int | None:
    """PID of the background server, removing a stale PID file."""
    path = pid_file()
    if not path.exists():
        return None
    try:
        pid = int(path.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        path.unlink(missing_ok=True)
        return None


def fetch_health(host: str, port: int) -> dict | None:
    # 0.0.0.0 binds everywhere but is not a connectable address
    target = "127.0.0.1" if host in ("0.0.0.0", "") else host
    try:
        with urllib.request.urlopen(f"http://{target}:{port}/health", timeout=2) as response:
            return json.loads(response.read().decode())
    except (urllib.error.URLError, OSError, ValueError):
        return None


def check_environment() -> list[str]:
    """Check what the server needs before it accepts uploads.

    Returns:
        Human-readable problems; empty when MongoDB answers and the
        documents directory is writable.
    """
    problems: list[str] = []

    documents_dir = settings.documents_dir
    try:
        documents_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        problems.append(f"Documents directory {documents_dir} cannot be created: {e}")
    else:
        if not os.access(documents_dir, os.W_OK):
            problems.append(f"Documents directory {documents_dir} is not writable")

    client = MongoClient(settings.mongodb_url, serverSelectionTimeoutMS=MONGO_PING_TIMEOUT_MS)
    try:
        client.admin.command("ping")
    except PyMongoError as e:
        problems.append(f"MongoDB at {settings.mongodb_url} is not reachable: {e}")
    finally:
        client.close()

    return problems


def run_foreground(host: str, port: int, reload: bool = False) -> None:
    """Serve the app in this process until interrupted."""
    workers = None if reload else settings.config.server.workers
    uvicorn.run(
        APP_PATH,
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level="debug" if settings.debug else "info",
    )


def start_background(host: str, port: int) -> bool:
    """Spawn the server in its own process group and wait until it is healthy."""
    if pid := get_pid():
        print(f"DocForge is already running (PID: {pid})")
        return False

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    cmd = [
        sys.executable, "-m", "docforge.cli.server",
        "start", "--foreground", "--host", host, "--port", str(port),
    ]
    with open(log_file(), "w") as log:
        process = subprocess.Popen(cmd, stdout=log, stderr=subprocess.STDOUT, start_new_session=True)

    deadline = time.monotonic() + STARTUP_TIMEOUT_SECONDS
    while time.monotonic() < deadline:
        if process.poll() is not None:
            print(f"DocForge exited during startup; see {log_file()}")
            return False
        if fetch_health(host, port) is not None:
            pid_file().write_text(str(process.pid))
            print(f"DocForge running on http://{host}:{port} (PID: {process.pid})")
            return True
        time.sleep(0.5)

    print(f"DocForge did not become healthy within {STARTUP_TIMEOUT_SECONDS:.0f}s; see {log_file()}")
    os.killpg(process.pid, signal.SIGTERM)
    return False


def stop_server() -> bool:
    """Stop the background server and its workers."""
    pid = get_pid()
    if pid is None:
        print("DocForge is not running")
        return False

    print(f"Stopping DocForge (PID: {pid})...")
    # Uvicorn workers share the server's process group
    try:
        os.killpg(pid, signal.SIGTERM)
        deadline = time.monotonic() + STOP_TIMEOUT_SECONDS
        while time.monotonic() < deadline:
            os.kill(pid, 0)
            time.sleep(0.25)
        print("DocForge did not stop in time; killing it")
        os.killpg(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        print(f"Permission denied to stop process {pid}")
        return False

    pid_file().unlink(missing_ok=True)
    print("DocForge stopped")
    return True


def print_status(host: str, port: int) -> bool:
    """Print process, health and batch settings. Returns True if running."""
    pid = get_pid()
    if pid is None:
        print("DocForge is not running")
    else:
        print(f"DocForge is running (PID: {pid})")
        health = fetch_health(host, port)
        if health is None:
            print("  Health: unreachable")
        else:
            print(f"  Health: {health.get('status', 'unknown')} (version {health.get('version', 'unknown')})")

    print(f"  Database: {settings.mongodb_database} at {settings.mongodb_url}")
    print(f"  Documents: {settings.documents_dir}")
    print(
        f"  Batches: up to {settings.batch_max_rows} rows, "
        f"{settings.materialize_concurrency} concurrent renders, "
        f"sessions expire after {settings.session_ttl_hours}h idle"
    )
    return pid is not None


def main() -> int:
    parser = argparse.ArgumentParser(description="DocForge server control")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    for name, help_text in (("start", "Start the server"), ("restart", "Restart the server")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--host", default=settings.host, help=f"Host to bind to (default: {settings.host})")
        sub.add_argument("--port", "-p", type=int, default=settings.port,
                         help=f"Port to bind to (default: {settings.port})")
        if name == "start":
            sub.add_argument("--reload", "-r", action="store_true", help="Reload on code changes (foreground only)")
            sub.add_argument("--foreground", "-f", action="store_true", help="Run in this process")

    subparsers.add_parser("stop", help="Stop the background server")
    subparsers.add_parser("status", help="Show server status and batch settings")
    subparsers.add_parser("check", help="Check MongoDB and the documents directory")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return 1

    if args.command == "check":
        problems = check_environment()
        for problem in problems:
            print(f"  {problem}")
        print("Environment OK" if not problems else f"{len(problems)} problem(s) found")
        return 1 if problems else 0

    if args.command == "stop":
        return 0 if stop_server() else 1

    if args.command == "status":
        return 0 if print_status(settings.host, settings.port) else 1

    if args.command == "restart":
        stop_server()
        return 0 if start_background(args.host, args.port) else 1

    if args.foreground or args.reload:
        try:
            run_foreground(args.host, args.port, reload=args.reload)
        except KeyboardInterrupt:
            pass
        return 0
    return 0 if start_background(args.host, args.port) else 1


if __name__ == "__main__":
    sys.exit(main())
