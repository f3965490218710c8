"""Tests for CLI tools: purge_sessions and server helpers."""

import os
import sys
from datetime import timedelta

import pytest

from docforge.models.batch import BatchCandidate, BatchSession


async def _age_session(session: BatchSession, hours: int) -> None:
    old = session.updated_at - timedelta(hours=hours)
    await BatchSession.find_one(BatchSession.id == session.id).update({"$set": {"updated_at": old}})


class TestPurgeSessions:
    """Tests for purge_sessions CLI functions."""

    @pytest.mark.asyncio
    async def test_dry_run_counts_only(self, letter_session, capsys):
        from docforge.cli.purge_sessions import run
        from docforge.config import settings

        await _age_session(letter_session, settings.session_ttl_hours + 1)

        count = await run(dry_run=True, skip_db_init=True)
        assert count == 1
        assert "[DRY RUN] 1 expired session(s)" in capsys.readouterr().out
        assert await BatchSession.get(letter_session.id) is not None

    @pytest.mark.asyncio
    async def test_purge_removes_expired(self, letter_session, capsys):
        from docforge.cli.purge_sessions import run
        from docforge.config import settings

        await _age_session(letter_session, settings.session_ttl_hours + 1)

        removed = await run(skip_db_init=True)
        assert removed == 1
        assert "Removed 1 expired session(s)" in capsys.readouterr().out
        assert await BatchCandidate.find_all().count() == 0

    @pytest.mark.asyncio
    async def test_purge_keeps_live_sessions(self, letter_session):
        from docforge.cli.purge_sessions import run

        assert await run(skip_db_init=True) == 0
        assert await BatchSession.get(letter_session.id) is not None


class TestServerControl:
    """Tests for server control helpers that need no running server."""

    def test_pid_file_follows_data_dir(self, data_dir):
        from docforge.cli import server

        assert server.pid_file() == data_dir / "docforge.pid"
        assert server.log_file() == data_dir / "docforge.log"

    def test_get_pid_without_pid_file(self):
        from docforge.cli import server

        assert server.get_pid() is None

    def test_get_pid_of_live_process(self):
        from docforge.cli import server

        server.pid_file().write_text(str(os.getpid()))
        assert server.get_pid() == os.getpid()

    def test_stale_pid_file_is_removed(self):
        from docforge.cli import server

        server.pid_file().write_text("not-a-pid")
        assert server.get_pid() is None
        assert not server.pid_file().exists()

    def test_stop_when_not_running(self, capsys):
        from docforge.cli import server

        assert server.stop_server() is False
        assert "not running" in capsys.readouterr().out

    def test_check_reports_unreachable_mongodb(self, monkeypatch):
        from docforge.cli import server
        from docforge.config import reset_settings

        monkeypatch.setattr(server, "MONGO_PING_TIMEOUT_MS", 200)
        monkeypatch.setenv("DOCFORGE_MONGODB_URL", "mongodb://127.0.0.1:1")
        reset_settings()

        problems = server.check_environment()
        assert len(problems) == 1
        assert "MongoDB at mongodb://127.0.0.1:1 is not reachable" in problems[0]

    def test_check_command_exit_code(self, monkeypatch, capsys):
        from docforge.cli import server

        monkeypatch.setattr(server, "check_environment", lambda: ["MongoDB is down"])
        monkeypatch.setattr(sys, "argv", ["docforge-server", "check"])

        assert server.main() == 1
        out = capsys.readouterr().out
        assert "MongoDB is down" in out
        assert "1 problem(s) found" in out

    def test_status_shows_batch_settings(self, capsys):
        from docforge.cli import server
        from docforge.config import settings

        assert server.print_status(settings.host, settings.port) is False
        out = capsys.readouterr().out
        assert "DocForge is not running" in out
        assert f"up to {settings.batch_max_rows} rows" in out
        assert f"after {settings.session_ttl_hours}h idle" in out
