"""
Tests for the command-line entry points that only assemble commands.
"""

from unittest.mock import patch

import cli


class TestServe:

    def test_port_from_environment(self, monkeypatch):
        monkeypatch.setenv("PORT", "6123")

        with patch.object(cli.subprocess, "run") as run:
            cli.run_server("127.0.0.1", None, reload=False)

        cmd = run.call_args.args[0]
        assert "--port=6123" in cmd
        assert "--reload" not in cmd

    def test_explicit_port_wins(self, monkeypatch):
        monkeypatch.setenv("PORT", "6123")

        with patch.object(cli.subprocess, "run") as run:
            cli.run_server("0.0.0.0", 7000, reload=True)

        cmd = run.call_args.args[0]
        assert "--port=7000" in cmd
        assert "--host=0.0.0.0" in cmd
        assert "--reload" in cmd

    def test_default_port(self, monkeypatch):
        monkeypatch.delenv("PORT", raising=False)

        with patch("shared.config.load_dotenv"), patch.object(cli.subprocess, "run") as run:
            cli.run_server("127.0.0.1", None, reload=False)

        assert "--port=5001" in run.call_args.args[0]
