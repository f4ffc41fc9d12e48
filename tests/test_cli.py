"""
Tests for the CLI
"""
import pytest

from cli import BhumiCLI


class TestBhumiCLI:
    """CLI commands against an in-memory database"""

    @pytest.fixture
    def cli(self, settings, seeded_db, notifier):
        return BhumiCLI(settings, db_manager=seeded_db, notifier=notifier)

    def test_no_command_prints_help(self, cli, capsys):
        assert cli.main([]) == 0
        assert "init-db" in capsys.readouterr().out

    def test_init_db(self, settings, db_manager, capsys):
        cli = BhumiCLI(settings, db_manager=db_manager)

        assert cli.main(["init-db", "--drop"]) == 0

        out = capsys.readouterr().out
        assert "tables dropped" in out
        assert "schema created" in out

    def test_seed_is_idempotent(self, settings, db_manager, capsys):
        cli = BhumiCLI(settings, db_manager=db_manager)

        assert cli.main(["seed"]) == 0
        assert "Sample data loaded" in capsys.readouterr().out

        assert cli.main(["seed"]) == 0
        assert "nothing loaded" in capsys.readouterr().out

    def test_verify(self, cli, capsys):
        assert cli.main(["verify", "BHM23051501", "john doe"]) == 0

        out = capsys.readouterr().out
        assert "Certificate verified" in out
        assert "John Doe" in out
        assert "Strategic Business Planning" in out
        # The sample certificate expired on 2025-05-15
        assert "Status: expired" in out

    def test_verify_mismatch(self, cli, capsys):
        assert cli.main(["verify", "BHM23051501", "Jane Doe"]) == 1
        assert "Certificate not found or details do not match" in capsys.readouterr().out

    def test_status(self, cli, capsys):
        assert cli.main(["status", "--participant-id", "BHM-P001", "--email", "john.doe@example.com"]) == 0

        out = capsys.readouterr().out
        assert "John Doe (BHM-P001)" in out
        assert "completed 15.05.2023, certificate BHM23051501" in out

    def test_status_requires_input(self, cli, capsys):
        assert cli.main(["status"]) == 2
        assert "Validation error" in capsys.readouterr().out

    def test_status_unknown(self, cli, capsys):
        assert cli.main(["status", "--email", "nobody@example.com"]) == 1
        assert "Participant not found" in capsys.readouterr().out

    def test_test_telegram(self, cli, bot, capsys):
        assert cli.main(["test-telegram"]) == 0
        assert "Test message sent" in capsys.readouterr().out
        bot.send_message.assert_awaited_once()

    def test_test_telegram_not_configured(self, settings, seeded_db, capsys):
        cli = BhumiCLI(settings, db_manager=seeded_db)

        assert cli.main(["test-telegram"]) == 1
        assert "TELEGRAM_CHAT_ID" in capsys.readouterr().out
