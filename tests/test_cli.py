"""
Тесты для CLI
"""
import pytest

from cli import CertificateCLI
from core.csv_pipeline import CSV_HEADER


class TestCertificateCLI:
    """Тесты для CLI интерфейса"""

    @pytest.fixture
    def cli(self, settings, db_manager, notifier):
        """Фикстура для CLI"""
        return CertificateCLI(settings=settings, db_manager=db_manager, notifier=notifier)

    @pytest.fixture
    def owner(self, cli):
        """Лидер с организацией, от имени которого работает CLI"""
        cli.main(["add-leader", "--ocid", "cli-leader", "--name", "Cli Leader",
                  "--email", "cli@example.com", "--org", "GDG On Campus CLI"])
        return "cli-leader"

    def test_init_db(self, cli, capsys):
        cli.main(["init-db"])

        assert "✓ Таблицы базы данных созданы" in capsys.readouterr().out

    def test_add_leader(self, cli, capsys):
        cli.main(["add-leader", "--ocid", "l-1", "--name", "Leader", "--email", "l1@example.com"])

        captured = capsys.readouterr()
        assert "✓ Лидер создан:" in captured.out
        assert "Организация: -" in captured.out

    def test_issue_certificate(self, cli, owner, capsys):
        """Тест успешного выпуска через CLI"""
        cli.main(["issue", "--owner", owner, "--name", "John Doe", "--email", "john@example.com",
                  "--event-type", "course", "--event-name", "Advanced React"])

        captured = capsys.readouterr()
        assert "✓ Сертификат успешно выпущен:" in captured.out
        assert "GDG On Campus CLI" in captured.out
        assert "?cert=GDGOC-" in captured.out

    def test_issue_unknown_owner(self, cli, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["issue", "--owner", "ghost", "--name", "John", "--event-type", "course",
                      "--event-name", "Event"])

        assert exc_info.value.code == 1
        assert "✗ Лидер ghost не найден" in capsys.readouterr().out

    def test_issue_invalid_event_type(self, cli, owner, capsys):
        with pytest.raises(SystemExit):
            cli.main(["issue", "--owner", owner, "--name", "John", "--event-type", "webinar",
                      "--event-name", "Event"])

        assert "✗ Ошибка валидации" in capsys.readouterr().out

    def test_bulk(self, cli, owner, tmp_path, capsys):
        csv_file = tmp_path / "participants.csv"
        csv_file.write_text("\n".join([
            CSV_HEADER,
            "Alice,,workshop,Intro",
            "Bob,bob@example.com,course,Intro",
        ]), encoding="utf-8")

        cli.main(["bulk", str(csv_file), "--owner", owner])

        captured = capsys.readouterr()
        assert "✓ Выпущено: 2, ошибок: 0" in captured.out
        assert "Alice" in captured.out

    def test_bulk_invalid_rows(self, cli, owner, tmp_path, capsys):
        csv_file = tmp_path / "participants.csv"
        csv_file.write_text("\n".join([CSV_HEADER, "Alice,,webinar,Intro"]), encoding="utf-8")

        with pytest.raises(SystemExit):
            cli.main(["bulk", str(csv_file), "--owner", owner])

        captured = capsys.readouterr()
        assert "✗ CSV отклонен, ошибок: 1" in captured.out
        assert "Row 2: event type must be workshop or course" in captured.out

    def test_bulk_missing_file(self, cli, owner, tmp_path, capsys):
        with pytest.raises(SystemExit):
            cli.main(["bulk", str(tmp_path / "missing.csv"), "--owner", owner])

        assert "✗ Файл не найден" in capsys.readouterr().out

    def test_validate_found(self, cli, owner, capsys):
        cli.main(["issue", "--owner", owner, "--name", "John Doe", "--event-type", "workshop",
                  "--event-name", "Intro"])
        page = cli.certificate_service.list_certificates(cli._identity_for(owner))
        unique_id = page.certificates[0].unique_id
        capsys.readouterr()

        cli.main(["validate", unique_id])

        captured = capsys.readouterr()
        assert "✓ Сертификат действителен:" in captured.out
        assert "John Doe" in captured.out

    def test_validate_not_found(self, cli, capsys):
        with pytest.raises(SystemExit):
            cli.main(["validate", "GDGOC-20240101-NOPE0"])

        assert "✗ Сертификат GDGOC-20240101-NOPE0 не найден" in capsys.readouterr().out

    def test_validate_invalid_format(self, cli, capsys):
        with pytest.raises(SystemExit):
            cli.main(["validate", "not-an-id"])

        assert "✗ Неверный формат ID сертификата" in capsys.readouterr().out

    def test_list_empty(self, cli, owner, capsys):
        cli.main(["list", "--owner", owner])

        assert "Сертификаты не найдены" in capsys.readouterr().out

    def test_env_example(self, cli, tmp_path, capsys):
        target = tmp_path / ".env.example"

        cli.main(["env-example", "--path", str(target)])

        assert target.exists()
        assert "DATABASE_URL=" in target.read_text(encoding="utf-8")

    def test_no_command_prints_help(self, cli, capsys):
        cli.main([])

        assert "usage" in capsys.readouterr().out.lower()
