"""
CLI интерфейс для выпуска и проверки сертификатов
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config.settings import Settings, create_env_example, get_settings
from core.csv_pipeline import CSVIngestionPipeline
from core.database import CertificateRepository, DatabaseManager, LeaderRepository
from core.exceptions import CertificateError, CertificateNotFoundError, ValidationFailedError
from core.generator import CertificateIDGenerator
from core.models import CertificateRequest, ResolvedIdentity
from core.notifications import EmailNotifier
from core.service import CertificateService, ValidationService


class CertificateCLI:
    """CLI интерфейс для работы с сертификатами"""

    def __init__(self, settings: Optional[Settings] = None,
                 db_manager: Optional[DatabaseManager] = None,
                 notifier: Optional[EmailNotifier] = None):
        self.settings = settings or get_settings()
        self.setup_logging()
        self.setup_services(db_manager, notifier)

    def setup_logging(self):
        """Настройка логирования"""
        self.settings.create_directories()
        logging.basicConfig(
            level=getattr(logging, self.settings.log_level),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.FileHandler(self.settings.log_file, encoding='utf-8'),
                logging.StreamHandler()
            ]
        )
        self.logger = logging.getLogger(__name__)

    def setup_services(self, db_manager: Optional[DatabaseManager], notifier: Optional[EmailNotifier]):
        """Создание хранилищ и сервисов"""
        self.db_manager = db_manager or DatabaseManager(self.settings.sqlalchemy_url)
        self.certificate_repo = CertificateRepository(self.db_manager)
        self.leader_repo = LeaderRepository(self.db_manager)
        self.id_generator = CertificateIDGenerator(
            prefix=self.settings.cert_id_prefix, tz=self.settings.tzinfo
        )

        self.certificate_service = CertificateService(
            certificate_repo=self.certificate_repo,
            leader_repo=self.leader_repo,
            id_generator=self.id_generator,
            notifier=notifier or EmailNotifier.from_settings(self.settings),
            pipeline=CSVIngestionPipeline(),
            validation_base_url=self.settings.validation_base_url,
            id_collision_retries=self.settings.cert_id_collision_retries,
        )
        self.validation_service = ValidationService(self.certificate_repo)

    def _identity_for(self, ocid: str) -> ResolvedIdentity:
        """Личность лидера по ocid из БД (CLI работает от имени лидера)"""
        leader = self.leader_repo.get(ocid)
        if leader is None:
            print(f"✗ Лидер {ocid} не найден")
            sys.exit(1)
        return ResolvedIdentity(
            subject_id=leader.ocid,
            email=leader.email,
            name=leader.name,
            username=leader.email,
        )

    def init_db(self, args):
        """Создание таблиц"""
        try:
            self.db_manager.create_tables()
            print("✓ Таблицы базы данных созданы")
        except Exception as e:
            print(f"✗ Ошибка создания таблиц: {e}")
            self.logger.error(f"Ошибка создания таблиц: {e}")
            sys.exit(1)

    def add_leader(self, args):
        """Добавление лидера и, при необходимости, его организации"""
        try:
            leader, created = self.leader_repo.upsert_on_first_login(args.ocid, args.name, args.email)
            if args.org:
                leader = self.leader_repo.set_org_name_once(args.ocid, args.org)
        except CertificateError as e:
            print(f"✗ Ошибка: {e}")
            sys.exit(1)

        print(f"✓ Лидер {'создан' if created else 'уже существует'}:")
        print(f"  ocid: {leader.ocid}")
        print(f"  Имя: {leader.name}")
        print(f"  Организация: {leader.org_name or '-'}")

    def issue_certificate(self, args):
        """Выпуск одного сертификата через CLI"""
        identity = self._identity_for(args.owner)

        try:
            request = CertificateRequest(
                recipient_name=args.name,
                recipient_email=args.email,
                event_type=args.event_type,
                event_name=args.event_name,
                pdf_url=args.pdf_url,
            )
        except ValueError as e:
            print(f"✗ Ошибка валидации: {e}")
            sys.exit(1)

        try:
            certificate = self.certificate_service.issue_certificate(identity, request)
        except CertificateError as e:
            print(f"✗ Ошибка: {e}")
            sys.exit(1)

        print("✓ Сертификат успешно выпущен:")
        print(f"  ID: {certificate.unique_id}")
        print(f"  Получатель: {certificate.recipient_name}")
        print(f"  Мероприятие: {certificate.event_name} ({certificate.event_type.value})")
        print(f"  Организация: {certificate.org_name}")
        print(f"  Проверка: {self.certificate_service.build_validation_url(certificate.unique_id)}")

    def issue_bulk(self, args):
        """Пакетный выпуск сертификатов из CSV файла"""
        identity = self._identity_for(args.owner)

        csv_path = Path(args.csv_file)
        if not csv_path.exists():
            print(f"✗ Файл не найден: {csv_path}")
            sys.exit(1)

        try:
            result = self.certificate_service.issue_batch(identity, csv_path.read_text(encoding="utf-8"))
        except ValidationFailedError as e:
            print(f"✗ CSV отклонен, ошибок: {len(e.errors)}")
            for error in e.errors:
                print(f"  {error}")
            sys.exit(1)
        except CertificateError as e:
            print(f"✗ Ошибка: {e}")
            sys.exit(1)

        print(f"✓ Выпущено: {result.generated}, ошибок: {result.failed}")
        for summary in result.certificates:
            print(f"  {summary.unique_id}  {summary.recipient_name}")
        for failure in result.errors or []:
            print(f"  ✗ Строка {failure.row_number} ({failure.recipient_name}): {failure.error}")

        if result.failed:
            sys.exit(1)

    def validate_certificate(self, args):
        """Проверка сертификата через CLI"""
        certificate_id = args.certificate_id

        if not self.id_generator.validate_id_format(certificate_id):
            print(f"✗ Неверный формат ID сертификата: {certificate_id}")
            sys.exit(1)

        try:
            certificate = self.validation_service.validate(certificate_id)
        except CertificateNotFoundError:
            print(f"✗ Сертификат {certificate_id} не найден")
            sys.exit(1)
        except CertificateError as e:
            print(f"✗ Ошибка проверки: {e}")
            sys.exit(1)

        print("✓ Сертификат действителен:")
        print(f"  ID: {certificate.unique_id}")
        print(f"  Получатель: {certificate.recipient_name}")
        print(f"  Мероприятие: {certificate.event_name} ({certificate.event_type.value})")
        print(f"  Дата выпуска: {certificate.issue_date.strftime('%d.%m.%Y')}")
        print(f"  Выдал: {certificate.issuer_name}, {certificate.org_name}")

        self.logger.info(f"Проверен сертификат {certificate_id}")

    def list_certificates(self, args):
        """Список сертификатов лидера"""
        identity = self._identity_for(args.owner)

        try:
            page = self.certificate_service.list_certificates(identity, args.page, args.limit)
        except CertificateError as e:
            print(f"✗ Ошибка получения списка: {e}")
            sys.exit(1)

        print(f"Сертификаты лидера {identity.subject_id} (всего {page.total}, страница {page.page}):")
        if not page.certificates:
            print("  Сертификаты не найдены")
        for certificate in page.certificates:
            print(f"  {certificate.unique_id}  {certificate.recipient_name}  {certificate.event_name}")

    def env_example(self, args):
        """Создание примера .env"""
        path = create_env_example(args.path)
        print(f"✓ Пример настроек записан в {path}")

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description="Выпуск и проверка сертификатов об участии",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Примеры использования:
  %(prog)s init-db
  %(prog)s add-leader --ocid abc123 --name "Jane Leader" --email jane@example.com --org "GDG On Campus"
  %(prog)s issue --owner abc123 --name "John Doe" --event-type workshop --event-name "Intro to Web"
  %(prog)s bulk participants.csv --owner abc123
  %(prog)s validate GDGOC-20240101-A1B2C
  %(prog)s list --owner abc123
            """
        )

        subparsers = parser.add_subparsers(dest='command', help='Доступные команды')

        subparsers.add_parser('init-db', help='Создание таблиц БД')

        leader_parser = subparsers.add_parser('add-leader', help='Добавление лидера')
        leader_parser.add_argument('--ocid', required=True, help='Идентификатор лидера')
        leader_parser.add_argument('--name', required=True, help='Имя лидера')
        leader_parser.add_argument('--email', required=True, help='Email лидера')
        leader_parser.add_argument('--org', help='Название организации (задается один раз)')

        issue_parser = subparsers.add_parser('issue', help='Выпуск одного сертификата')
        issue_parser.add_argument('--owner', required=True, help='ocid выпускающего лидера')
        issue_parser.add_argument('--name', required=True, help='Имя получателя')
        issue_parser.add_argument('--email', help='Email получателя')
        issue_parser.add_argument('--event-type', required=True, help='workshop или course')
        issue_parser.add_argument('--event-name', required=True, help='Название мероприятия')
        issue_parser.add_argument('--pdf-url', help='Ссылка на PDF')

        bulk_parser = subparsers.add_parser('bulk', help='Пакетный выпуск из CSV')
        bulk_parser.add_argument('csv_file', help='Путь к CSV файлу')
        bulk_parser.add_argument('--owner', required=True, help='ocid выпускающего лидера')

        validate_parser = subparsers.add_parser('validate', help='Проверка сертификата')
        validate_parser.add_argument('certificate_id', help='ID сертификата для проверки')

        list_parser = subparsers.add_parser('list', help='Список сертификатов лидера')
        list_parser.add_argument('--owner', required=True, help='ocid лидера')
        list_parser.add_argument('--page', type=int, default=1, help='Номер страницы')
        list_parser.add_argument('--limit', type=int, default=50, help='Размер страницы')

        env_parser = subparsers.add_parser('env-example', help='Создание примера .env')
        env_parser.add_argument('--path', default='.env.example', help='Куда записать файл')

        return parser

    def main(self, argv: Optional[List[str]] = None):
        """Главная функция CLI"""
        parser = self.build_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return

        commands = {
            'init-db': self.init_db,
            'add-leader': self.add_leader,
            'issue': self.issue_certificate,
            'bulk': self.issue_bulk,
            'validate': self.validate_certificate,
            'list': self.list_certificates,
            'env-example': self.env_example,
        }
        commands[args.command](args)


def main():
    """Точка входа консольной команды"""
    cli = CertificateCLI()
    cli.main()


if __name__ == '__main__':
    main()
