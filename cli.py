"""
Command line interface for the Bhumi Consultancy backend.
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from config.settings import Settings, get_settings, setup_logging
from core.database import DatabaseManager
from core.exceptions import BhumiError, NotFoundError, ValidationError
from core.notifications import ContactNotifier
from core.service import seed_sample_data
from core.verification import VerificationEngine


class BhumiCLI:
    """Administrative commands."""

    def __init__(self, settings: Optional[Settings] = None,
                 db_manager: Optional[DatabaseManager] = None,
                 notifier: Optional[ContactNotifier] = None):
        self.settings = settings or get_settings()
        self.db_manager = db_manager or DatabaseManager(self.settings.database_url)
        self.notifier = notifier
        self.logger = logging.getLogger(__name__)

    def init_db(self, args) -> int:
        """Creates the database schema."""
        if args.drop:
            self.db_manager.drop_tables()
            print("✓ Existing tables dropped")
        self.db_manager.create_tables()
        print("✓ Database schema created")
        return 0

    def seed(self, args) -> int:
        """Loads sample data."""
        self.db_manager.create_tables()
        if seed_sample_data(self.db_manager):
            print("✓ Sample data loaded")
        else:
            print("• Database already contains data, nothing loaded")
        return 0

    def verify(self, args) -> int:
        """Verifies a certificate."""
        engine = VerificationEngine(self.db_manager)
        try:
            result = engine.verify_certificate(args.certificate_id, args.name)
        except NotFoundError as e:
            print(f"✗ {e}")
            return 1

        print("✓ Certificate verified:")
        print(f"  ID: {result.certificate.certificate_id}")
        print(f"  Participant: {result.participant.name}")
        print(f"  Training program: {result.training.name}")
        print(f"  Issued: {result.certificate.issue_date.strftime('%d.%m.%Y')}")
        print(f"  Status: {result.certificate.status}")
        return 0

    def status(self, args) -> int:
        """Shows a participant's enrollment status."""
        engine = VerificationEngine(self.db_manager)
        try:
            result = engine.check_participant_status(args.participant_id, args.email)
        except NotFoundError as e:
            print(f"✗ {e}")
            return 1

        print(f"✓ {result.participant.name} ({result.participant.participant_id}), status: {result.participant.status}")
        for program in result.enrolled_programs:
            if program.in_progress:
                print(f"  • {program.program_name}: in progress")
            else:
                print(f"  • {program.program_name}: completed {program.completion_date.strftime('%d.%m.%Y')}, "
                      f"certificate {program.certificate_id}")
        return 0

    def test_telegram(self, args) -> int:
        """Sends a Telegram test message."""
        notifier = self.notifier or ContactNotifier.from_settings(self.settings)

        async def run():
            try:
                return await notifier.send_test_message()
            finally:
                await notifier.close()

        result = asyncio.run(run())
        if result.success:
            print("✓ Test message sent")
            return 0

        print(f"✗ Test message failed: {result.error or result.reason}")
        return 1

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description="Bhumi Consultancy backend administration",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  %(prog)s init-db
  %(prog)s seed
  %(prog)s verify BHM23051501 "John Doe"
  %(prog)s status --participant-id BHM-P001 --email john.doe@example.com
  %(prog)s test-telegram
            """
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        init_parser = subparsers.add_parser('init-db', help='Create database tables')
        init_parser.add_argument('--drop', action='store_true', help='Drop existing tables first')

        subparsers.add_parser('seed', help='Load sample data')

        verify_parser = subparsers.add_parser('verify', help='Verify a certificate')
        verify_parser.add_argument('certificate_id', help='Certificate ID')
        verify_parser.add_argument('name', help='Participant name')

        status_parser = subparsers.add_parser('status', help='Check participant status')
        status_parser.add_argument('--participant-id', dest='participant_id', help='Participant ID')
        status_parser.add_argument('--email', help='Participant email')

        subparsers.add_parser('test-telegram', help='Send a Telegram test message')

        return parser

    def main(self, argv: Optional[List[str]] = None) -> int:
        """CLI entry point."""
        parser = self.build_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return 0

        handlers = {
            'init-db': self.init_db,
            'seed': self.seed,
            'verify': self.verify,
            'status': self.status,
            'test-telegram': self.test_telegram,
        }

        try:
            return handlers[args.command](args)
        except ValidationError as e:
            print(f"✗ Validation error: {e}")
            return 2
        except BhumiError as e:
            print(f"✗ Error: {e}")
            self.logger.error(f"Command {args.command} failed: {e}")
            return 1


def main():
    settings = get_settings()
    setup_logging(settings)
    sys.exit(BhumiCLI(settings).main())


if __name__ == '__main__':
    main()
