from django.core.management.base import BaseCommand
from django.utils import timezone
from services.chat import expired_threads
import logging

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Delete chat threads inactive for longer than CHAT_THREAD_EXPIRY."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be deleted without actually deleting.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        expired = expired_threads(timezone.now())
        count = expired.count()

        if dry_run:
            self.stdout.write(
                self.style.WARNING(f"DRY RUN: Would delete {count} expired chat threads.")
            )
            return

        expired.delete()
        logger.info("Purged %d expired chat threads", count)
        self.stdout.write(self.style.SUCCESS(f"Deleted {count} expired chat threads."))
