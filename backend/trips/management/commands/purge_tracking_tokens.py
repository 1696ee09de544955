from django.core.management.base import BaseCommand
from django.db.models import Q
from django.utils import timezone
from datetime import timedelta
from trips.models import TrackingToken
import logging

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Delete expired and revoked tracking links."

    def add_arguments(self, parser):
        parser.add_argument(
            "--grace-hours",
            type=int,
            default=0,
            help="Keep tokens that expired less than this many hours ago (default: 0).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be deleted without actually deleting.",
        )

    def handle(self, *args, **options):
        grace = timedelta(hours=options["grace_hours"])
        dry_run = options["dry_run"]
        cutoff = timezone.now() - grace

        stale = TrackingToken.objects.filter(Q(expires_at__lt=cutoff) | Q(is_valid=False))
        count = stale.count()

        if dry_run:
            self.stdout.write(
                self.style.WARNING(f"DRY RUN: Would delete {count} tracking tokens.")
            )
            return

        stale.delete()
        logger.info("Purged %d tracking tokens", count)
        self.stdout.write(self.style.SUCCESS(f"Deleted {count} expired or revoked tracking tokens."))
