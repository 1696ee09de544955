import secrets

from django.db import models
from django.conf import settings
from django.utils import timezone


class UserLocation(models.Model):
    """Latest location a user has published. ``is_sharing=False`` means the coordinates are stale."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='location'
    )

    lat = models.FloatField(null=True, blank=True)
    lng = models.FloatField(null=True, blank=True)
    accuracy = models.FloatField(null=True, blank=True)
    address = models.TextField(blank=True)
    timestamp = models.DateTimeField(null=True, blank=True)

    is_sharing = models.BooleanField(default=False)
    vehicle_id = models.CharField(max_length=64, null=True, blank=True)
    # Trip the current sharing session is mirrored into, if any
    trip = models.ForeignKey(
        'trips.Trip',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    shared_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'user_locations'

    def __str__(self):
        state = "sharing" if self.is_sharing else "stopped"
        return f"{self.user} @ ({self.lat}, {self.lng}) [{state}]"


class Trip(models.Model):
    """A car-hire trip jointly owned by its driver and customer."""

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]
    TERMINAL_STATUSES = ('completed', 'cancelled')

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='trips_as_driver'
    )
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='trips_as_customer'
    )

    pickup_location = models.CharField(max_length=255)
    destination = models.CharField(max_length=255)
    vehicle_id = models.CharField(max_length=64, blank=True)

    # Denormalized location snapshots; each side only ever writes its own field
    driver_location = models.JSONField(null=True, blank=True)
    customer_location = models.JSONField(null=True, blank=True)
    last_location_update = models.DateTimeField(null=True, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')

    # Historical fields, still writable after the trip ends
    rating = models.PositiveSmallIntegerField(null=True, blank=True)
    review = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'trips'
        ordering = ['-created_at']

    def __str__(self):
        return f"Trip #{self.id} - {self.customer} with {self.driver} - {self.status}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def side_of(self, user_id):
        """Return 'driver' or 'customer' for a participant, None otherwise."""
        if user_id == self.driver_id:
            return 'driver'
        if user_id == self.customer_id:
            return 'customer'
        return None


def _generate_token():
    return secrets.token_urlsafe(24)


class TrackingToken(models.Model):
    """Grants read-only access to a user's live location via /track/<user_id>/<token>."""

    token = models.CharField(max_length=64, unique=True, default=_generate_token)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tracking_tokens'
    )
    contact_label = models.CharField(max_length=100, blank=True)
    is_valid = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()

    class Meta:
        db_table = 'tracking_tokens'

    def __str__(self):
        return f"Tracking token for {self.user} (expires {self.expires_at:%Y-%m-%d %H:%M})"

    def save(self, *args, **kwargs):
        if not self.expires_at:
            self.expires_at = timezone.now() + settings.TRACKING_TOKEN_TTL
        super().save(*args, **kwargs)

    def is_usable(self, now=None):
        now = now or timezone.now()
        return self.is_valid and self.expires_at > now
