from django.db import models
from django.conf import settings
from django.utils import timezone


def _default_expiry():
    return timezone.now() + settings.BOOKING_REQUEST_TTL


class BookingRequest(models.Model):
    """A customer's open call for a car, answered by drivers' offers."""

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('fulfilled', 'Fulfilled'),
        ('expired', 'Expired'),
    ]
    TRIP_TYPE_CHOICES = [
        ('quick_drop', 'Quick Drop Within City'),
        ('airport', 'Airport Pickup/Drop-off'),
        ('event', 'Wedding/Event'),
        ('monthly', 'Monthly Rental'),
        ('tourism', 'Tourism/Sightseeing'),
        ('custom', 'Custom Trip'),
    ]
    PASSENGER_CHOICES = [
        ('1-4', '1-4'),
        ('5-7', '5-7'),
        ('8-10', '8-10'),
        ('10+', '10+'),
    ]

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='booking_requests'
    )

    car_type = models.CharField(max_length=100)
    start_date = models.DateField(null=True, blank=True)
    end_date = models.DateField(null=True, blank=True)
    budget = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    location = models.CharField(max_length=255)
    # Same as location for trips within one city
    destination = models.CharField(max_length=255, blank=True)
    passengers = models.CharField(max_length=5, choices=PASSENGER_CHOICES, default='1-4')
    trip_type = models.CharField(max_length=20, choices=TRIP_TYPE_CHOICES, default='quick_drop')
    description = models.TextField(blank=True)
    negotiable = models.BooleanField(default=True)
    urgent = models.BooleanField(default=False)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    views = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    expires_at = models.DateTimeField(default=_default_expiry)

    class Meta:
        db_table = 'booking_requests'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status', 'expires_at'], name='booking_req_status_idx'),
        ]

    def __str__(self):
        return f"Request #{self.id} - {self.car_type} in {self.location} ({self.status})"

    @property
    def is_same_city(self):
        return not self.destination or self.destination == self.location

    def is_open(self, now=None):
        now = now or timezone.now()
        return self.status == 'active' and self.expires_at > now

    @property
    def chat_car_info(self):
        """Car info for the pre-booking chat opened from this request."""
        return {'id': f'request-{self.id}', 'title': f'{self.car_type} - {self.location}'}


class Offer(models.Model):
    """A driver's price for a booking request. One per driver per request."""

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
    ]

    request = models.ForeignKey(
        BookingRequest,
        on_delete=models.CASCADE,
        related_name='offers'
    )
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='booking_offers'
    )

    car_make = models.CharField(max_length=100)
    has_ac = models.BooleanField(default=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    message = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'booking_offers'
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(fields=['request', 'driver'], name='unique_offer_per_driver')
        ]

    def __str__(self):
        return f"Offer #{self.id} by {self.driver} on request #{self.request_id} - {self.status}"
