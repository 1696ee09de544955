from django.db import models
from django.conf import settings
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Marketplace user: a customer, or a driver listing vehicles for hire"""

    # Role & basic info
    full_name = models.CharField(max_length=150, blank=True)
    is_driver = models.BooleanField(default=False)
    phone_number = models.CharField(max_length=20, blank=True)

    # Referral ledger
    referral_code = models.CharField(max_length=8, unique=True, null=True, blank=True)
    referred_by = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='referred_users'
    )
    referral_points = models.PositiveIntegerField(default=0)
    referral_count = models.PositiveIntegerField(default=0)
    free_rides = models.PositiveIntegerField(default=0)

    # VIP subscription
    vip_level = models.PositiveSmallIntegerField(default=0)
    purchased_vip_level = models.PositiveSmallIntegerField(default=0)
    vip_purchase_date = models.DateTimeField(null=True, blank=True)
    vip_expiry_date = models.DateTimeField(null=True, blank=True)

    # Notification flags
    has_unread_notifications = models.BooleanField(default=False)
    last_notification_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'users'

    def __str__(self):
        role = "Driver" if self.is_driver else "Customer"
        return f"{self.username} ({role})"

    @property
    def display_name(self):
        return self.full_name or self.username

    def save(self, *args, **kwargs):
        if not self.referral_code:
            from services.referrals import issue_referral_code
            self.referral_code = issue_referral_code()
        super().save(*args, **kwargs)


class Notification(models.Model):
    """In-app notification. ``key`` makes repeated delivery a no-op."""

    TYPE_CHOICES = [
        ('info', 'Info'),
        ('success', 'Success'),
        ('warning', 'Warning'),
        ('money', 'Money'),
        ('safety', 'Safety'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    key = models.CharField(max_length=100)
    title = models.CharField(max_length=200)
    message = models.TextField()
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='info')
    action_url = models.CharField(max_length=200, blank=True)
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'key'], name='unique_user_notification_key')
        ]

    def __str__(self):
        return f"{self.title} -> {self.user}"


class ReferralEntry(models.Model):
    """Append-only record of one successful referral."""

    referrer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='referrals'
    )
    # A user can be referred at most once
    referred_user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='referral_entry'
    )
    points = models.PositiveIntegerField()
    status = models.CharField(max_length=20, default='completed')
    date = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'referral_entries'
        ordering = ['date']

    def __str__(self):
        return f"{self.referrer} referred {self.referred_user} (+{self.points})"


class VipPurchase(models.Model):
    """Append-only VIP purchase history."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='vip_purchases'
    )
    level = models.PositiveSmallIntegerField()
    payment_id = models.CharField(max_length=100, unique=True)
    price = models.PositiveIntegerField()
    purchase_date = models.DateTimeField()
    expiry_date = models.DateTimeField()
    previous_level = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'vip_purchases'
        ordering = ['created_at']

    def __str__(self):
        return f"VIP {self.level} for {self.user} ({self.payment_id})"
