from django.db import models
from django.conf import settings


class ChatThread(models.Model):
    """Pre-booking conversation between a customer and a driver about one vehicle."""

    # Stored ordered by id so a pair maps to exactly one (a, b)
    participant_a = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='chat_threads_as_a'
    )
    participant_b = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='chat_threads_as_b'
    )
    participant_names = models.JSONField(default=dict, blank=True)

    car_id = models.CharField(max_length=64, default='general')
    car_title = models.CharField(max_length=200, default='Car Rental Request')

    created_at = models.DateTimeField(auto_now_add=True)
    last_activity = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'chat_threads'
        constraints = [
            models.UniqueConstraint(
                fields=['participant_a', 'participant_b', 'car_id'],
                name='unique_chat_thread_per_car'
            )
        ]
        indexes = [
            models.Index(fields=['last_activity'], name='chat_thread_last_ac_idx'),
        ]

    def __str__(self):
        return f"Chat #{self.id} {self.participant_a_id}<->{self.participant_b_id} ({self.car_title})"

    @property
    def participant_ids(self):
        return (self.participant_a_id, self.participant_b_id)

    def has_participant(self, user_id):
        return user_id in self.participant_ids

    def other_participant_id(self, user_id):
        return self.participant_b_id if user_id == self.participant_a_id else self.participant_a_id

    @property
    def car_info(self):
        return {'id': self.car_id, 'title': self.car_title}


class ChatMessage(models.Model):
    thread = models.ForeignKey(
        ChatThread,
        on_delete=models.CASCADE,
        related_name='messages'
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='chat_messages'
    )
    text = models.TextField()
    timestamp = models.DateTimeField(auto_now_add=True)
    read = models.BooleanField(default=False)

    class Meta:
        db_table = 'chat_messages'
        ordering = ['timestamp', 'id']
        indexes = [
            models.Index(fields=['thread', 'read'], name='chat_messag_thread__idx'),
        ]

    def __str__(self):
        return f"{self.sender_id}: {self.text[:30]}"
