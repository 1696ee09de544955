"""Tells what to show in the Django admin interface for chats app"""

from django.contrib import admin
from .models import ChatThread, ChatMessage


class ChatMessageInline(admin.TabularInline):
    model = ChatMessage
    extra = 0
    readonly_fields = ['sender', 'text', 'timestamp', 'read']


@admin.register(ChatThread)
class ChatThreadAdmin(admin.ModelAdmin):
    list_display = ['id', 'participant_a', 'participant_b', 'car_title', 'created_at', 'last_activity']
    search_fields = ['participant_a__username', 'participant_b__username', 'car_title']
    readonly_fields = ['created_at']
    inlines = [ChatMessageInline]


@admin.register(ChatMessage)
class ChatMessageAdmin(admin.ModelAdmin):
    list_display = ("thread", "sender", "timestamp", "read")
    list_filter = ("read",)
    search_fields = ("sender__username", "text")
