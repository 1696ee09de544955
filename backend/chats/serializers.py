from rest_framework import serializers
from .models import ChatThread, ChatMessage


class ChatMessageSerializer(serializers.ModelSerializer):
    sender_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = ChatMessage
        fields = ['id', 'sender_id', 'text', 'timestamp', 'read']
        read_only_fields = fields


class ChatThreadSerializer(serializers.ModelSerializer):
    participants = serializers.SerializerMethodField()
    car_info = serializers.DictField(read_only=True)
    messages = ChatMessageSerializer(many=True, read_only=True)

    class Meta:
        model = ChatThread
        fields = ['id', 'participants', 'participant_names', 'car_info',
                  'created_at', 'last_activity', 'messages']
        read_only_fields = fields

    def get_participants(self, obj):
        return list(obj.participant_ids)


class OpenThreadSerializer(serializers.Serializer):
    """Open a chat with another user about a vehicle"""
    other_user_id = serializers.IntegerField()
    car_id = serializers.CharField(max_length=64, required=False, allow_blank=True)
    car_title = serializers.CharField(max_length=200, required=False, allow_blank=True)


class SendMessageSerializer(serializers.Serializer):
    text = serializers.CharField(allow_blank=True, trim_whitespace=False)
