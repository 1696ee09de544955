from rest_framework import serializers
from django.contrib.auth import authenticate
from .models import User, Notification
from services.referrals import referral_link
from services.vip import vip_summary

class UserSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="display_name", read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "name",
            "full_name",
            "is_driver",
            "phone_number",
        ]
        read_only_fields = ["id", "name"]


class ProfileSerializer(UserSerializer):
    """The signed-in user's own profile, with referral and VIP status"""
    referral_link = serializers.SerializerMethodField()
    vip = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + [
            "referral_code",
            "referral_link",
            "referral_points",
            "referral_count",
            "free_rides",
            "vip_level",
            "vip",
            "has_unread_notifications",
        ]
        read_only_fields = [
            "id", "name", "referral_code", "referral_link", "referral_points",
            "referral_count", "free_rides", "vip_level", "vip", "has_unread_notifications",
        ]

    def get_referral_link(self, obj):
        return referral_link(obj)

    def get_vip(self, obj):
        return vip_summary(obj)


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ["id", "key", "title", "message", "type", "action_url", "read", "created_at"]
        read_only_fields = fields


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(username=data["username"], password=data["password"])
        if not user:
            raise serializers.ValidationError("Invalid username or password")
        return user


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True)
    # Referral code from /signup?ref=<code>
    ref = serializers.CharField(required=False, allow_blank=True, write_only=True)

    class Meta:
        model = User
        fields = ['username', 'password', 'email', 'full_name', 'is_driver', 'phone_number', 'ref']

    def validate_email(self, value):
        if value and User.objects.filter(email=value).exists():
            raise serializers.ValidationError("Email already exists")
        return value

    def validate(self, data):
        # Drivers are reachable by phone before they can share their location
        if data.get('is_driver') and not data.get('phone_number'):
            raise serializers.ValidationError({
                'phone_number': 'Phone number is required for drivers'
            })
        return data

    def create(self, validated_data):
        validated_data.pop('ref', None)
        return User.objects.create_user(
            username=validated_data['username'],
            email=validated_data.get('email', ''),
            password=validated_data['password'],
            full_name=validated_data.get('full_name', ''),
            is_driver=validated_data.get('is_driver', False),
            phone_number=validated_data.get('phone_number', ''),
        )
