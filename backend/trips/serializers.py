from rest_framework import serializers
from django.contrib.auth import get_user_model
from .models import Trip, TrackingToken
from .schema import normalize_location

User = get_user_model()


class ParticipantSerializer(serializers.ModelSerializer):
    """Public view of a trip participant"""
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'name', 'phone_number', 'is_driver']


class TripSerializer(serializers.ModelSerializer):
    """Serializer for Trips"""
    driver = ParticipantSerializer(read_only=True)
    customer = ParticipantSerializer(read_only=True)
    driver_location = serializers.SerializerMethodField()
    customer_location = serializers.SerializerMethodField()

    class Meta:
        model = Trip
        fields = ['id', 'driver', 'customer', 'pickup_location', 'destination',
                  'vehicle_id', 'driver_location', 'customer_location',
                  'last_location_update', 'status', 'rating', 'review',
                  'created_at', 'completed_at', 'cancelled_at']
        read_only_fields = fields

    def _location(self, raw):
        snapshot = normalize_location(raw)
        return snapshot.to_document() if snapshot else None

    def get_driver_location(self, obj):
        return self._location(obj.driver_location)

    def get_customer_location(self, obj):
        return self._location(obj.customer_location)


def trip_document(trip):
    """Plain-dict Trip snapshot, safe to send through the channel layer."""
    data = TripSerializer(trip).data
    return {
        **data,
        'driver': dict(data['driver']),
        'customer': dict(data['customer']),
    }


class TripCreateSerializer(serializers.Serializer):
    """Serializer for booking a trip"""
    driver_id = serializers.IntegerField()
    pickup_location = serializers.CharField(max_length=255)
    destination = serializers.CharField(max_length=255)
    vehicle_id = serializers.CharField(max_length=64, required=False, allow_blank=True)


class TripRateSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    review = serializers.CharField(required=False, allow_blank=True)


class LocationFixSerializer(serializers.Serializer):
    """A device position; accepts legacy latitude/longitude names too"""
    lat = serializers.FloatField(required=False, min_value=-90, max_value=90)
    lng = serializers.FloatField(required=False, min_value=-180, max_value=180)
    latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)
    longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)
    accuracy = serializers.FloatField(required=False, allow_null=True)
    timestamp = serializers.DateTimeField(required=False)

    def validate(self, data):
        if data.get('lat', data.get('latitude')) is None or data.get('lng', data.get('longitude')) is None:
            raise serializers.ValidationError('lat and lng are required')
        return data


class StartSharingSerializer(LocationFixSerializer):
    trip_id = serializers.IntegerField(required=False, allow_null=True)
    vehicle_id = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)


class StopSharingSerializer(serializers.Serializer):
    trip_id = serializers.IntegerField(required=False, allow_null=True)


class TrackingTokenSerializer(serializers.ModelSerializer):
    path = serializers.SerializerMethodField()

    class Meta:
        model = TrackingToken
        fields = ['token', 'contact_label', 'created_at', 'expires_at', 'path']
        read_only_fields = ['token', 'created_at', 'expires_at', 'path']

    def get_path(self, obj):
        return f"/track/{obj.user_id}/{obj.token}"
