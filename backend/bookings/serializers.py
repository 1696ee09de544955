from rest_framework import serializers
from .models import BookingRequest, Offer


class OfferSerializer(serializers.ModelSerializer):
    driver_id = serializers.IntegerField(read_only=True)
    driver_name = serializers.CharField(source='driver.display_name', read_only=True)
    driver_phone = serializers.CharField(source='driver.phone_number', read_only=True)

    class Meta:
        model = Offer
        fields = ['id', 'request', 'driver_id', 'driver_name', 'driver_phone', 'car_make',
                  'has_ac', 'price', 'message', 'status', 'created_at']
        read_only_fields = fields


class BookingRequestSerializer(serializers.ModelSerializer):
    """Request as seen by drivers browsing the marketplace; offers are shown to the owner only"""
    customer_id = serializers.IntegerField(read_only=True)
    customer_name = serializers.CharField(source='customer.display_name', read_only=True)
    is_same_city = serializers.BooleanField(read_only=True)
    offer_count = serializers.SerializerMethodField()
    offers = serializers.SerializerMethodField()

    class Meta:
        model = BookingRequest
        fields = ['id', 'customer_id', 'customer_name', 'car_type', 'start_date', 'end_date',
                  'budget', 'location', 'destination', 'is_same_city', 'passengers',
                  'trip_type', 'description', 'negotiable', 'urgent', 'status', 'views',
                  'offer_count', 'offers', 'created_at', 'expires_at']
        read_only_fields = fields

    def get_offer_count(self, obj):
        return len(obj.offers.all())

    def get_offers(self, obj):
        viewer = self.context.get('viewer')
        offers = obj.offers.all()
        if viewer is None or viewer.id != obj.customer_id:
            # Drivers only see their own offer
            offers = [o for o in offers if viewer is not None and o.driver_id == viewer.id]
        return OfferSerializer(offers, many=True).data


class BookingRequestWriteSerializer(serializers.Serializer):
    """Post or edit a booking request"""
    car_type = serializers.CharField(max_length=100)
    start_date = serializers.DateField(required=False, allow_null=True)
    end_date = serializers.DateField(required=False, allow_null=True)
    budget = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    location = serializers.CharField(max_length=255)
    destination = serializers.CharField(max_length=255, required=False, allow_blank=True)
    passengers = serializers.ChoiceField(choices=BookingRequest.PASSENGER_CHOICES, required=False)
    trip_type = serializers.ChoiceField(choices=BookingRequest.TRIP_TYPE_CHOICES, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    negotiable = serializers.BooleanField(required=False)
    urgent = serializers.BooleanField(required=False)


class MakeOfferSerializer(serializers.Serializer):
    car_make = serializers.CharField(max_length=100)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    has_ac = serializers.BooleanField(default=True)
    message = serializers.CharField(required=False, allow_blank=True, default='')
