from rest_framework import serializers
from django.conf import settings

from accounts.serializers import UserBasicSerializer
from riders.serializers import RiderBasicSerializer
from services.ride_management import vehicle_capacities, MAX_CAPACITY
from services.ride_management.shared_code import normalize_shared_code, is_well_formed_shared_code
from .models import Ride, RideParticipant, Rating


class RideParticipantSerializer(serializers.ModelSerializer):
    passenger = UserBasicSerializer(read_only=True)

    class Meta:
        model = RideParticipant
        fields = ['id', 'ride', 'passenger', 'joined_at']
        read_only_fields = fields


class RideSerializer(serializers.ModelSerializer):
    """Serializer for Rides"""
    passenger = UserBasicSerializer(read_only=True)
    rider = RiderBasicSerializer(read_only=True)
    participant_count = serializers.SerializerMethodField()

    class Meta:
        model = Ride
        fields = ['id', 'ride_type', 'status', 'passenger', 'rider',
                  'pickup_address', 'pickup_latitude', 'pickup_longitude',
                  'destination_address', 'destination_latitude', 'destination_longitude',
                  'distance_km', 'scheduled_at', 'fare', 'vehicle_type',
                  'shared_code', 'capacity', 'participant_count',
                  'accepted_latitude', 'accepted_longitude', 'accepted_at',
                  'completed_at', 'cancelled_at', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_participant_count(self, obj):
        annotated = getattr(obj, 'participant_count', None)
        if annotated is not None:
            return annotated
        return len(obj.participants.all())


class RideDetailSerializer(RideSerializer):
    """Ride with its participant list expanded"""
    participants = RideParticipantSerializer(many=True, read_only=True)

    class Meta(RideSerializer.Meta):
        fields = RideSerializer.Meta.fields + ['participants']
        read_only_fields = fields


class PassengerRideHistorySerializer(serializers.ModelSerializer):
    """Compact ride shape for passenger history lists"""
    rider = RiderBasicSerializer(read_only=True)

    class Meta:
        model = Ride
        fields = ['id', 'ride_type', 'pickup_address', 'destination_address',
                  'rider', 'status', 'fare', 'shared_code', 'created_at']
        read_only_fields = fields


class BaseRideCreateSerializer(serializers.Serializer):
    """Fields common to single and shared ride creation"""
    pickup_address = serializers.CharField(min_length=1)
    pickup_latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90, required=False, allow_null=True)
    pickup_longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180, required=False, allow_null=True)
    destination_address = serializers.CharField(min_length=1)
    destination_latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90, required=False, allow_null=True)
    destination_longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180, required=False, allow_null=True)
    distance_km = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False, allow_null=True)
    scheduled_at = serializers.DateTimeField(required=False, allow_null=True)
    fare = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)

    def validate_vehicle_type(self, value):
        if value is None:
            return value
        capacities = vehicle_capacities()
        if value not in capacities:
            raise serializers.ValidationError(f"Must be one of: {', '.join(sorted(capacities))}")
        return value


class SingleRideCreateSerializer(BaseRideCreateSerializer):
    vehicle_type = serializers.CharField(required=False, allow_null=True)


class SharedRideCreateSerializer(BaseRideCreateSerializer):
    vehicle_type = serializers.CharField()
    capacity = serializers.IntegerField(min_value=1, max_value=MAX_CAPACITY, required=False, allow_null=True)


class JoinSharedRideSerializer(serializers.Serializer):
    code = serializers.CharField()

    def validate_code(self, value):
        code = normalize_shared_code(value)
        if not is_well_formed_shared_code(code):
            raise serializers.ValidationError(
                f"Code must be {settings.SHARED_CODE_LENGTH} letters or digits"
            )
        return code


class RatingCreateSerializer(serializers.Serializer):
    ratee_id = serializers.IntegerField()
    rating = serializers.IntegerField(min_value=1, max_value=5)


class RatingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Rating
        fields = ['id', 'ride', 'rater', 'ratee', 'rating', 'created_at']
        read_only_fields = fields
