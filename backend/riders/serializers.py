from rest_framework import serializers
from django.contrib.auth import get_user_model

from riders.models import RiderProfile

User = get_user_model()


class RiderProfileSerializer(serializers.ModelSerializer):
    """
    Full rider profile serializer
    """
    name = serializers.CharField(source="user.name", read_only=True)
    phone = serializers.CharField(source="user.phone", read_only=True)

    class Meta:
        model = RiderProfile
        fields = [
            "id",
            "name",
            "phone",
            "license_number",
            "license_plate",
        ]
        read_only_fields = ["id"]

    def validate_license_plate(self, value):
        value = value.upper()
        qs = RiderProfile.objects.filter(license_plate__iexact=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("License plate already in use")
        return value


class RiderBasicSerializer(serializers.ModelSerializer):
    """
    Lite version of rider info for ride details
    (sent to passengers once their ride is accepted).
    """
    license_plate = serializers.CharField(source="rider_profile.license_plate", read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            "id",
            "name",
            "phone",
            "license_plate",
        ]


class AcceptLocationSerializer(serializers.Serializer):
    """
    Where the rider is when accepting a ride.
    """
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180)
