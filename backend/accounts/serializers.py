from rest_framework import serializers
from django.db import transaction

from common.permissions import ROLE_PASSENGER, ROLE_RIDER, ROLE_ADMIN
from riders.models import RiderProfile
from .models import User
from . import media


class UserSerializer(serializers.ModelSerializer):
    """
    Profile representation returned by `/me`, login and registration.
    Rider licence details are flattened in for riders.
    """
    profile_photo_url = serializers.SerializerMethodField(read_only=True)
    license_number = serializers.CharField(source="rider_profile.license_number", read_only=True, default=None)
    license_plate = serializers.CharField(source="rider_profile.license_plate", read_only=True, default=None)

    class Meta:
        model = User
        fields = [
            "id",
            "name",
            "email",
            "phone",
            "role",
            "gender",
            "registration_number",
            "license_number",
            "license_plate",
            "profile_photo_url",
            "date_joined",
        ]
        read_only_fields = fields

    def get_profile_photo_url(self, obj):
        return media.photo_url(obj, self.context.get("request"))


class UserBasicSerializer(serializers.ModelSerializer):
    """Lite user representation nested inside ride responses."""

    class Meta:
        model = User
        fields = ["id", "name", "phone"]


class PassengerRegisterSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1)
    email = serializers.EmailField()
    phone = serializers.CharField(min_length=7, max_length=20)
    gender = serializers.ChoiceField(choices=["male", "female"])
    registration_number = serializers.CharField(min_length=1)
    password = serializers.CharField(write_only=True, min_length=6)

    def validate_gender(self, value):
        return value.lower()

    def validate(self, data):
        if User.objects.filter(email__iexact=data["email"]).exists() or User.objects.filter(phone=data["phone"]).exists():
            raise serializers.ValidationError("Email or phone already in use")
        return data

    def create(self, validated_data):
        return User.objects.create_user(
            username=validated_data["email"].lower(),
            email=validated_data["email"].lower(),
            password=validated_data["password"],
            role=ROLE_PASSENGER,
            name=validated_data["name"],
            phone=validated_data["phone"],
            gender=validated_data["gender"],
            registration_number=validated_data["registration_number"],
        )


class RiderRegisterSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1)
    license_number = serializers.CharField(min_length=1)
    license_plate = serializers.CharField(min_length=1)
    phone = serializers.CharField(min_length=7, max_length=20)
    password = serializers.CharField(write_only=True, min_length=6)

    def validate(self, data):
        if (
            User.objects.filter(phone=data["phone"]).exists()
            or RiderProfile.objects.filter(license_plate__iexact=data["license_plate"]).exists()
        ):
            raise serializers.ValidationError("Phone or license plate already in use")
        return data

    @transaction.atomic
    def create(self, validated_data):
        user = User.objects.create_user(
            username=validated_data["phone"],
            password=validated_data["password"],
            role=ROLE_RIDER,
            name=validated_data["name"],
            phone=validated_data["phone"],
        )
        # Every rider gets a profile with the vehicle details
        RiderProfile.objects.create(
            user=user,
            license_number=validated_data["license_number"],
            license_plate=validated_data["license_plate"].upper(),
        )
        return user


class RoleLoginSerializer(serializers.Serializer):
    """
    Base login serializer. Subclasses choose which field identifies the user
    and which role may log in through them.
    """
    lookup_field = "email"
    role = None
    password = serializers.CharField(write_only=True, min_length=6)

    def get_user(self):
        """Return the matching user when the credentials are good, else None."""
        data = self.validated_data
        lookup = {f"{self.lookup_field}__iexact": data[self.lookup_field]}
        user = User.objects.filter(**lookup).first()
        if not user or user.role != self.role or not user.is_active:
            return None
        if not user.check_password(data["password"]):
            return None
        return user


class PassengerLoginSerializer(RoleLoginSerializer):
    lookup_field = "email"
    role = ROLE_PASSENGER
    email = serializers.EmailField()


class RiderLoginSerializer(RoleLoginSerializer):
    lookup_field = "phone"
    role = ROLE_RIDER
    phone = serializers.CharField(min_length=7)


class AdminLoginSerializer(RoleLoginSerializer):
    lookup_field = "email"
    role = ROLE_ADMIN
    email = serializers.EmailField()


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """Partial profile edits. Role and credentials are not editable here."""

    class Meta:
        model = User
        fields = ["name", "email", "phone"]

    def validate_email(self, value):
        if value and User.objects.filter(email__iexact=value).exclude(pk=self.instance.pk).exists():
            raise serializers.ValidationError("Email already in use")
        return value.lower() if value else value

    def validate_phone(self, value):
        if value and User.objects.filter(phone=value).exclude(pk=self.instance.pk).exists():
            raise serializers.ValidationError("Phone already in use")
        return value


class ProfilePhotoSerializer(serializers.Serializer):
    photo = serializers.ImageField()
