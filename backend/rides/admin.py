"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import Ride, RideParticipant, Rating


class RideParticipantInline(admin.TabularInline):
    model = RideParticipant
    extra = 0
    readonly_fields = ("passenger", "joined_at")


@admin.register(Ride)
class RideAdmin(admin.ModelAdmin):
    """Ride admin"""
    list_display = ['id', 'ride_type', 'passenger', 'rider', 'status', 'fare', 'shared_code', 'capacity', 'created_at']
    list_filter = ['ride_type', 'status', 'vehicle_type', 'created_at']
    search_fields = ['passenger__name', 'rider__name', 'pickup_address', 'destination_address', 'shared_code']
    readonly_fields = ['shared_code', 'created_at', 'updated_at', 'accepted_at', 'completed_at', 'cancelled_at']
    date_hierarchy = 'created_at'
    inlines = [RideParticipantInline]


@admin.register(Rating)
class RatingAdmin(admin.ModelAdmin):
    list_display = ("ride", "rater", "ratee", "rating", "created_at")
    list_filter = ("rating",)
    search_fields = ("ride__id", "rater__name", "ratee__name")
