from django.contrib import admin
from riders.models import RiderProfile


@admin.register(RiderProfile)
class RiderProfileAdmin(admin.ModelAdmin):
    """Admin panel for managing Rider Profiles"""

    list_display = [
        "user",
        "license_number",
        "license_plate",
    ]

    search_fields = [
        "user__name",
        "user__phone",
        "license_plate",
    ]

    ordering = ("user__name",)
