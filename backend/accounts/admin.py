from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin panel for custom User model"""

    list_display = [
        "username",
        "name",
        "email",
        "phone",
        "role",
        "is_active",
        "is_staff",
    ]

    list_filter = [
        "role",
        "gender",
        "is_active",
        "date_joined",
    ]

    search_fields = [
        "username",
        "name",
        "email",
        "phone",
        "registration_number",
    ]

    ordering = ("-date_joined",)

    # Extend default Django UserAdmin fieldsets
    fieldsets = BaseUserAdmin.fieldsets + (
        (
            "Campus Info",
            {
                "fields": (
                    "role",
                    "name",
                    "phone",
                    "gender",
                    "registration_number",
                    "profile_photo",
                )
            },
        ),
    )

    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        (
            "Campus Info",
            {
                "fields": (
                    "role",
                    "name",
                    "email",
                    "phone",
                )
            },
        ),
    )
