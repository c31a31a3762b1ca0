from django.db import models
from django.contrib.auth.models import AbstractUser

from common.permissions import ROLE_PASSENGER, ROLE_RIDER, ROLE_ADMIN


class User(AbstractUser):
    """Extended user model with role selection"""
    ROLE_CHOICES = [
        (ROLE_PASSENGER, 'Passenger'),
        (ROLE_RIDER, 'Rider'),
        (ROLE_ADMIN, 'Admin'),
    ]

    GENDER_CHOICES = [
        ('male', 'Male'),
        ('female', 'Female'),
    ]

    # Role & basic info
    role = models.CharField(max_length=10, choices=ROLE_CHOICES)
    name = models.CharField(max_length=150)
    email = models.EmailField(unique=True, null=True, blank=True)
    phone = models.CharField(max_length=20, unique=True, null=True, blank=True)

    # Passenger details
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, null=True, blank=True)
    registration_number = models.CharField(max_length=50, null=True, blank=True)

    profile_photo = models.ImageField(upload_to='profile_photos/', null=True, blank=True)

    class Meta:
        db_table = 'users'
        ordering = ['-date_joined']

    def __str__(self):
        return f"{self.name or self.username} ({self.get_role_display()})"

    def save(self, *args, **kwargs):
        # Blank contact fields must be NULL, not '', to stay clear of the unique indexes
        if not self.email:
            self.email = None
        if not self.phone:
            self.phone = None
        super().save(*args, **kwargs)
