from django.db import models
from django.conf import settings

User = settings.AUTH_USER_MODEL


class RiderProfile(models.Model):
    """Rider licence and vehicle details"""

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='rider_profile')

    # Vehicle details
    license_number = models.CharField(max_length=50)
    license_plate = models.CharField(max_length=20, unique=True)

    class Meta:
        db_table = 'rider_profiles'

    def __str__(self):
        return f"{self.user.name} - {self.license_plate}"
