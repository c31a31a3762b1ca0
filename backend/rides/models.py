from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator


class Ride(models.Model):
    """A transport request created by a passenger, single occupant or shared."""

    TYPE_SINGLE = 'single'
    TYPE_SHARED = 'shared'
    TYPE_CHOICES = [
        (TYPE_SINGLE, 'Single'),
        (TYPE_SHARED, 'Shared'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_ONGOING = 'ongoing'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_ONGOING, 'Ongoing'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    ride_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    # Creator never changes; rides are never deleted
    passenger = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='created_rides'
    )

    rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='accepted_rides'
    )

    # Pickup location
    pickup_address = models.TextField()
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    # Destination
    destination_address = models.TextField()
    destination_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    destination_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    distance_km = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    scheduled_at = models.DateTimeField(null=True, blank=True)
    fare = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    vehicle_type = models.CharField(max_length=20, null=True, blank=True)

    # Shared rides only
    shared_code = models.CharField(max_length=8, unique=True, null=True, blank=True)
    capacity = models.PositiveSmallIntegerField(null=True, blank=True)

    # Where/when the rider accepted; cleared on completion or cancellation
    accepted_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    accepted_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)

    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'rides'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['ride_type', 'status'], name='rides_type_status_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(fare__gte=0), name='ride_fare_non_negative'),
            models.CheckConstraint(
                condition=(
                    models.Q(ride_type='shared', shared_code__isnull=False, capacity__gt=0)
                    | models.Q(ride_type='single', shared_code__isnull=True, capacity__isnull=True)
                ),
                name='ride_shared_fields_match_type',
            ),
        ]

    def __str__(self):
        return f"Ride #{self.id} - {self.ride_type} - {self.status}"

    @property
    def is_shared(self):
        return self.ride_type == self.TYPE_SHARED


class RideParticipant(models.Model):
    """One row per passenger on a ride, the creator included."""

    ride = models.ForeignKey(
        Ride,
        on_delete=models.CASCADE,
        related_name='participants'
    )

    passenger = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='ride_participations'
    )

    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ride_participants'
        ordering = ['joined_at']
        constraints = [
            models.UniqueConstraint(
                fields=['ride', 'passenger'],
                name='unique_ride_passenger'
            )
        ]

    def __str__(self):
        return f"Ride {self.ride_id} <- Passenger {self.passenger_id}"


class Rating(models.Model):
    """Integer score one ride member gives another after completion."""

    ride = models.ForeignKey(Ride, on_delete=models.PROTECT, related_name='ratings')
    rater = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='given_ratings'
    )
    ratee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='received_ratings'
    )
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ratings'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(rating__gte=1, rating__lte=5),
                name='rating_between_1_and_5',
            ),
        ]

    def __str__(self):
        return f"Rating {self.rating} for {self.ratee_id} on ride {self.ride_id}"
