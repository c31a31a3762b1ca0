# passengers/urls.py

from django.urls import path

from .views.rides import (
    PassengerCreateSingleRideView,
    PassengerCreateSharedRideView,
    PassengerJoinSharedRideView,
    PassengerCancelRideView,
    PassengerRideHistoryView,
)

app_name = "passengers"

urlpatterns = [
    # RIDE
    path("rides/single/", PassengerCreateSingleRideView.as_view(), name="create-single-ride"),
    path("rides/shared/", PassengerCreateSharedRideView.as_view(), name="create-shared-ride"),
    path("rides/join/", PassengerJoinSharedRideView.as_view(), name="join-shared-ride"),
    path("rides/<int:ride_id>/cancel/", PassengerCancelRideView.as_view(), name="cancel-ride"),

    # HISTORY
    path("rides/", PassengerRideHistoryView.as_view(), name="ride-history"),
]
