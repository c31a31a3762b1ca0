from django.urls import path
from .views import (
    RiderProfileView,
    AvailableSingleRidesView,
    AvailableSharedRidesView,
    AcceptRideView,
    CompleteRideView,
    RiderCurrentRideView,
    RiderRideHistoryView,
)

app_name = "riders"

urlpatterns = [
    path("profile/", RiderProfileView.as_view(), name="rider-profile"),
    path("rides/available/single/", AvailableSingleRidesView.as_view(), name="rider-available-single"),
    path("rides/available/shared/", AvailableSharedRidesView.as_view(), name="rider-available-shared"),
    path("rides/<int:ride_id>/accept/", AcceptRideView.as_view(), name="rider-accept-ride"),
    path("rides/<int:ride_id>/complete/", CompleteRideView.as_view(), name="rider-complete-ride"),
    path("current-ride/", RiderCurrentRideView.as_view(), name="rider-current-ride"),
    path("history/", RiderRideHistoryView.as_view(), name="rider-history"),
]
