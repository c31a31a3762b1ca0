from django.urls import path

from .views import RideDetailView, RateRideView

app_name = 'rides'

urlpatterns = [
    path('<int:ride_id>/', RideDetailView.as_view(), name='ride-detail'),
    path('<int:ride_id>/rate/', RateRideView.as_view(), name='rate-ride'),
]
