from django.urls import path

from .views import (
    PassengerRegisterView,
    RiderRegisterView,
    PassengerLoginView,
    RiderLoginView,
    AdminLoginView,
    RefreshTokenView,
    LogoutView,
    MeView,
    ProfilePhotoView,
)

app_name = "accounts"

urlpatterns = [
    path("passenger/register/", PassengerRegisterView.as_view(), name="passenger-register"),
    path("passenger/login/", PassengerLoginView.as_view(), name="passenger-login"),
    path("rider/register/", RiderRegisterView.as_view(), name="rider-register"),
    path("rider/login/", RiderLoginView.as_view(), name="rider-login"),
    path("admin/login/", AdminLoginView.as_view(), name="admin-login"),
    path("refresh/", RefreshTokenView.as_view(), name="token-refresh"),
    path("logout/", LogoutView.as_view(), name="logout"),

    path("me/", MeView.as_view(), name="me"),
    path("me/photo/", ProfilePhotoView.as_view(), name="profile-photo"),
]
