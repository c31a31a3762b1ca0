from django.urls import path

from .views import AdminUserListView, AdminRideListView, AdminStatsView

app_name = "dashboard"

urlpatterns = [
    path("users/", AdminUserListView.as_view(), name="admin-users"),
    path("rides/", AdminRideListView.as_view(), name="admin-rides"),
    path("stats/", AdminStatsView.as_view(), name="admin-stats"),
]
