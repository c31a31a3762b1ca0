from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication + profile endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),

    # Passenger ride APIs (create, join, cancel, history)
    path('api/passenger/', include('passengers.urls')),

    # Rider APIs (available rides, accept, complete, activity)
    path('api/rider/', include('riders.urls')),

    # Shared ride endpoints (detail, rating)
    path('api/rides/', include('rides.urls')),

    # Admin listing + stats
    path('api/admin/', include('dashboard.urls')),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
