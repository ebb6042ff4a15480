from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Dispatch endpoints (/jobs/, /jobRequests/) and technician answers (/technicians/)
    path('', include('jobs.urls')),

    # Raw search and location ingestion (at /utility/)
    path('utility/', include('technicians.urls')),
]
