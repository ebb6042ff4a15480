from django.contrib import admin
from technicians.models import TechnicianLocation, TechnicianProfile


@admin.register(TechnicianProfile)
class TechnicianProfileAdmin(admin.ModelAdmin):
    """Admin panel for managing Technician Profiles"""

    list_display = [
        "name",
        "service_category",
        "status",
        "is_active",
        "is_online",
        "rating",
        "registered_at",
    ]

    list_filter = [
        "service_category",
        "status",
        "is_active",
        "is_online",
    ]

    search_fields = [
        "name",
        "phone",
        "user__username",
    ]

    readonly_fields = [
        "is_online",
        "registered_at",
        "updated_at",
    ]

    ordering = ("name",)


@admin.register(TechnicianLocation)
class TechnicianLocationAdmin(admin.ModelAdmin):
    """GeoIndex records; written by location updates only"""

    list_display = ["technician_id", "geohash", "latitude", "longitude", "service_category", "updated_at"]
    list_filter = ["service_category"]
    search_fields = ["technician_id", "geohash"]
    readonly_fields = ["geohash", "updated_at"]
