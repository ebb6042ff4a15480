# technicians/urls.py

from django.urls import path

from .views import NearestTechniciansView, TechnicianLocationUpdateView

app_name = "technicians"

# Mounted at /utility/
urlpatterns = [
    path("findNearestTechnicians", NearestTechniciansView.as_view(), name="find-nearest-technicians"),
    path(
        "updateTechnicianLocation/<int:technician_id>",
        TechnicianLocationUpdateView.as_view(),
        name="update-technician-location",
    ),
]
