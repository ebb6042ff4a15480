# jobs/urls.py

from django.urls import path

from .views import (
    FindNearestTechnicianView,
    JobAcceptOrRejectView,
    NegotiatedDispatchView,
)

app_name = "jobs"

urlpatterns = [
    # DISPATCH
    path("jobs/findNearestTechnician", NegotiatedDispatchView.as_view(), name="negotiated-dispatch"),
    path("jobRequests/findNearestTechnician", FindNearestTechnicianView.as_view(), name="find-nearest-technician"),

    # RESPONSES
    path("technicians/jobAcceptOrReject", JobAcceptOrRejectView.as_view(), name="job-accept-or-reject"),
]
