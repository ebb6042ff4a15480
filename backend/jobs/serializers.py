import math

from rest_framework import serializers

from technicians.models import SERVICE_CATEGORY_CHOICES
from .models import JobRequest


class CustomerLocationSerializer(serializers.Serializer):
    """
    Validates the customer's service location.

    Expected body:
    {
        "latitude": <float>,
        "longitude": <float>
    }
    """
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)

    def validate(self, attrs):
        if not all(math.isfinite(attrs[key]) for key in ("latitude", "longitude")):
            raise serializers.ValidationError("Coordinates must be finite numbers.")
        return attrs


class JobRequestCreateSerializer(serializers.Serializer):
    """
    Validates an incoming job request before anything is persisted.
    """
    customerLocation = CustomerLocationSerializer()
    serviceCategory = serializers.ChoiceField(choices=SERVICE_CATEGORY_CHOICES)
    propertyInfo = serializers.DictField()
    selectedIssues = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )
    customerId = serializers.CharField(required=False, allow_blank=True, max_length=128)
    customerName = serializers.CharField(required=False, allow_blank=True, max_length=150)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def create(self, validated_data):
        location = validated_data["customerLocation"]
        return JobRequest.objects.create(
            status="pending",
            technician_id=None,
            customer_id=validated_data.get("customerId", ""),
            customer_name=validated_data.get("customerName", ""),
            customer_latitude=location["latitude"],
            customer_longitude=location["longitude"],
            service_category=validated_data["serviceCategory"],
            property_info=validated_data["propertyInfo"],
            selected_issues=validated_data.get("selectedIssues", []),
            description=validated_data.get("description"),
        )


class JobRequestSerializer(serializers.ModelSerializer):
    """
    Job request as returned to API clients.
    """
    jobId = serializers.UUIDField(source="id", read_only=True)
    customerId = serializers.CharField(source="customer_id", read_only=True)
    customerLocation = serializers.SerializerMethodField()
    serviceCategory = serializers.CharField(source="service_category", read_only=True)
    propertyInfo = serializers.JSONField(source="property_info", read_only=True)
    selectedIssues = serializers.JSONField(source="selected_issues", read_only=True)
    technicianId = serializers.IntegerField(source="technician_id", read_only=True)
    technicianResponses = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = JobRequest
        fields = [
            "jobId", "status", "customerId", "customerLocation", "serviceCategory",
            "propertyInfo", "selectedIssues", "description", "technicianId",
            "technicianResponses", "createdAt", "updatedAt",
        ]
        read_only_fields = fields

    def get_customerLocation(self, obj):
        return {"latitude": obj.customer_latitude, "longitude": obj.customer_longitude}

    def get_technicianResponses(self, obj):
        return obj.responses_map()


class JobResponseSerializer(serializers.Serializer):
    """
    A technician's answer to a job request.

    Expected body:
    {
        "jobId": "<uuid>",
        "technicianId": <int>,
        "response": "accepted" | "rejected",
        "timestamp": "<iso-8601>"   (optional, display only)
    }
    """
    jobId = serializers.CharField()
    technicianId = serializers.IntegerField(min_value=1)
    response = serializers.ChoiceField(choices=["accepted", "rejected"])
    timestamp = serializers.DateTimeField(required=False, allow_null=True)
