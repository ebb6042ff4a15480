import math

from rest_framework import serializers

from .models import SERVICE_CATEGORY_CHOICES, TechnicianProfile


class TechnicianProfileSerializer(serializers.ModelSerializer):
    """
    Technician profile as returned with dispatch results.
    """
    serviceCategory = serializers.CharField(source="service_category", read_only=True)
    serviceRadius = serializers.IntegerField(source="service_radius", read_only=True)
    isActive = serializers.BooleanField(source="is_active", read_only=True)
    totalJobs = serializers.IntegerField(source="total_jobs", read_only=True)
    rating = serializers.FloatField(read_only=True)

    class Meta:
        model = TechnicianProfile
        fields = [
            "id",
            "name",
            "phone",
            "serviceCategory",
            "specializations",
            "serviceRadius",
            "status",
            "isActive",
            "rating",
            "totalJobs",
        ]
        read_only_fields = fields


class _CoordinateSerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)

    def validate(self, attrs):
        if not (math.isfinite(attrs["lat"]) and math.isfinite(attrs["lng"])):
            raise serializers.ValidationError("lat and lng must be finite numbers.")
        return attrs


class LocationUpdateSerializer(_CoordinateSerializer):
    """
    Technician location update.

    Expected body:
    {
        "lat": <float>,
        "lng": <float>,
        "serviceCategory": "homes" | "vehicles"
    }
    """
    serviceCategory = serializers.ChoiceField(choices=SERVICE_CATEGORY_CHOICES)


class NearbySearchSerializer(_CoordinateSerializer):
    """
    Raw proximity search around a point.

    Expected body:
    {
        "lat": <float>,
        "lng": <float>,
        "radiusInM": <float>   (optional, defaults to the dispatch radius)
    }
    """
    radiusInM = serializers.FloatField(required=False)

    def validate_radiusInM(self, value):
        if not math.isfinite(value) or value <= 0:
            raise serializers.ValidationError("radiusInM must be a positive number.")
        return value
