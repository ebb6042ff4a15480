from django.db import models
from django.utils import timezone
from django.conf import settings

User = settings.AUTH_USER_MODEL

SERVICE_CATEGORY_CHOICES = [
    ('homes', 'Homes'),
    ('vehicles', 'Vehicles'),
]
SERVICE_CATEGORIES = [value for value, _ in SERVICE_CATEGORY_CHOICES]


class TechnicianProfile(models.Model):
    """Technician details, approval state and availability"""
    STATUS_CHOICES = [
        ('pending', 'Pending Review'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='technician_profile'
    )

    name = models.CharField(max_length=150)
    phone = models.CharField(max_length=20, blank=True)
    service_category = models.CharField(max_length=20, choices=SERVICE_CATEGORY_CHOICES)
    specializations = models.JSONField(default=list, blank=True)
    service_radius = models.PositiveIntegerField(default=15)  # km

    # Approval workflow: only approved + active technicians count as eligible
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    is_active = models.BooleanField(default=False)

    # Set while the technician holds an open WebSocket (push endpoint)
    is_online = models.BooleanField(default=False)

    rating = models.DecimalField(max_digits=3, decimal_places=2, default=0)
    total_jobs = models.PositiveIntegerField(default=0)

    registered_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'technician_profiles'

    def __str__(self):
        return f"{self.name} - {self.service_category} ({self.status})"

    @property
    def is_eligible(self) -> bool:
        return self.status == 'approved' and self.is_active


class TechnicianLocation(models.Model):
    """
    GeoIndex record: one row per technician, overwritten wholesale on every
    location update. Keyed by technician id without a foreign key so the
    record can outlive the technician profile.
    """
    technician_id = models.PositiveBigIntegerField(primary_key=True)
    geohash = models.CharField(max_length=22, db_index=True)
    latitude = models.FloatField()
    longitude = models.FloatField()
    service_category = models.CharField(max_length=20, choices=SERVICE_CATEGORY_CHOICES)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'technician_locations'
        ordering = ['geohash']

    def __str__(self):
        return f"Technician {self.technician_id} @ {self.geohash}"
