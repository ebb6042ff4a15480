import uuid

from django.db import models

from technicians.models import SERVICE_CATEGORY_CHOICES


class JobRequest(models.Model):
    """A customer's request for a technician, dispatched by proximity."""

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('confirmed', 'Confirmed'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')

    # Owning customer (identity lives in the external auth provider)
    customer_id = models.CharField(max_length=128, blank=True)
    customer_name = models.CharField(max_length=150, blank=True)

    # Service location
    customer_latitude = models.FloatField()
    customer_longitude = models.FloatField()

    service_category = models.CharField(max_length=20, choices=SERVICE_CATEGORY_CHOICES)
    property_info = models.JSONField(default=dict)
    selected_issues = models.JSONField(default=list, blank=True)
    description = models.TextField(null=True, blank=True)

    # Written once, by the finalize step only
    technician_id = models.PositiveBigIntegerField(null=True, blank=True)
    assigned_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'job_requests'
        ordering = ['-created_at']

    def __str__(self):
        return f"JobRequest {self.id} - {self.service_category} - {self.status}"

    @property
    def is_assignable(self) -> bool:
        return self.status == 'pending' and self.technician_id is None

    def responses_map(self):
        """technicianId -> {response, timestamp} for every recorded response."""
        return {
            str(entry.technician_id): {
                'response': entry.response,
                'timestamp': entry.timestamp.isoformat() if entry.timestamp else None,
            }
            for entry in self.technician_responses.all()
        }


class TechnicianResponse(models.Model):
    """Append-only ledger of technician answers to one job request."""

    RESPONSE_CHOICES = [
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
        ('timed_out', 'Timed Out'),
    ]

    job_request = models.ForeignKey(
        JobRequest,
        on_delete=models.CASCADE,
        related_name='technician_responses'
    )
    technician_id = models.PositiveBigIntegerField()
    response = models.CharField(max_length=20, choices=RESPONSE_CHOICES)

    # Client-supplied, display only; commit order decides who wins
    timestamp = models.DateTimeField(null=True, blank=True)
    recorded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'job_technician_responses'
        ordering = ['recorded_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['job_request', 'technician_id'],
                name='unique_job_technician_response'
            )
        ]

    def __str__(self):
        return f"Job {self.job_request_id} <- Technician {self.technician_id}: {self.response}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Technician responses are append-only")
        super().save(*args, **kwargs)
