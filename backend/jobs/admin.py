"""Tells what to show in the Django admin interface for jobs app"""

from django.contrib import admin
from .models import JobRequest, TechnicianResponse


class TechnicianResponseInline(admin.TabularInline):
    model = TechnicianResponse
    extra = 0
    can_delete = False
    readonly_fields = ("technician_id", "response", "timestamp", "recorded_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(JobRequest)
class JobRequestAdmin(admin.ModelAdmin):
    """Job Request admin"""
    list_display = ['id', 'customer_id', 'service_category', 'status', 'technician_id', 'created_at', 'assigned_at']
    list_filter = ['status', 'service_category', 'created_at']
    search_fields = ['id', 'customer_id', 'customer_name']
    # Assignment only goes through the dispatch transaction
    readonly_fields = ['technician_id', 'assigned_at', 'created_at', 'updated_at']
    date_hierarchy = 'created_at'
    inlines = [TechnicianResponseInline]


@admin.register(TechnicianResponse)
class TechnicianResponseAdmin(admin.ModelAdmin):
    list_display = ("job_request", "technician_id", "response", "timestamp", "recorded_at")
    list_filter = ("response",)
    search_fields = ("job_request__id", "technician_id")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
