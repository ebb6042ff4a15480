import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='JobRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('customer_id', models.CharField(blank=True, max_length=128)),
                ('customer_name', models.CharField(blank=True, max_length=150)),
                ('customer_latitude', models.FloatField()),
                ('customer_longitude', models.FloatField()),
                ('service_category', models.CharField(choices=[('homes', 'Homes'), ('vehicles', 'Vehicles')], max_length=20)),
                ('property_info', models.JSONField(default=dict)),
                ('selected_issues', models.JSONField(blank=True, default=list)),
                ('description', models.TextField(blank=True, null=True)),
                ('technician_id', models.PositiveBigIntegerField(blank=True, null=True)),
                ('assigned_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'job_requests',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='TechnicianResponse',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('technician_id', models.PositiveBigIntegerField()),
                ('response', models.CharField(choices=[('accepted', 'Accepted'), ('rejected', 'Rejected'), ('timed_out', 'Timed Out')], max_length=20)),
                ('timestamp', models.DateTimeField(blank=True, null=True)),
                ('recorded_at', models.DateTimeField(auto_now_add=True)),
                ('job_request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='technician_responses', to='jobs.jobrequest')),
            ],
            options={
                'db_table': 'job_technician_responses',
                'ordering': ['recorded_at', 'id'],
                'constraints': [models.UniqueConstraint(fields=('job_request', 'technician_id'), name='unique_job_technician_response')],
            },
        ),
    ]
