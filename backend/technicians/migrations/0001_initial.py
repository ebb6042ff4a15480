import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='TechnicianLocation',
            fields=[
                ('technician_id', models.PositiveBigIntegerField(primary_key=True, serialize=False)),
                ('geohash', models.CharField(db_index=True, max_length=22)),
                ('latitude', models.FloatField()),
                ('longitude', models.FloatField()),
                ('service_category', models.CharField(choices=[('homes', 'Homes'), ('vehicles', 'Vehicles')], max_length=20)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'db_table': 'technician_locations',
                'ordering': ['geohash'],
            },
        ),
        migrations.CreateModel(
            name='TechnicianProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=150)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('service_category', models.CharField(choices=[('homes', 'Homes'), ('vehicles', 'Vehicles')], max_length=20)),
                ('specializations', models.JSONField(blank=True, default=list)),
                ('service_radius', models.PositiveIntegerField(default=15)),
                ('status', models.CharField(choices=[('pending', 'Pending Review'), ('approved', 'Approved'), ('rejected', 'Rejected')], default='pending', max_length=20)),
                ('is_active', models.BooleanField(default=False)),
                ('is_online', models.BooleanField(default=False)),
                ('rating', models.DecimalField(decimal_places=2, default=0, max_digits=3)),
                ('total_jobs', models.PositiveIntegerField(default=0)),
                ('registered_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='technician_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'technician_profiles',
            },
        ),
    ]
