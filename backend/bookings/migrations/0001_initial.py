import bookings.models
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BookingRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('car_type', models.CharField(max_length=100)),
                ('start_date', models.DateField(blank=True, null=True)),
                ('end_date', models.DateField(blank=True, null=True)),
                ('budget', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('location', models.CharField(max_length=255)),
                ('destination', models.CharField(blank=True, max_length=255)),
                ('passengers', models.CharField(choices=[('1-4', '1-4'), ('5-7', '5-7'), ('8-10', '8-10'), ('10+', '10+')], default='1-4', max_length=5)),
                ('trip_type', models.CharField(choices=[('quick_drop', 'Quick Drop Within City'), ('airport', 'Airport Pickup/Drop-off'), ('event', 'Wedding/Event'), ('monthly', 'Monthly Rental'), ('tourism', 'Tourism/Sightseeing'), ('custom', 'Custom Trip')], default='quick_drop', max_length=20)),
                ('description', models.TextField(blank=True)),
                ('negotiable', models.BooleanField(default=True)),
                ('urgent', models.BooleanField(default=False)),
                ('status', models.CharField(choices=[('active', 'Active'), ('fulfilled', 'Fulfilled'), ('expired', 'Expired')], default='active', max_length=20)),
                ('views', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('expires_at', models.DateTimeField(default=bookings.models._default_expiry)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='booking_requests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'booking_requests',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['status', 'expires_at'], name='booking_req_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='Offer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('car_make', models.CharField(max_length=100)),
                ('has_ac', models.BooleanField(default=True)),
                ('price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('message', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('rejected', 'Rejected')], default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('driver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='booking_offers', to=settings.AUTH_USER_MODEL)),
                ('request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offers', to='bookings.bookingrequest')),
            ],
            options={
                'db_table': 'booking_offers',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.AddConstraint(
            model_name='offer',
            constraint=models.UniqueConstraint(fields=('request', 'driver'), name='unique_offer_per_driver'),
        ),
    ]
