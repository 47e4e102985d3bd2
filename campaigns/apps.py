from django.apps import AppConfig


class CampaignsConfig(AppConfig):
    """Django app configuration for Campaigns module."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'campaigns'
    verbose_name = 'Campaigns'
