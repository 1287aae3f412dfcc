"""Custom Django admin app configuration."""

from django.contrib.admin.apps import AdminConfig


class RelayAdminConfig(AdminConfig):
    default_site = "config.admin.RelayAdminSite"
