"""Settings access for the Campaigns module."""
from django.conf import settings

from campaigns.module import SETTINGS


def get_setting(name: str):
    """
    Read a module setting.

    Values from the ``CAMPAIGNS`` dict in Django settings win over the
    defaults declared in ``campaigns.module.SETTINGS``.
    """
    if name not in SETTINGS:
        raise KeyError(f"Unknown campaigns setting: {name}")
    overrides = getattr(settings, 'CAMPAIGNS', None) or {}
    return overrides.get(name, SETTINGS[name])
