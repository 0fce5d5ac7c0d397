"""Configuration management for acres-collector."""
from .settings import settings, Settings, get_settings
from .counties import County, TARGET_COUNTIES, ALLOWED_FIPS_CODES, COUNTIES_BY_FIPS, county_name

__all__ = [
    'settings',
    'Settings',
    'get_settings',
    'County',
    'TARGET_COUNTIES',
    'ALLOWED_FIPS_CODES',
    'COUNTIES_BY_FIPS',
    'county_name',
]
