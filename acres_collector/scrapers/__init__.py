# HTTP clients for acres-collector

from .acres_client import AcresClient, is_comp_url, is_crop_stats_url

__all__ = [
    'AcresClient',
    'is_comp_url',
    'is_crop_stats_url',
]
