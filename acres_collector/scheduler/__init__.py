"""Automation scheduling for acres-collector"""

from .automation import AutomationScheduler, AutomationStatus, InteractionAgent

__all__ = ['AutomationScheduler', 'AutomationStatus', 'InteractionAgent']
