"""
Command surface for the collector.

Commands arrive as {"action": ...} messages (from a popup, the HTTP router or
the CLI) and are answered with plain dicts. Errors the caller must see
(empty export, storage failure) come back as {"status": "error", ...}.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import structlog

from ..errors import EmptyDatasetError, PersistenceError
from ..models import PropertyRecord
from ..scheduler.automation import AutomationScheduler
from .correlation import CorrelationEngine
from .crop_resolver import CropResolver
from .export import DEFAULT_FILENAME, write_export

logger = structlog.get_logger(__name__)


class ExportSink(ABC):
    """Where an export goes once rendered."""

    @abstractmethod
    def deliver(self, records: List[PropertyRecord]) -> str:
        """
        Render and hand off the export, returning its location.

        Raises:
            EmptyDatasetError: if there are no records
        """


class FileExportSink(ExportSink):
    """Writes the CSV into a directory."""

    def __init__(self, directory: Path, filename: str = DEFAULT_FILENAME):
        self.directory = Path(directory)
        self.filename = filename

    def deliver(self, records: List[PropertyRecord]) -> str:
        return str(write_export(records, self.directory, self.filename))


class CommandDispatcher:
    """Routes external commands to the engine, resolver, exporter and automation."""

    ACTION_ALIASES = {
        'downloadCSV': 'export',
        'clearData': 'clear',
        'startAutoClick': 'startAutomation',
        'stopAutoClick': 'stopAutomation',
        'getAutoClickStatus': 'automationStatus',
    }

    def __init__(
        self,
        engine: CorrelationEngine,
        resolver: CropResolver,
        export_sink: ExportSink,
        automation: Optional[AutomationScheduler] = None
    ):
        self.engine = engine
        self.resolver = resolver
        self.export_sink = export_sink
        self.automation = automation

        self._handlers: Dict[str, Callable[[], Awaitable[Dict[str, Any]]]] = {
            'getData': self.get_data,
            'export': self.export,
            'clear': self.clear,
            'startAutomation': self.start_automation,
            'stopAutomation': self.stop_automation,
            'automationStatus': self.automation_status,
            'countyStats': self.county_stats,
        }

    async def dispatch(self, command: Mapping[str, Any]) -> Dict[str, Any]:
        """Handle one {"action": ...} message."""
        action = command.get('action')
        action = self.ACTION_ALIASES.get(action, action)
        handler = self._handlers.get(action)
        if handler is None:
            logger.warning("Unknown command", action=action)
            return {'status': 'error', 'message': f"Unknown action: {action}"}
        return await handler()

    async def get_data(self) -> Dict[str, Any]:
        return {'data': [record.model_dump() for record in self.engine.records]}

    async def export(self) -> Dict[str, Any]:
        logger.info("Starting CSV download process")
        try:
            location = self.export_sink.deliver(self.engine.records)
        except EmptyDatasetError as e:
            logger.info("No data to download")
            return {'status': 'error', 'message': str(e)}
        except OSError as e:
            logger.error("Error creating CSV export", error=str(e))
            return {'status': 'error', 'message': str(e)}

        return {'status': 'downloading', 'path': location}

    async def clear(self) -> Dict[str, Any]:
        """Reset tracker, retries and stores, then persist the empty snapshot."""
        self.resolver.clear()
        try:
            await self.engine.clear()
        except PersistenceError as e:
            logger.error("Stores cleared but snapshot not saved", error=str(e))
            return {'status': 'error', 'message': str(e)}

        logger.info("Data cleared from storage")
        return {'status': 'cleared'}

    async def start_automation(self) -> Dict[str, Any]:
        if self.automation is None:
            return {'status': 'error', 'message': "Automation is not configured"}
        await self.automation.start()
        return {'status': 'automationStarted', 'enabled': self.automation.enabled}

    async def stop_automation(self) -> Dict[str, Any]:
        if self.automation is None:
            return {'status': 'error', 'message': "Automation is not configured"}
        self.automation.stop()
        return {'status': 'automationStopped', 'enabled': self.automation.enabled}

    async def automation_status(self) -> Dict[str, Any]:
        return {'enabled': bool(self.automation and self.automation.enabled)}

    async def county_stats(self) -> Dict[str, Any]:
        return {'counties': self.engine.county_counts(), 'total': len(self.engine)}
