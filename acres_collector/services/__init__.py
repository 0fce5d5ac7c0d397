"""Core services: admission, stores, correlation, crop resolution, export, commands."""

from .admission import admit
from .correlation import CorrelationEngine, IngestOutcome
from .crop_resolver import (
    BackoffPolicy,
    CropFetcher,
    CropFetchFailed,
    CropFetchSucceeded,
    CropRequestState,
    CropResolver,
    ResolveOutcome,
    parse_crop_response,
)
from .dispatcher import CommandDispatcher, ExportSink, FileExportSink
from .export import EXPORT_HEADERS, export_csv, write_export
from .persistence import JsonFileGateway, MemoryGateway, RedisGateway, SnapshotGateway, create_gateway
from .request_tracker import CropRequestTracker, PendingCropRequest
from .stores import CropProfileStore, PropertyStore, within_tolerance

__all__ = [
    'admit',
    'CorrelationEngine',
    'IngestOutcome',
    'BackoffPolicy',
    'CropFetcher',
    'CropFetchFailed',
    'CropFetchSucceeded',
    'CropRequestState',
    'CropResolver',
    'ResolveOutcome',
    'parse_crop_response',
    'CommandDispatcher',
    'ExportSink',
    'FileExportSink',
    'EXPORT_HEADERS',
    'export_csv',
    'write_export',
    'JsonFileGateway',
    'MemoryGateway',
    'RedisGateway',
    'SnapshotGateway',
    'create_gateway',
    'CropRequestTracker',
    'PendingCropRequest',
    'CropProfileStore',
    'PropertyStore',
    'within_tolerance',
]
