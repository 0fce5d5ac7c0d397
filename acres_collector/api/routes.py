"""
FastAPI routes for the collector command surface

Thin HTTP wrapper over CommandDispatcher; the collector instance lives on
app.state.
"""
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from ..collector import AcresCollector
from ..utils.logging import get_logger


logger = get_logger(__name__)
router = APIRouter(prefix="/collector", tags=["Collector"])

EVENT_TYPES = {'comp', 'crop_request', 'crop_response', 'crop_error'}


def _collector(request: Request) -> AcresCollector:
    collector = getattr(request.app.state, "collector", None)
    if collector is None:
        raise HTTPException(status_code=503, detail="Collector is not initialized")
    return collector


@router.get("/data")
async def get_data(request: Request) -> Dict[str, Any]:
    """All collected properties"""
    return await _collector(request).dispatcher.get_data()


@router.get("/status")
async def get_status(request: Request) -> Dict[str, Any]:
    """Store sizes, pending crop requests and automation state"""
    return _collector(request).status()


@router.get("/stats")
async def get_county_stats(request: Request) -> Dict[str, Any]:
    """Collected properties per target county"""
    return await _collector(request).dispatcher.county_stats()


@router.post("/export")
async def export_csv(request: Request) -> Dict[str, Any]:
    """Write the CSV export"""
    result = await _collector(request).dispatcher.export()
    if result.get('status') == 'error':
        raise HTTPException(status_code=400, detail=result.get('message'))
    return result


@router.post("/clear")
async def clear_data(request: Request) -> Dict[str, Any]:
    """Drop all collected data"""
    result = await _collector(request).dispatcher.clear()
    if result.get('status') == 'error':
        logger.error("Clear failed", message=result.get('message'))
        raise HTTPException(status_code=500, detail=result.get('message'))
    return result


@router.post("/automation/start")
async def start_automation(request: Request) -> Dict[str, Any]:
    result = await _collector(request).dispatcher.start_automation()
    if result.get('status') == 'error':
        raise HTTPException(status_code=400, detail=result.get('message'))
    return result


@router.post("/automation/stop")
async def stop_automation(request: Request) -> Dict[str, Any]:
    result = await _collector(request).dispatcher.stop_automation()
    if result.get('status') == 'error':
        raise HTTPException(status_code=400, detail=result.get('message'))
    return result


@router.get("/automation/status")
async def automation_status(request: Request) -> Dict[str, Any]:
    return await _collector(request).dispatcher.automation_status()


@router.post("/events")
async def ingest_event(request: Request, event: Dict[str, Any]) -> Dict[str, Any]:
    """One observed traffic event (comp, crop_request, crop_response, crop_error)"""
    if event.get('type') not in EVENT_TYPES:
        raise HTTPException(status_code=422, detail=f"Unknown event type: {event.get('type')}")
    result = await _collector(request).replay_event(event)
    response = {'type': event['type'], 'result': getattr(result, 'value', result)}
    reason = getattr(result, 'reason', None)
    if reason is not None:
        response['reason'] = reason.__name__
    return response


@router.post("/command")
async def command(request: Request, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Raw {"action": ...} message, answered exactly as the dispatcher answers it"""
    return await _collector(request).dispatcher.dispatch(payload)
