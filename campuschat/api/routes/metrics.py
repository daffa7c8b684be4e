# campuschat/api/routes/metrics.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from campuschat.api.dependencies import get_state
from campuschat.core.state import AppState

router = APIRouter()


@router.get("/metrics")
async def get_metrics(state: AppState = Depends(get_state)):
    """
    Counters for the gate, the inbound router and the store.

    Example Response:
        {
            "uptime_hours": 1.5,
            "presence": {"entries": 12, "accepted": 40, "hits": 95, "misses": 3},
            "messages": {"accepted": 95, "rejected": 7, "messages_per_second": 0.02},
            "conversations": {"joined": 6, "unread_total": 14, "unread_unmuted": 9,
                              "write_failures": 0}
        }
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.started_at).total_seconds()
    router_stats = state.router.stats()

    if uptime_seconds > 0:
        messages_per_second = router_stats["accepted"] / uptime_seconds
    else:
        messages_per_second = 0

    return {
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "presence": state.gate.stats(),
        "messages": {
            **router_stats,
            "messages_per_second": round(messages_per_second, 2),
        },
        "conversations": {
            "joined": len(state.store),
            "unread_total": state.store.get_total_unread_count(),
            "unread_unmuted": state.store.get_unmuted_unread_count(),
            "write_failures": state.store.write_failures,
        },
    }
