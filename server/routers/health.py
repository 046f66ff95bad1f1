"""
Health check endpoints for deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (is the room registry wired up?)
- /metrics - Room and player counts for monitoring
"""

import json
import logging
from collections import Counter
from datetime import datetime, timezone

from fastapi import APIRouter, Response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Set during app initialization
_room_manager = None


def set_health_dependencies(room_manager=None):
    """Set dependencies for health checks."""
    global _room_manager
    _room_manager = room_manager


@router.get("/health")
async def health_check():
    """
    Basic liveness check - is the app running?

    Always 200 while the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - can the app accept websocket connections?

    Returns 503 until the room registry has been registered.
    """
    ready = _room_manager is not None
    return Response(
        content=json.dumps({
            "status": "ok" if ready else "starting",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }),
        status_code=200 if ready else 503,
        media_type="application/json",
    )


@router.get("/metrics")
async def metrics():
    """Room and player counts, broken down by phase."""
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if _room_manager is not None:
        rooms = list(_room_manager.rooms.values())
        phases = Counter(room.game.phase.value for room in rooms)
        metrics_data.update({
            "active_rooms": len(rooms),
            "total_players": sum(len(room.players) for room in rooms),
            "games_in_progress": sum(
                count for phase, count in phases.items() if phase not in ("LOBBY", "ENDED")
            ),
            "rooms_by_phase": dict(phases),
        })

    return metrics_data
