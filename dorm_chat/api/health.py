from fastapi import APIRouter, Depends

from dorm_chat.api.dependencies import get_gateway
from dorm_chat.utils.time_utils import utcnow
from dorm_chat.websockets.gateway import ChatGateway

router = APIRouter()


@router.get("/health")
async def health_check(gateway: ChatGateway = Depends(get_gateway)):
    """Application health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": utcnow(),
        "realtime": {
            "rooms": len(gateway.registry),
            "admins_online": len(gateway.admin_channel),
            "pending_writes": gateway.persister.pending,
        },
        "service": "dorm-chat"
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes readiness probe endpoint"""
    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness probe endpoint"""
    return {"status": "alive", "timestamp": utcnow()}
