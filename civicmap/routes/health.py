from fastapi import APIRouter

from civicmap.timeutil import utcnow

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """Liveness probe"""
    return {"status": "ok", "timestamp": utcnow().isoformat()}
