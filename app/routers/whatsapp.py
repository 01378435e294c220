from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.user_service import UserService

router = APIRouter(prefix="/api/v1/whatsapp", tags=["whatsapp"])


@router.post("/webhook")
def handle_webhook(body: dict, db: Session = Depends(get_db)):
    """Gupshup inbound event: mark the sender as opted in."""
    payload = body.get("payload")
    sender = payload.get("sender") if isinstance(payload, dict) else None
    phone = sender.get("phone") if isinstance(sender, dict) else None

    if not phone:
        raise HTTPException(status_code=400, detail="No phone found")

    UserService.mark_opted_in(db, str(phone))
    return {"status": "ok"}
