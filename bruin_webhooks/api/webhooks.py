from typing import List
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..database import get_db

router = APIRouter()

@router.post("/", response_model=schemas.Webhook, status_code=201)
def register_webhook(webhook: schemas.WebhookCreate, db: Session = Depends(get_db)):
    return crud.create_webhook(db=db, webhook=webhook)

@router.get("/", response_model=List[schemas.Webhook])
def list_webhooks(db: Session = Depends(get_db)):
    return crud.get_webhooks(db)

@router.get("/{webhook_id}", response_model=schemas.Webhook)
def read_webhook(webhook_id: str, db: Session = Depends(get_db)):
    return crud.get_webhook(db, webhook_id=webhook_id)

@router.put("/{webhook_id}", response_model=schemas.Webhook)
def update_webhook(webhook_id: str, webhook: schemas.WebhookUpdate, db: Session = Depends(get_db)):
    return crud.update_webhook(db, webhook_id=webhook_id, webhook=webhook)

@router.post("/{webhook_id}/activate", response_model=schemas.Webhook)
def activate_webhook(webhook_id: str, db: Session = Depends(get_db)):
    return crud.set_webhook_active(db, webhook_id=webhook_id, active=True)

@router.post("/{webhook_id}/deactivate", response_model=schemas.Webhook)
def deactivate_webhook(webhook_id: str, db: Session = Depends(get_db)):
    return crud.set_webhook_active(db, webhook_id=webhook_id, active=False)

@router.delete("/{webhook_id}", status_code=204)
def delete_webhook(webhook_id: str, db: Session = Depends(get_db)):
    crud.delete_webhook(db, webhook_id=webhook_id)
    return Response(status_code=204)

@router.post("/{webhook_id}/test", response_model=schemas.WebhookLogEntry)
def test_webhook(webhook_id: str, request: Request):
    # One synchronous attempt; the caller gets success/failure right away
    return request.app.state.controller.test_delivery(webhook_id)

@router.get("/{webhook_id}/logs", response_model=List[schemas.WebhookLogEntry])
def get_webhook_logs(webhook_id: str, limit: int = 50, db: Session = Depends(get_db)):
    # Logs stay readable after their webhook is deleted
    return crud.get_webhook_logs(db, webhook_id=webhook_id, limit=limit)
