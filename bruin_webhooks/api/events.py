from fastapi import APIRouter, Request

from .. import schemas

router = APIRouter()

@router.post("/", response_model=schemas.EventAccepted, status_code=202)
def ingest_event(event: schemas.DomainEvent, request: Request):
    # Fire-and-forget: deliveries run on the dispatcher's pool
    matched = request.app.state.dispatcher.on_event(event)
    return {"message": "Event accepted for delivery", "matched": matched}
