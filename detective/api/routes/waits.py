"""Wait resource decoding routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from detective.api.dependencies import AppState, get_state
from detective.api.schemas import DecodeRequest
from detective.waits.models import DecodedResource

router = APIRouter(prefix="/api/waits", tags=["waits"])


@router.get("/decode", response_model=DecodedResource)
def decode_wait_resource(
    resource: str = Query(default="", max_length=256), state: AppState = Depends(get_state)
):
    """Decode one wait resource, e.g. ``KEY: 5:72057594038321152 (8194443284a0)``.

    Decoding failures are reported in ``error_message`` with a 200 status.
    """
    return state.decoder.decode(resource)


@router.post("/decode", response_model=list[DecodedResource])
def decode_wait_resources(body: DecodeRequest, state: AppState = Depends(get_state)):
    """Decode a batch of wait resources; one bad entry does not fail the rest."""
    return state.decoder.decode_many(body.wait_resources)
