# app/routers/geocode.py
"""Address ⇄ coordinates lookups for the request form's location picker."""

from fastapi import APIRouter, HTTPException, Query
from app.services import geocoding_service

router = APIRouter(prefix="/geocode")


@router.get("/search", summary="Resolve an address to coordinates")
def search(q: str = Query(min_length=1)):
    coords = geocoding_service.resolve_address(q)
    if coords is None:
        raise HTTPException(status_code=404, detail=f"No match for '{q}'")
    return {"query": q, "latitude": coords.latitude, "longitude": coords.longitude}


@router.get("/reverse", summary="Resolve coordinates to an address")
def reverse(lat: float = Query(ge=-90, le=90), lon: float = Query(ge=-180, le=180)):
    address = geocoding_service.reverse_geocode(lat, lon)
    if address is None:
        raise HTTPException(status_code=404, detail="No address found for these coordinates")
    return {"latitude": lat, "longitude": lon, "address": address}
