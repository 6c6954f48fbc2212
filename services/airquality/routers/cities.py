"""
City endpoints.

  GET    /api/cities                     paginated, filtered listing
  GET    /api/countries                  supported countries
  GET    /api/cities/invalid             reputation entries (blocked by default)
  GET    /api/cities/{city}/history      last 7 days of recorded values
  POST   /api/cities/{city}/invalid      report a city as bad data
  DELETE /api/cities/{city}/invalid      admin override, forget all reports

All responses use the {success, data, requestId} envelope. Catalog errors
are mapped to status codes by the handlers in main.py.
"""

from typing import Optional

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from services.airquality.records import CityRecord
from services.airquality.reputation.store import ReputationEntry

router = APIRouter(prefix="/api", tags=["cities"])


class FlagRequest(BaseModel):
    countryCode: str = Field(..., min_length=2, max_length=60)
    reason: Optional[str] = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def city_to_dict(record: CityRecord) -> dict:
    data = {
        "name": record.canonical_name,
        "country": record.country,
        "pollution": record.pollution_value,
        "aqiLevel": record.aqi_level,
        "description": record.description,
        "source": record.source.value,
    }
    if record.canonical_name != record.raw_name:
        data["originalName"] = record.raw_name
    if record.parameter:
        data["parameter"] = record.parameter
    if record.coordinates:
        data["coordinates"] = {
            "latitude": record.coordinates.latitude,
            "longitude": record.coordinates.longitude,
        }
    return data


def entry_to_dict(entry: ReputationEntry) -> dict:
    return {
        "cityName": entry.city_name,
        "countryCode": entry.country_code,
        "invalidCount": entry.invalid_count,
        "isBlocked": entry.is_blocked,
        "firstMarkedAt": entry.first_marked_at.isoformat() if entry.first_marked_at else None,
        "lastMarkedAt": entry.last_marked_at.isoformat() if entry.last_marked_at else None,
    }


def _envelope(request: Request, data: dict) -> dict:
    return {"success": True, "data": data, "requestId": request.state.request_id}


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/cities")
async def list_cities(
    request: Request,
    country: str = Query("PL", max_length=60, description="Country code or name"),
    page: int = Query(1, description="1-based page number"),
    limit: Optional[int] = Query(None, description="Page size, capped server-side"),
    search: Optional[str] = Query(None, max_length=100, description="Name or country filter"),
    includeBlocked: bool = Query(False, description="Include cities reported 3+ times"),
) -> dict:
    catalog = request.app.state.catalog
    listing = await catalog.list_cities(
        country,
        page=page,
        page_size=limit,
        search=search,
        include_blocked=includeBlocked,
    )
    result = listing.page
    return _envelope(request, {
        "cities": [city_to_dict(r) for r in result.items],
        "pagination": {
            "page": result.page,
            "limit": result.page_size,
            "totalCount": result.total_count,
            "totalPages": result.total_pages,
            "hasNext": result.has_next,
        },
        "country": listing.country,
        "countryName": catalog.country_name(listing.country),
        "source": listing.source.value if listing.source else None,
        "search": search or None,
    })


@router.get("/countries")
async def list_countries(request: Request) -> dict:
    return _envelope(request, {"countries": request.app.state.catalog.list_countries()})


# Registered before /cities/{city}/... so "invalid" is never read as a city name
@router.get("/cities/invalid")
async def list_invalid_cities(
    request: Request,
    country: Optional[str] = Query(None, max_length=60),
    blocked: bool = Query(True, description="Only entries at or above the block threshold"),
) -> dict:
    entries = await request.app.state.catalog.list_flagged(country, blocked_only=blocked)
    return _envelope(request, {
        "cities": [entry_to_dict(e) for e in entries],
        "count": len(entries),
        "blockedOnly": blocked,
    })


@router.get("/cities/{city}/history")
async def city_history(
    request: Request,
    city: str,
    country: str = Query(..., max_length=60),
) -> dict:
    points = await request.app.state.catalog.city_history(city, country)
    return _envelope(request, {
        "city": city,
        "history": [{"date": p.date.isoformat(), "aqiValue": p.aqi_value} for p in points],
    })


@router.post("/cities/{city}/invalid")
async def flag_city(request: Request, city: str, body: FlagRequest) -> dict:
    result = await request.app.state.catalog.flag_city(city, body.countryCode)
    return _envelope(request, {
        "cityName": city.strip(),
        "countryCode": body.countryCode.strip().upper(),
        "invalidCount": result.invalid_count,
        "isBlocked": result.is_blocked,
    })


@router.delete("/cities/{city}/invalid")
async def unflag_city(
    request: Request,
    city: str,
    country: str = Query(..., max_length=60),
) -> dict:
    result = await request.app.state.catalog.unflag_city(city, country)
    return _envelope(request, {"cityName": city.strip(), "removed": result.removed})
