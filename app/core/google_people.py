"""Google People API client for optional profile attributes (birthday, gender)."""

from dataclasses import dataclass
from datetime import UTC, date, datetime

import httpx
from structlog import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProfileExtras:
    """Optional profile attributes reported by the provider."""

    gender: str | None = None
    date_of_birth: date | None = None


def parse_people_payload(payload: dict) -> ProfileExtras:
    """
    Extract gender and birth date from a ``people/me`` response.

    Birthdays without a year, invalid dates and future dates are dropped.
    """
    date_of_birth = None
    for birthday in payload.get("birthdays") or []:
        parts = birthday.get("date") or {}
        if not parts.get("year"):
            continue
        try:
            candidate = date(parts["year"], parts.get("month") or 0, parts.get("day") or 0)
        except (TypeError, ValueError):
            continue
        if candidate <= datetime.now(UTC).date():
            date_of_birth = candidate
            break

    genders = payload.get("genders") or []
    gender = genders[0].get("value") if genders else None

    return ProfileExtras(gender=gender or None, date_of_birth=date_of_birth)


async def fetch_profile_extras(
    access_token: str,
    api_url: str,
    client: httpx.AsyncClient | None = None,
) -> ProfileExtras:
    """
    Fetch birthday and gender for the owner of a Google OAuth access token.

    Failures are logged and produce empty extras; these attributes are optional.
    """
    params = {"personFields": "birthdays,genders"}
    headers = {"Authorization": f"Bearer {access_token}"}

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=10.0) as own_client:
                response = await own_client.get(api_url, params=params, headers=headers)
        else:
            response = await client.get(api_url, params=params, headers=headers)
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("google_people_fetch_failed", error=str(e))
        return ProfileExtras()

    return parse_people_payload(payload)
