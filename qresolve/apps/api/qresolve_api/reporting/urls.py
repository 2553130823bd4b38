"""Public report URL contract.

    <base>/report/<asset_id>?name=<name>&location=<location>&orgId=<org_id>

The query string only carries display hints for the page shown before the
asset is fetched. Nothing read from it is ever written.
"""

from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import quote, urlencode

from qresolve_api.entities import Asset, PublicAsset

DEFAULT_ASSET_NAME = "Unknown Asset"
DEFAULT_LOCATION = "Unknown Location"


@dataclass(frozen=True)
class ReportHints:
    name: str
    location: str
    org_id: str


def generate_report_url(base_url: str, asset: "Asset | PublicAsset") -> str:
    params = urlencode(
        {
            "name": asset.name,
            "location": asset.location or "",
            "orgId": asset.org_id or "",
        }
    )
    return f"{base_url.rstrip('/')}/report/{quote(asset.id, safe='')}?{params}"


def parse_report_hints(query: Mapping[str, Optional[str]]) -> ReportHints:
    """Read display hints from report URL query parameters (empty -> default)."""
    return ReportHints(
        name=query.get("name") or DEFAULT_ASSET_NAME,
        location=query.get("location") or DEFAULT_LOCATION,
        org_id=query.get("orgId") or "",
    )
