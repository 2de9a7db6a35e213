# geosaude/core/loader.py
import json
import logging
from pathlib import Path
from typing import Dict, List

from geosaude.core.cache_store import SqlCacheStore
from geosaude.core.config import CACHE_DB_URL, DATA_DIR, FACILITY_KINDS, FACILITIES_PATH
from geosaude.core.store import DataStore
from geosaude.schemas.facility import FacilityRecord
from geosaude.utils.geocode import GeocodingResolver
from geosaude.utils.providers import NominatimProvider, ViaCepProvider

logger = logging.getLogger(__name__)


def load_facilities(path: Path = FACILITIES_PATH) -> Dict[str, List[FacilityRecord]]:
    """
    Read {"ubs": [...], "ong": [...], ...} from a JSON export of the
    registry tables. Missing file -> empty sets; unknown kinds are skipped.
    """
    facilities: Dict[str, List[FacilityRecord]] = {k: [] for k in FACILITY_KINDS}
    if not path.exists():
        logger.warning(f"No facilities file at {path}; proximity queries will return nothing")
        return facilities

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    for kind, rows in raw.items():
        if kind not in facilities:
            logger.warning(f"Skipping unknown facility kind {kind!r}")
            continue
        facilities[kind] = [FacilityRecord.model_validate({**row, "kind": kind}) for row in rows]
    return facilities


def load_store() -> DataStore:
    # --- Geocoding collaborators ---
    DATA_DIR.mkdir(parents=True, exist_ok=True)  # default sqlite cache lives here
    resolver = GeocodingResolver(
        primary=NominatimProvider(),
        fallback=ViaCepProvider(),
        store=SqlCacheStore(CACHE_DB_URL),
    )

    # --- Records for proximity queries ---
    facilities = load_facilities()

    meta = {
        "facility_counts": {k: len(v) for k, v in facilities.items()},
        "cache_backend": "sql",
    }

    return DataStore(resolver=resolver, facilities=facilities, meta=meta)
