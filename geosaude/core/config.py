# geosaude/core/config.py
import os
from pathlib import Path

# Check if running in Cloud Run
IS_CLOUD = os.getenv("K_SERVICE") is not None

if IS_CLOUD:
    # Paths in the container
    ROOT_DIR = Path("/app")
else:
    # Local development paths
    ROOT_DIR = Path(__file__).resolve().parents[2]

DATA_DIR = ROOT_DIR / "data"

FACILITIES_PATH = Path(os.getenv("FACILITIES_PATH", DATA_DIR / "facilities.json"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Persistent geocoding cache
CACHE_DB_URL = os.getenv("CACHE_DB_URL", f"sqlite+aiosqlite:///{DATA_DIR / 'geocoding_cache.db'}")
GEOCODER_CACHE_MAX_AGE_DAYS = int(os.getenv("GEOCODER_CACHE_MAX_AGE_DAYS", 30))

# Geocoder settings
# Nominatim policy asks for an identifying UA with contact info
GEOCODER_USER_AGENT = os.getenv(
    "GEOCODER_USER_AGENT", "Georeferenciamento-Saude-DF/1.0 (https://geosaude.replit.app)"
)
GEOCODER_DOMAIN = os.getenv("GEOCODER_DOMAIN", "nominatim.openstreetmap.org")
GEOCODER_SCHEME = "https"
GEOCODER_COUNTRY = "Brasil"
GEOCODER_COUNTRY_CODE = "br"
GEOCODER_MIN_INTERVAL_SEC = float(os.getenv("GEOCODER_MIN_INTERVAL_SEC", 1.1))
GEOCODER_PRIMARY_TIMEOUT_SEC = 8
GEOCODER_FALLBACK_TIMEOUT_SEC = 5
GEOCODER_CACHE_TTL_SEC = 24 * 60 * 60
GEOCODER_CACHE_SIZE = 10000

# Batch mode
GEOCODER_BATCH_SIZE = 10
GEOCODER_BATCH_STAGGER_SEC = 0.2

# Fallback CEP lookup
VIACEP_URL = os.getenv("VIACEP_URL", "https://viacep.com.br/ws/{cep}/json/")

# Proximity queries
DEFAULT_RADIUS_KM = 5.0
FACILITY_KINDS = ["ubs", "ong", "equipamento", "paciente"]
