# config.py
import os


def _env_bool(name, default):
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "tourist_safety_db")

# Anomaly Detection Thresholds
INACTIVITY_THRESHOLD_MINUTES = float(os.getenv("INACTIVITY_THRESHOLD_MINUTES", 30))
DEVIATION_THRESHOLD_KM = float(os.getenv("DEVIATION_THRESHOLD_KM", 5))
ALTITUDE_DROP_THRESHOLD_METERS = float(os.getenv("ALTITUDE_DROP_THRESHOLD_METERS", 100))
ALTITUDE_DROP_WINDOW_MINUTES = float(os.getenv("ALTITUDE_DROP_WINDOW_MINUTES", 2))
SPEED_THRESHOLD_KMH = float(os.getenv("SPEED_THRESHOLD_KMH", 120))

# Geofencing
NEARBY_ZONE_RADIUS_METERS = float(os.getenv("NEARBY_ZONE_RADIUS_METERS", 10000))  # 10km
NEARBY_ZONE_LIMIT = int(os.getenv("NEARBY_ZONE_LIMIT", 5))

# Clustering Parameters
CLUSTER_RADIUS_METERS = float(os.getenv("CLUSTER_RADIUS_METERS", 5000))  # 5km heat-map cells

# History windows
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", 50))
ACTIVE_TOURIST_WINDOW_MINUTES = int(os.getenv("ACTIVE_TOURIST_WINDOW_MINUTES", 60))
LOW_SCORE_ALERT_THRESHOLD = int(os.getenv("LOW_SCORE_ALERT_THRESHOLD", 50))

# Scheduler
SCORE_RECOMPUTE_INTERVAL_MINUTES = int(os.getenv("SCORE_RECOMPUTE_INTERVAL_MINUTES", 15))
# Each sweep deducts every active anomaly again from the stored score, so
# scores only fall while the job runs. Opt in explicitly.
ENABLE_SCHEDULER = _env_bool("ENABLE_SCHEDULER", False)

# API Configuration
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", 8000))

# Logging
DEBUG_MODE = _env_bool("DEBUG_MODE", False)
LOG_LEVEL = "DEBUG" if DEBUG_MODE else os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
