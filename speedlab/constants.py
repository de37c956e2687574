"""
Shared constants used across all speedlab modules.

Centralises magic numbers, phase timings, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# Test profiles (seconds per phase)
# ---------------------------------------------------------------------------

PROFILE_DURATIONS = {
    "quick": 5.0,
    "standard": 10.0,
    "extended": 20.0,
}
DEFAULT_PROFILE = "standard"

PHASES = ("ping", "download", "upload")

# ---------------------------------------------------------------------------
# Sampling cadence
# ---------------------------------------------------------------------------

SAMPLE_INTERVAL = 0.1            # 100 ms between raw samples
DISPLAY_INTERVAL = 0.3           # 300 ms between live-display updates
SMOOTHING_WINDOW = 3             # live value = mean of last N raw samples

# ---------------------------------------------------------------------------
# History retention
# ---------------------------------------------------------------------------

DEFAULT_HISTORY_LIMIT = 50
MIN_HISTORY_LIMIT = 1
MAX_HISTORY_LIMIT = 1000

HISTORY_KEY = "speedtest-history"
BASELINE_KEY = "speedtest-baseline"

# ---------------------------------------------------------------------------
# Baseline (ISP plan) defaults
# ---------------------------------------------------------------------------

DEFAULT_EXPECTED_DOWNLOAD = 300.0
DEFAULT_EXPECTED_UPLOAD = 50.0
DEFAULT_EXPECTED_PING = 15.0

# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

ANOMALY_MIN_HISTORY = 5
ANOMALY_SCAN_DEPTH = 10
ANOMALY_STD_THRESHOLD = 2
MAX_ANOMALIES = 5

PEAK_MIN_HISTORY = 3
MAX_INSIGHTS = 4

# ---------------------------------------------------------------------------
# Test servers
# ---------------------------------------------------------------------------

TEST_SERVERS = [
    {"id": "auto", "name": "Auto Select", "location": "Nearest", "region": "auto"},
    {"id": "us-east", "name": "US East", "location": "New York", "region": "NA"},
    {"id": "us-west", "name": "US West", "location": "Los Angeles", "region": "NA"},
    {"id": "eu-west", "name": "EU West", "location": "London", "region": "EU"},
    {"id": "eu-central", "name": "EU Central", "location": "Frankfurt", "region": "EU"},
    {"id": "asia-east", "name": "Asia East", "location": "Tokyo", "region": "APAC"},
    {"id": "asia-south", "name": "Asia South", "location": "Singapore", "region": "APAC"},
]
DEFAULT_SERVER = "auto"

NETWORK_TYPES = ("wifi", "ethernet", "mobile", "unknown")

DNS_PROBE_DOMAINS = ("google.com", "cloudflare.com", "amazon.com")

# ---------------------------------------------------------------------------
# Network probing (real sample sources)
# ---------------------------------------------------------------------------

CHUNK_SIZE = 256 * 1024          # 256 KB reads
DOWNLOAD_FILE_SIZE = 50_000_000  # 50 MB request size
UPLOAD_BUFFER_SIZE = 1024 * 1024 # 1 MB pre-generated random buffer
MAX_REASONABLE_SPEED = 20_000.0  # 20 Gbps -- anything above is a spike

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
}
