"""Constants for imgconv."""

from pathlib import Path

# Application constants
APP_NAME = "imgconv"

# Default paths
DEFAULT_LOG_DIR = ".logs"
DEFAULT_WORK_ROOT = ".imgconv/jobs"
DEFAULT_CONFIG_FILE = "imgconv.yaml"
DEFAULT_ARCHIVE_NAME = "converted_images.zip"
DEFAULT_PROGRESS_FILE = "progress.json"

# Config file locations (in order of priority)
CONFIG_LOCATIONS = [
    Path.cwd() / DEFAULT_CONFIG_FILE,
    Path.home() / ".config" / APP_NAME / "config.yaml",
]

# Camera RAW extensions
RAW_EXTENSIONS = frozenset(
    {
        ".cr2",
        ".cr3",
        ".nef",
        ".nrw",
        ".arw",
        ".srf",
        ".sr2",
        ".raf",
        ".orf",
        ".pef",
        ".rw2",
        ".3fr",
        ".rdc",
        ".iiq",
        ".dcr",
        ".k25",
        ".kdc",
        ".mef",
        ".mos",
        ".erf",
    }
)

HEIC_EXTENSIONS = frozenset({".heic", ".heif"})

SVG_EXTENSIONS = frozenset({".svg"})

# Raster formats Pillow reads natively
STANDARD_EXTENSIONS = frozenset(
    {
        ".jpg",
        ".jpeg",
        ".png",
        ".webp",
        ".gif",
        ".bmp",
        ".tiff",
        ".tif",
        ".avif",
    }
)

ALLOWED_EXTENSIONS = STANDARD_EXTENSIONS | HEIC_EXTENSIONS | SVG_EXTENSIONS | RAW_EXTENSIONS

# Output formats accepted in a job descriptor
# External RAW engines, in default priority order
RAW_ENGINES = ["libraw", "dcraw", "vips"]

# Encoding defaults
DEFAULT_JPEG_QUALITY = 90
DEFAULT_PNG_COMPRESS_LEVEL = 9
DEFAULT_WEBP_QUALITY = 90
DEFAULT_WEBP_METHOD = 6
DEFAULT_RAW_TIFF_QUALITY = 92
DEFAULT_HEIC_QUALITY = 90
DEFAULT_PLACEHOLDER_JPEG_QUALITY = 85

# A JPEG decoded from RAW below this size is treated as a suspect decode
DEFAULT_SMALL_RESULT_THRESHOLD = 16 * 1024

# Timeout settings (seconds)
DEFAULT_PROBE_TIMEOUT = 5
DEFAULT_CALL_TIMEOUT = 120
DEFAULT_TOOL_CACHE_TTL = 60
DEFAULT_BATCH_TIMEOUT = 300  # 5 minutes

# Concurrency defaults
DEFAULT_FILE_WORKERS = 4

# Upload limits
DEFAULT_RAW_MAX_FILES = 10
DEFAULT_RAW_MAX_FILE_SIZE = 500 * 1024 * 1024
DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024

# Placeholder canvas
DEFAULT_PLACEHOLDER_WIDTH = 1200
DEFAULT_PLACEHOLDER_HEIGHT = 800
DEFAULT_PLACEHOLDER_MESSAGE_LENGTH = 160

# Job directories older than this are swept (seconds)
DEFAULT_JOB_MAX_AGE = 15 * 60
