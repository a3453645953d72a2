"""Application and pack format constants."""

USER_AGENT = "postcode-pack/1.0 (+onspd repack)"

PACK_MAGIC = b"UKPP"
PACK_VERSION = 1

# Bucket keys: first postcode character A-Z, second 0-9 then A-Z.
BUCKET_FIRST_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
BUCKET_SECOND_CHARS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
BUCKET_COUNT = len(BUCKET_FIRST_CHARS) * len(BUCKET_SECOND_CHARS)
INDEX_ENTRY_COUNT = BUCKET_COUNT + 1

QUANT_MAX = 65535
MAX_POSTCODE_GAP = 64
MIN_COORD_DELTA = -128
MAX_COORD_DELTA = 127

STAGES = (
    "fetch",
    "read",
    "sort",
    "pack",
    "index",
    "write",
)
EXIT_SUCCESS = 0
EXIT_HARD_FAIL = 20
EXIT_NOT_FOUND = 30
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "bytes_out",
    "error_code",
    "message",
)
