from pathlib import Path


CATEGORY_MAP_PATH = Path(__file__).resolve().parent / "assets" / "category_map.json"

EXPLANATION_MODEL = "gpt-4o-mini"

# Store tables (Supabase / PostgREST)
TABLE_ITEMS = "catalog_items"
TABLE_ITEM_EMBEDDINGS = "item_embeddings"
TABLE_USER_EMBEDDINGS = "user_embeddings"
TABLE_PROFILES = "behavioral_profiles"
TABLE_INTERACTIONS = "user_interactions"

# Feature encoder
TEMPO_SCALE = 200.0
DEFAULT_USER_VECTOR_VALUE = 0.5
DEFAULT_UNRATED_WEIGHT = 3.0

# Time-of-day buckets, [start, end) hours; anything else is night
MORNING_HOURS = (6, 12)
AFTERNOON_HOURS = (12, 17)
EVENING_HOURS = (17, 22)

# Behavioral pattern extraction
MIN_ENGAGED_COMPLETION = 0.5
QUALIFYING_COMPLETION = 0.7
QUALIFYING_RATING = 4.0
TOP_SLICE_CATEGORIES = 5
TOP_SLICE_SONGS = 10
TOP_CREATORS = 20
TOP_ITEMS = 30

# Recommendation surface
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50
VIDEO_PAGE_SIZE = 4  # fixed page for the video-paired flow
BEHAVIORAL_FALLBACK_CATEGORIES = 5
ENRICHMENT_TIMEOUT_S = 4.0
UPLOAD_PREVIEW_N = 5
