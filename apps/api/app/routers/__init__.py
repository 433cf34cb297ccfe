from .routes_catalog import router as catalog_router
from .routes_profile import router as profile_router
from .routes_recommendations import router as recommend_router
from .routes_uploads import router as uploads_router

all_routers = [
    catalog_router,
    uploads_router,
    profile_router,
    recommend_router,
]
