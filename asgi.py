"""
asgi.py -- Application assembly for GridPortal.

This is the ONLY file that imports from both api/ and web/. It joins the two
independent layers into a single ASGI app without coupling them to each other.
api/main.py knows nothing about web/; web/routes.py knows nothing about api/.

Run with:  uvicorn asgi:app --reload
           python main.py
"""

from fastapi.staticfiles import StaticFiles

from api.main import app
from core.config import ASSET_ROOT
from web.routes import router as web_router

app.include_router(web_router, tags=["Web UI"])

# Static asset directories. check_dir=False so a missing directory yields 404s
# rather than an import-time error.
for _name in ("css", "images", "html"):
    app.mount(f"/{_name}", StaticFiles(directory=ASSET_ROOT / _name, check_dir=False), name=_name)
