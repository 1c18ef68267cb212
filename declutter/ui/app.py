"""FastAPI application for reviewing similar-photo groups and picking keepers.

Exposes a read-only snapshot of the session state plus the selection
commands (toggle, group select/deselect, select/deselect all, undo, redo).
Every command returns whether the state changed together with the new
snapshot.
"""

import logging
import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from ..pipeline.report import state_to_dict
from ..pipeline.session import PhotoSession
from ..scanner.image_utils import is_supported_image
from ..scanner.scanner import discover_images

logger = logging.getLogger(__name__)


class ScanRequest(BaseModel):
    """Model for directory scan request."""
    path: str
    recursive: bool = True
    limit: Optional[int] = None


class DownloadRequest(BaseModel):
    """Model for exporting the selected photos."""
    destination: str


def create_app(session: PhotoSession, upload_dir: Path = Path("uploads")) -> FastAPI:
    """
    Create the review API around a photo session.

    Args:
        session: Session whose state is exposed and mutated
        upload_dir: Where uploaded files are stored before analysis
    """
    app = FastAPI(
        title="Photo Declutter",
        description="Review similar photo groups and choose which photos to keep",
        version="0.1.0",
    )
    app.state.session = session
    store = session.store

    def snapshot() -> dict:
        return state_to_dict(session.state, extra={
            "is_loading": session.is_loading,
            "is_preparing_embeddings": session.is_preparing_embeddings,
        })

    def command_result(changed: bool) -> dict:
        return {"changed": changed, "state": snapshot()}

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/state")
    async def get_state():
        """Get the current photos, groups, selection and history position."""
        return snapshot()

    @app.post("/api/photos")
    async def upload_photos(files: List[UploadFile] = File(...)):
        """Save uploaded images and add them to the session."""
        if not files:
            raise HTTPException(status_code=400, detail="No files provided")

        upload_dir.mkdir(parents=True, exist_ok=True)
        saved = []
        for file in files:
            name = Path(file.filename or "upload").name
            if not is_supported_image(Path(name)):
                logger.warning(f"Skipping unsupported upload: {name}")
                continue
            target = upload_dir / f"{uuid.uuid4().hex[:8]}_{name}"
            target.write_bytes(await file.read())
            saved.append(target)

        if not saved:
            raise HTTPException(status_code=400, detail="No supported images provided")

        await session.add_photos(saved)
        return {"added": len(saved), "state": snapshot()}

    @app.post("/api/scan")
    async def scan_directory(request: ScanRequest):
        """Add every supported image found in a directory."""
        directory = Path(request.path).expanduser()
        if not directory.is_dir():
            raise HTTPException(status_code=404, detail=f"Directory not found: {directory}")

        image_files = discover_images(directory, recursive=request.recursive, limit=request.limit)
        if not image_files:
            raise HTTPException(status_code=400, detail=f"No supported images in {directory}")

        await session.add_photos(image_files)
        return {"added": len(image_files), "state": snapshot()}

    @app.post("/api/photos/{photo_id}/toggle")
    def toggle_photo(photo_id: str):
        return command_result(store.toggle_select(photo_id))

    @app.post("/api/groups/{group_id}/select")
    def select_group(group_id: str):
        return command_result(store.select_all_in_group(group_id))

    @app.post("/api/groups/{group_id}/deselect")
    def deselect_group(group_id: str):
        return command_result(store.deselect_all_in_group(group_id))

    @app.post("/api/select-all")
    def select_all():
        return command_result(store.select_all())

    @app.post("/api/deselect-all")
    def deselect_all():
        return command_result(store.deselect_all())

    @app.post("/api/undo")
    def undo():
        return command_result(store.undo())

    @app.post("/api/redo")
    def redo():
        return command_result(store.redo())

    @app.post("/api/download-selected")
    def download_selected(request: DownloadRequest):
        """Copy the selected photos into a destination directory."""
        try:
            written = session.download_selected(Path(request.destination).expanduser())
        except OSError as e:
            logger.error(f"Failed to export selection: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return {"count": len(written), "files": [str(p) for p in written]}

    @app.get("/api/image/{photo_id}")
    def get_image(photo_id: str):
        """Serve the original file of a photo."""
        photo = session.state.find_photo(photo_id)
        if photo is None:
            raise HTTPException(status_code=404, detail="Photo not found")
        if not photo.path.exists():
            raise HTTPException(status_code=404, detail="Image file missing")
        return FileResponse(photo.path, media_type=photo.mime_type or None)

    return app
