"""JSON-friendly views of photos, groups and session state."""

from typing import Optional

from ..grouping import compute_group_similarities
from ..models import Photo, PhotoGroup
from ..selection.store import AppState


def photo_to_dict(photo: Photo, state: AppState) -> dict:
    metadata = photo.metadata
    return {
        "id": photo.id,
        "name": photo.name,
        "path": str(photo.path),
        "size": photo.size,
        "mime_type": photo.mime_type,
        "quality": photo.quality,
        "capture_date": photo.capture_date.isoformat(),
        "width": metadata.width if metadata else None,
        "height": metadata.height if metadata else None,
        "camera": metadata.camera if metadata else None,
        "has_embedding": photo.has_embedding,
        "selected": state.is_selected(photo.id),
    }


def group_to_dict(group: PhotoGroup, state: AppState, with_similarities: bool = False) -> dict:
    data = {
        "id": group.id,
        "title": group.title,
        "date": group.date.isoformat(),
        "size": len(group.photos),
        "similarity": float(group.similarity),
        "similarity_threshold": group.similarity_threshold,
        "photos": [photo_to_dict(p, state) for p in group.photos],
    }
    if with_similarities:
        # Pairwise values show members that only matched through the anchor
        data["similarities"] = {
            f"{i}-{j}": float(sim)
            for (i, j), sim in compute_group_similarities(group).items()
        }
    return data


def build_report(state: AppState) -> dict:
    """Summary of the grouping and the keeper selection, for the CLI report."""
    return {
        "total_photos": len(state.photos),
        "selected_count": len(state.selected_photos),
        "groups": [group_to_dict(g, state, with_similarities=True) for g in state.groups],
        "unique_photos": [photo_to_dict(p, state) for p in state.unique_photos],
    }


def state_to_dict(state: AppState, extra: Optional[dict] = None) -> dict:
    """Read-only snapshot of the session state for API clients."""
    data = {
        "photos": [photo_to_dict(p, state) for p in state.photos],
        "groups": [group_to_dict(g, state) for g in state.groups],
        "unique_photos": [p.id for p in state.unique_photos],
        "selected_photos": list(state.selected_photos),
        "history_length": len(state.history),
        "current_history_index": state.current_history_index,
        "can_undo": state.can_undo,
        "can_redo": state.can_redo,
    }
    if extra:
        data.update(extra)
    return data
