"""Grouping of similar photos by embedding cosine similarity."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Sequence, Set, Tuple

from ..embedding.similarity import cosine_similarity
from ..models import Photo, PhotoGroup

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.7


@dataclass(frozen=True)
class GroupingResult:
    """Output of one grouping run over the full photo set."""

    groups: Tuple[PhotoGroup, ...]
    unique_photos: Tuple[Photo, ...]


def group_title(date: datetime) -> str:
    """Human-readable title for a group, e.g. ``"Mar 4, 2024 at 09:15"``."""
    return f"{date.strftime('%b')} {date.day}, {date.year} at {date.strftime('%H:%M')}"


def group_similar_photos(
    photos: Sequence[Photo],
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> GroupingResult:
    """
    Partition photos into similarity groups and unique photos.

    Each unprocessed photo in input order becomes an anchor, and every later
    unprocessed photo whose similarity to that anchor reaches the threshold
    joins its group. Candidates are only compared with the anchor, not with
    each other, so two members of a group can be below the threshold
    relative to one another. Results depend on input order.

    Args:
        photos: All photos in the session, in insertion order
        similarity_threshold: Minimum cosine similarity to the anchor

    Returns:
        GroupingResult with groups sorted by date (newest first) and unique
        photos sorted by capture date (newest first). Photos without an
        embedding are never compared and always end up unique. Embeddings of
        different lengths count as not similar.
    """
    embedded = [p for p in photos if p.has_embedding]
    not_embedded = [p for p in photos if not p.has_embedding]

    groups: List[PhotoGroup] = []
    unique: List[Photo] = []
    processed: Set[str] = set()

    for i, anchor in enumerate(embedded):
        if anchor.id in processed:
            continue

        members = [anchor]
        min_similarity = 1.0
        processed.add(anchor.id)

        for candidate in embedded[i + 1:]:
            if candidate.id in processed:
                continue
            if len(candidate.embedding) != len(anchor.embedding):
                # Different embedding spaces are never similar
                logger.warning(
                    f"Embedding length mismatch between {anchor.name} and {candidate.name}, not comparing"
                )
                continue
            similarity = cosine_similarity(anchor.embedding, candidate.embedding)
            if similarity >= similarity_threshold:
                members.append(candidate)
                min_similarity = min(min_similarity, similarity)
                processed.add(candidate.id)

        if len(members) > 1:
            # sorted() is stable, ties keep input order
            ranked = tuple(sorted(members, key=lambda p: p.quality, reverse=True))
            best = ranked[0]
            groups.append(PhotoGroup(
                id=f"{best.id}-group",
                photos=ranked,
                similarity=min_similarity,
                date=best.capture_date,
                title=group_title(best.capture_date),
                similarity_threshold=similarity_threshold,
            ))
        else:
            unique.append(anchor)

    unique.extend(not_embedded)

    groups.sort(key=lambda g: g.date, reverse=True)
    unique.sort(key=lambda p: p.capture_date, reverse=True)

    logger.info(
        f"Found {len(groups)} groups and {len(unique)} unique photos "
        f"from {len(photos)} photos (threshold: {similarity_threshold})"
    )
    if not_embedded:
        logger.info(f"  {len(not_embedded)} photos without embeddings kept as unique")

    return GroupingResult(groups=tuple(groups), unique_photos=tuple(unique))


def compute_group_similarities(group: PhotoGroup) -> Dict[Tuple[str, str], float]:
    """
    Compute pairwise similarities within a group.

    Useful for spotting members that joined through the anchor but sit
    below the threshold relative to each other.

    Args:
        group: Group whose members all carry embeddings

    Returns:
        Dictionary mapping (id_i, id_j) tuples to similarity scores
    """
    similarities = {}

    for i, photo_i in enumerate(group.photos):
        for photo_j in group.photos[i + 1:]:
            similarities[(photo_i.id, photo_j.id)] = cosine_similarity(
                photo_i.embedding, photo_j.embedding
            )

    return similarities
