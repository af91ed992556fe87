"""
Online speaker clustering for phrase embeddings.

- Each phrase embedding is compared (cosine) with every speaker centroid, enrolled or discovered.
- Confident match (>= similarity_threshold): assign; discovered centroids absorb the embedding
  as a running mean, enrolled centroids never change.
- No confident match and fewer than num_speakers discovered speakers: start a new speaker.
- Cap reached: assign to the best speaker above fallback_threshold, or return UNKNOWN_SPEAKER_ID.

State belongs to one SpeakerClusterer instance (one per session); nothing is module-global.
Ids come from a per-instance counter and are never reused until reset(preserve_enrolled=False).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

import numpy as np

from speakerstream.config import Settings, get_settings
from speakerstream.diarization.embedding_utils import (
    as_vector,
    cosine_similarity,
    is_valid_vector,
    l2_normalize,
)
from speakerstream.diarization.models import (
    UNKNOWN_LABEL,
    UNKNOWN_SPEAKER_ID,
    Assignment,
    AssignmentDebug,
    SimilarityWarning,
    Speaker,
    SpeakerSimilarity,
)

logger = logging.getLogger(__name__)

REASON_NO_EMBEDDING = "no_embedding"
REASON_NEW_SPEAKER = "new_speaker"
REASON_CONFIDENT_MATCH = "confident_match"
REASON_AMBIGUOUS_MATCH = "ambiguous_match"
REASON_BELOW_THRESHOLD = "below_threshold"
REASON_UNKNOWN = "unknown"

FALLBACK_BEST_MATCH = "best_match"
FALLBACK_UNKNOWN = "unknown"

SPEAKER_PREFIX = "Speaker "


@dataclass(frozen=True)
class ClustererConfig:
    """
    num_speakers: cap on discovered (non-enrolled) speakers.
    similarity_threshold: cosine similarity for a confident match.
    fallback_policy / fallback_threshold: what happens once the cap is reached
        ("best_match" assigns the best speaker if similarity >= fallback_threshold).
    confidence_margin: minimum lead of best over second-best; 0 disables the check.
    """

    num_speakers: int = 2
    similarity_threshold: float = 0.75
    fallback_threshold: float = 0.5
    fallback_policy: str = FALLBACK_BEST_MATCH
    confidence_margin: float = 0.0
    max_speakers: int = 10
    inter_enrollment_warning_threshold: float = 0.72

    def __post_init__(self) -> None:
        if self.fallback_policy not in (FALLBACK_BEST_MATCH, FALLBACK_UNKNOWN):
            raise ValueError(f"unknown fallback_policy: {self.fallback_policy!r}")
        if self.num_speakers < 1:
            raise ValueError("num_speakers must be >= 1")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ClustererConfig":
        settings = settings or get_settings()
        return cls(
            num_speakers=settings.CLUSTER_NUM_SPEAKERS,
            similarity_threshold=settings.CLUSTER_SIMILARITY_THRESHOLD,
            fallback_threshold=settings.CLUSTER_FALLBACK_THRESHOLD,
            fallback_policy=settings.CLUSTER_FALLBACK_POLICY,
            confidence_margin=settings.CLUSTER_CONFIDENCE_MARGIN,
            max_speakers=settings.CLUSTER_MAX_SPEAKERS,
            inter_enrollment_warning_threshold=settings.CLUSTER_INTER_ENROLLMENT_WARNING_THRESHOLD,
        )

    @classmethod
    def coerce(cls, value: "ClustererConfig | int | Mapping[str, Any] | None") -> "ClustererConfig":
        """
        Boundary adapter for loosely typed input: a bare int means num_speakers,
        a mapping overrides fields of the settings-derived config.
        """
        if isinstance(value, ClustererConfig):
            return value
        base = cls.from_settings()
        if value is None:
            return base
        if isinstance(value, bool):
            raise TypeError("clusterer config cannot be a bool")
        if isinstance(value, int):
            return cls(**{**base.__dict__, "num_speakers": value})
        if isinstance(value, Mapping):
            known = {k: v for k, v in value.items() if k in base.__dict__}
            return cls(**{**base.__dict__, **known})
        raise TypeError(f"cannot build ClustererConfig from {type(value).__name__}")


class SpeakerClusterer:
    """
    Assigns phrase embeddings to speakers, one call at a time in arrival order.
    Enrolled speakers are kept ahead of discovered ones in the speaker list.
    """

    def __init__(self, config: ClustererConfig | None = None) -> None:
        self.config = config or ClustererConfig.from_settings()
        self._num_speakers = self.config.num_speakers
        self._speakers: list[Speaker] = []
        self._next_id = 0

    # ------------------------------------------------------------------ state

    @property
    def speakers(self) -> tuple[Speaker, ...]:
        return tuple(self._speakers)

    @property
    def num_speakers(self) -> int:
        return self._num_speakers

    @property
    def detected_speaker_count(self) -> int:
        return len(self._speakers)

    def set_num_speakers(self, n: int) -> None:
        """Change the discovered-speaker cap, clamped to [1, max_speakers]."""
        self._num_speakers = max(1, min(int(n), self.config.max_speakers))

    def get_speaker(self, speaker_id: int) -> Speaker | None:
        for speaker in self._speakers:
            if speaker.id == speaker_id:
                return speaker
        return None

    def get_enrolled_count(self) -> int:
        return sum(1 for s in self._speakers if s.enrolled)

    def has_enrolled_speaker(self) -> bool:
        return any(s.enrolled for s in self._speakers)

    def reset(self, preserve_enrolled: bool = False) -> None:
        """Drop discovered speakers; with preserve_enrolled=False drop everything and restart ids."""
        if preserve_enrolled:
            self._speakers = [s for s in self._speakers if s.enrolled]
        else:
            self._speakers = []
            self._next_id = 0
        logger.debug("Clusterer reset (preserve_enrolled=%s), %d speakers remain", preserve_enrolled, len(self._speakers))

    # ------------------------------------------------------------- assignment

    def assign_speaker(self, embedding: Sequence[float] | np.ndarray | None, debug: bool = False) -> Assignment:
        """Assign one embedding to a speaker id (or UNKNOWN_SPEAKER_ID). See module docstring."""
        # NaN/inf or zero-norm vectors must never become a centroid
        normalized = l2_normalize(embedding) if is_valid_vector(embedding) else None
        if normalized is None:
            if embedding is not None:
                logger.warning("Unusable embedding treated as missing")
            return self._assign_without_embedding(debug)

        scored = [s for s in self._speakers if s.centroid is not None]
        if not scored:
            speaker = self._new_discovered(normalized)
            sims = [SpeakerSimilarity(speaker.id, self.get_speaker_label(speaker.id), 1.0, False)]
            return self._result(
                speaker.id,
                REASON_NEW_SPEAKER,
                debug,
                similarity=1.0,
                margin=1.0,
                all_similarities=sims,
            )

        similarities = [(s, cosine_similarity(normalized, s.centroid)) for s in scored]
        ranked = sorted(similarities, key=lambda item: (-item[1], item[0].id))
        best, best_sim = ranked[0]
        second, second_sim = ranked[1] if len(ranked) > 1 else (None, 0.0)
        margin = best_sim - second_sim

        details = dict(
            similarity=best_sim,
            second_best_similarity=second_sim,
            margin=margin,
            second_best_speaker=self.get_speaker_label(second.id) if second is not None else None,
            all_similarities=[
                SpeakerSimilarity(s.id, self.get_speaker_label(s.id), sim, s.enrolled)
                for s, sim in similarities
            ],
        )

        if best_sim >= self.config.similarity_threshold:
            if (
                self.config.confidence_margin > 0
                and second is not None
                and margin < self.config.confidence_margin
            ):
                return self._result(UNKNOWN_SPEAKER_ID, REASON_AMBIGUOUS_MATCH, debug, is_enrolled=best.enrolled, **details)
            if not best.enrolled:
                self._update_centroid(best, normalized)
            return self._result(best.id, REASON_CONFIDENT_MATCH, debug, is_enrolled=best.enrolled, **details)

        discovered = sum(1 for s in self._speakers if not s.enrolled)
        if discovered < self._num_speakers:
            speaker = self._new_discovered(normalized)
            details.update(similarity=1.0, margin=1.0)
            return self._result(speaker.id, REASON_NEW_SPEAKER, debug, **details)

        if self.config.fallback_policy == FALLBACK_BEST_MATCH and best_sim >= self.config.fallback_threshold:
            return self._result(best.id, REASON_BELOW_THRESHOLD, debug, is_enrolled=best.enrolled, **details)
        return self._result(UNKNOWN_SPEAKER_ID, REASON_UNKNOWN, debug, is_enrolled=best.enrolled, **details)

    def _assign_without_embedding(self, debug: bool) -> Assignment:
        if self._speakers:
            speaker_id = self._speakers[0].id
        else:
            # Placeholder keeps the label stable; the next embedding seeds its centroid
            speaker_id = self._append(Speaker(id=self._take_id(), centroid=None)).id
        return self._result(speaker_id, REASON_NO_EMBEDDING, debug)

    def _result(self, speaker_id: int, reason: str, debug: bool, **details: Any) -> Assignment:
        logger.debug(
            "Assigned %s (reason=%s, similarity=%.3f, margin=%.3f)",
            self.get_speaker_label(speaker_id),
            reason,
            details.get("similarity", 0.0),
            details.get("margin", 0.0),
        )
        info = AssignmentDebug(reason=reason, **details) if debug else None
        return Assignment(speaker_id=speaker_id, reason=reason, debug=info)

    def _new_discovered(self, normalized: np.ndarray) -> Speaker:
        for speaker in self._speakers:
            if not speaker.enrolled and speaker.centroid is None:
                speaker.centroid = normalized
                speaker.sample_count = 1
                return speaker
        return self._append(Speaker(id=self._take_id(), centroid=normalized, sample_count=1))

    def _update_centroid(self, speaker: Speaker, normalized: np.ndarray) -> None:
        """Running mean; the new centroid is built first and swapped in with one assignment."""
        count = speaker.sample_count
        updated = (speaker.centroid * count + normalized) / (count + 1)
        speaker.centroid = updated
        speaker.sample_count = count + 1

    def _take_id(self) -> int:
        speaker_id = self._next_id
        self._next_id += 1
        return speaker_id

    def _append(self, speaker: Speaker) -> Speaker:
        self._speakers.append(speaker)
        return speaker

    # ------------------------------------------------------------- enrollment

    def enroll_speaker(
        self,
        name: str | None,
        embedding: Sequence[float] | np.ndarray,
        enrollment_id: str | None = None,
        color_index: int = 0,
    ) -> Speaker:
        """Add one enrolled speaker after the existing enrolled ones."""
        if not is_valid_vector(embedding) or l2_normalize(embedding) is None:
            raise ValueError("enrollment embedding must be a non-empty finite non-zero vector")
        speaker = Speaker(
            id=self._take_id(),
            centroid=as_vector(embedding),
            enrolled=True,
            name=name,
            color_index=color_index,
            sample_count=1,
            enrollment_id=enrollment_id or str(self._next_id - 1),
        )
        self._speakers.insert(self.get_enrolled_count(), speaker)
        return speaker

    def import_enrolled_speakers(self, enrollments: Iterable[Mapping[str, Any]] | None) -> list[SimilarityWarning]:
        """
        Replace every enrolled speaker with the given {id, name, centroid, colorIndex} entries.
        Discovered speakers are untouched. Entries without a usable centroid are skipped.
        Returns warnings for enrolled pairs that are too similar.
        """
        if enrollments is None:
            return []

        imported: list[Speaker] = []
        for index, entry in enumerate(enrollments):
            centroid = entry.get("centroid")
            if centroid is None:
                logger.debug("Skipping enrollment %r: no centroid", entry.get("id"))
                continue
            if not is_valid_vector(centroid) or l2_normalize(centroid) is None:
                logger.warning("Skipping enrollment %r: invalid centroid", entry.get("id"))
                continue
            color_index = entry.get("colorIndex", entry.get("color_index"))
            imported.append(
                Speaker(
                    id=self._take_id(),
                    centroid=as_vector(centroid),
                    enrolled=True,
                    name=entry.get("name"),
                    color_index=index if color_index is None else int(color_index),
                    sample_count=1,
                    enrollment_id=None if entry.get("id") is None else str(entry.get("id")),
                )
            )

        discovered = [s for s in self._speakers if not s.enrolled]
        self._speakers = imported + discovered
        logger.info("Imported %d enrolled speaker(s)", len(imported))

        warnings = self.check_enrolled_speaker_similarities()
        for w in warnings:
            logger.warning(
                "Enrolled speakers %s and %s are similar (%.3f); they may be confused",
                w.speaker1,
                w.speaker2,
                w.similarity,
            )
        return warnings

    def export_enrolled_speakers(self) -> list[dict[str, Any]]:
        """Enrolled speakers in the persistence format: {id, name, centroid, colorIndex}."""
        return [
            {
                "id": s.enrollment_id,
                "name": s.name,
                "centroid": [float(v) for v in s.centroid],
                "colorIndex": s.color_index,
            }
            for s in self._speakers
            if s.enrolled
        ]

    def remove_enrolled_speaker(self, enrollment_id: str) -> bool:
        before = len(self._speakers)
        self._speakers = [s for s in self._speakers if not (s.enrolled and s.enrollment_id == enrollment_id)]
        return len(self._speakers) < before

    def clear_all_enrollments(self) -> None:
        self._speakers = [s for s in self._speakers if not s.enrolled]

    def check_enrolled_speaker_similarities(self) -> list[SimilarityWarning]:
        """Pairs of enrolled centroids above inter_enrollment_warning_threshold."""
        enrolled = [s for s in self._speakers if s.enrolled]
        warnings: list[SimilarityWarning] = []
        for i in range(len(enrolled)):
            for j in range(i + 1, len(enrolled)):
                sim = cosine_similarity(enrolled[i].centroid, enrolled[j].centroid)
                if sim > self.config.inter_enrollment_warning_threshold:
                    warnings.append(SimilarityWarning(enrolled[i].name, enrolled[j].name, sim))
        return warnings

    # ----------------------------------------------------------------- labels

    def get_speaker_label(self, speaker_id: int) -> str:
        """Enrolled name, else "Speaker N" (N = 1-based creation order among discovered), else "Unknown"."""
        if speaker_id == UNKNOWN_SPEAKER_ID:
            return UNKNOWN_LABEL
        speaker = self.get_speaker(speaker_id)
        if speaker is None:
            return UNKNOWN_LABEL
        if speaker.name:
            return speaker.name
        if speaker.enrolled:
            enrolled_ids = sorted(s.id for s in self._speakers if s.enrolled)
            return f"Enrolled {enrolled_ids.index(speaker.id) + 1}"
        discovered_ids = sorted(s.id for s in self._speakers if not s.enrolled)
        return f"{SPEAKER_PREFIX}{discovered_ids.index(speaker.id) + 1}"

    def speakers_summary(self) -> list[dict[str, Any]]:
        """All speakers for display: id, label, enrolled, color index, sample count."""
        discovered_ids = sorted(s.id for s in self._speakers if not s.enrolled)
        enrolled_count = self.get_enrolled_count()
        return [
            {
                "id": s.id,
                "label": self.get_speaker_label(s.id),
                "enrolled": s.enrolled,
                "enrollment_id": s.enrollment_id,
                # Discovered speakers take colors after the enrolled ones
                "color_index": s.color_index if s.enrolled else enrolled_count + discovered_ids.index(s.id),
                "sample_count": s.sample_count,
            }
            for s in self._speakers
        ]
