"""
Recommendation engine — the facade feed assembly calls into.

Wires the embedding services, stores, cluster engine, matcher, candidate
selector and score combiner together. Every dependency is injected; nothing
is looked up from globals.

Exposed operations:
- build_user_embedding(user_id)
- update_user_embedding(user_id, interaction)
- refresh_user_embeddings(user_ids, token)
- recompute_clusters(config)
- select_and_score_candidates(user_id, context, limit)
"""

import logging
import threading
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .clustering import ClusterEngine, ClusterMatcher, assign_stability, label_cluster_topics
from .embedding import ContentEmbeddingService, TextEmbedder, UserEmbeddingService
from .models.candidate import RecommendationResult
from .models.cluster import ClusterInfo, ClusteringResult
from .models.config import AlgorithmSettings, EngineConfig, parse_cluster_settings, resolve_config
from .models.content import ContentQuery, ContentSignals, normalize_tag
from .models.embedding import ContentEmbedding, EmbeddingMetadata, UserEmbedding
from .models.interaction import UserInteraction
from .models.profile import OnboardingData, RecommendationContext, UserProfile, UserSignals, ViewingPattern
from .stages.candidate_selector import CandidateSelector
from .stages.scoring import ScoreCombiner, Scorer, ScoringSubject, default_scorers
from .stores.base import (
    ContentMetadataRepository,
    EmbeddingStore,
    InMemoryEmbeddingStore,
    InteractionLog,
)
from .utils.cancellation import CancellationToken

# Profile interests = most frequent topics of positive interactions.
PROFILE_INTEREST_LIMIT = 10

VIEW_TYPES = ("view", "short_view", "long_view")


class RecommendationEngine:
    """
    Usage:
        engine = RecommendationEngine(embedder, content_repository, interaction_log)
        engine.recompute_clusters()
        result = engine.select_and_score_candidates("user-1", RecommendationContext.at(now), limit=20)
    """

    def __init__(
        self,
        embedder: Optional[TextEmbedder],
        content_repository: ContentMetadataRepository,
        interaction_log: InteractionLog,
        user_store: Optional[EmbeddingStore] = None,
        content_store: Optional[EmbeddingStore] = None,
        config: Union[None, EngineConfig, Mapping] = None,
        scorers: Optional[Sequence[Scorer]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = resolve_config(config)
        self.logger = logger or logging.getLogger(__name__)
        self.content_repository = content_repository
        self.interaction_log = interaction_log
        self.user_store = user_store if user_store is not None else InMemoryEmbeddingStore()
        self.content_store = content_store if content_store is not None else InMemoryEmbeddingStore()

        cfg = self.config
        self.user_embeddings = UserEmbeddingService(embedder, cfg.embedding, logger)
        self.content_embeddings = ContentEmbeddingService(embedder, cfg.embedding, logger)
        self.cluster_engine = ClusterEngine(cfg.clustering, logger)
        self.matcher = ClusterMatcher(cfg.selector, logger)
        self.selector = CandidateSelector(content_repository, cfg.selector, logger)
        self.combiner = ScoreCombiner(
            scorers if scorers is not None else default_scorers(cfg, logger),
            cfg.combiner,
            max_workers=cfg.execution.max_workers,
            timeout_seconds=cfg.execution.scoring_timeout_seconds,
            logger=logger,
        )

        self._clusters: List[ClusterInfo] = []
        self._clusters_lock = threading.Lock()
        self._user_locks: Dict[str, threading.RLock] = {}
        self._user_locks_guard = threading.Lock()

    @property
    def model_version(self) -> str:
        return self.user_embeddings.model_version

    def _user_lock(self, user_id: str) -> threading.RLock:
        with self._user_locks_guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = self._user_locks[user_id] = threading.RLock()
            return lock

    # -------------------------------------------------------------------------
    # User profile
    # -------------------------------------------------------------------------

    def recent_interactions(self, user_id: str) -> List[UserInteraction]:
        return self.interaction_log.recent(user_id, self.config.embedding.history_limit)

    def _profile_from(self, user_id: str, interactions: List[UserInteraction]) -> UserProfile:
        counts: Counter = Counter()
        for interaction in interactions:
            if self.config.embedding.blend_weight(interaction.type) > 0:
                counts.update(normalize_tag(t) for t in interaction.topics if normalize_tag(t))
        interests = [t for t, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))]
        return UserProfile(
            user_id=user_id,
            interests=interests[:PROFILE_INTEREST_LIMIT],
            interactions=interactions,
        )

    def load_profile(self, user_id: str) -> UserProfile:
        return self._profile_from(user_id, self.recent_interactions(user_id))

    @staticmethod
    def _viewing_patterns(interactions: Iterable[UserInteraction]) -> List[ViewingPattern]:
        grouped: Dict[str, List[UserInteraction]] = defaultdict(list)
        for interaction in interactions:
            if interaction.type in VIEW_TYPES:
                grouped[interaction.content_format or interaction.entity_type].append(interaction)
        patterns = []
        for content_type, views in sorted(grouped.items()):
            durations = [float(v.metadata.get("duration", 0.0)) for v in views]
            completions = [float(v.metadata.get("completion_rate", 0.0)) for v in views]
            patterns.append(
                ViewingPattern(
                    content_type=content_type,
                    average_duration=sum(durations) / len(views),
                    completion_rate=sum(completions) / len(views),
                    frequency=len(views),
                )
            )
        return patterns

    def _signals(self, profile: UserProfile) -> UserSignals:
        return UserSignals(
            user_id=profile.user_id,
            interaction_history=profile.interactions,
            viewing_patterns=self._viewing_patterns(profile.interactions),
            content_preferences=profile.interests,
        )

    # -------------------------------------------------------------------------
    # User embeddings
    # -------------------------------------------------------------------------

    def _to_user_embedding(self, user_id: str) -> Optional[UserEmbedding]:
        record = self.user_store.get_record(user_id)
        if record is None:
            return None
        return UserEmbedding(user_id=user_id, vector=record.vector, metadata=record.metadata)

    def build_user_embedding(self, user_id: str) -> UserEmbedding:
        """(Re)build from the interaction log. Never fails; a stale vector beats an error vector."""
        with self._user_lock(user_id):
            profile = self.load_profile(user_id)
            result = self.user_embeddings.generate(self._signals(profile))
            existing = self._to_user_embedding(user_id)
            if result.source == "error" and existing is not None and not existing.vector.is_zero:
                self.logger.warning(
                    "[engine] KEEP_STALE_EMBEDDING user_id=%s error=%s", user_id, result.error
                )
                return existing
            metadata = EmbeddingMetadata(
                source=result.source,
                model_version=(
                    self.model_version
                    if result.source == "model"
                    else self.config.embedding.fallback_model_version
                ),
                error=result.error,
                interaction_count=len(profile.interactions),
            )
            self.user_store.put(user_id, result.vector, metadata)
            self.logger.info(
                "[engine] USER_EMBEDDING_BUILT user_id=%s source=%s interactions=%s",
                user_id,
                result.source,
                len(profile.interactions),
            )
            return UserEmbedding(user_id=user_id, vector=result.vector, metadata=metadata)

    def initialize_user_embedding(self, user_id: str, onboarding: OnboardingData) -> UserEmbedding:
        """Seed a new user's embedding from onboarding data."""
        with self._user_lock(user_id):
            result = self.user_embeddings.generate_initial(user_id, onboarding)
            metadata = EmbeddingMetadata(
                source="initial" if result.source == "model" else result.source,
                model_version=(
                    self.model_version
                    if result.source == "model"
                    else self.config.embedding.fallback_model_version
                ),
                error=result.error,
            )
            self.user_store.put(user_id, result.vector, metadata)
            return UserEmbedding(user_id=user_id, vector=result.vector, metadata=metadata)

    def get_user_embedding(self, user_id: str) -> UserEmbedding:
        """Stored embedding, or a lazily built one when absent."""
        existing = self._to_user_embedding(user_id)
        if existing is not None:
            return existing
        return self.build_user_embedding(user_id)

    def update_user_embedding(self, user_id: str, interaction: UserInteraction) -> UserEmbedding:
        """
        Apply one interaction to the user's embedding (EMA update).

        Updates for the same user are serialized by a per-user lock, so
        concurrent calls never lose each other's writes within this process.
        """
        if interaction.user_id != user_id:
            raise ValueError(
                f"Interaction {interaction.id} belongs to {interaction.user_id}, not {user_id}"
            )
        with self._user_lock(user_id):
            current = self._to_user_embedding(user_id)
            if current is None or current.vector.is_zero:
                current = self.build_user_embedding(user_id)
                if any(i.id == interaction.id for i in self.recent_interactions(user_id)):
                    # The rebuild already saw this interaction.
                    return current
            vector = self.user_embeddings.update(current.vector, interaction)
            metadata = EmbeddingMetadata(
                source="update",
                model_version=current.metadata.model_version,
                last_interaction_id=interaction.id,
                last_interaction_type=interaction.type,
            )
            self.user_store.put(user_id, vector, metadata)
            return UserEmbedding(user_id=user_id, vector=vector, metadata=metadata)

    def record_interaction(self, interaction: UserInteraction) -> UserEmbedding:
        """Append to the interaction log, then update the user's embedding."""
        self.interaction_log.append(interaction)
        return self.update_user_embedding(interaction.user_id, interaction)

    def refresh_user_embeddings(
        self,
        user_ids: Sequence[str],
        token: Optional[CancellationToken] = None,
    ) -> Dict[str, int]:
        """
        Rebuild many users' embeddings from their interaction logs, one
        batch at a time. Cancellation is checked between batches; a failing
        user is logged and counted without stopping the rest.
        """
        token = token or CancellationToken.none()
        batch_size = self.config.embedding.batch_size
        sources: Counter = Counter()
        failed = 0
        for start in range(0, len(user_ids), batch_size):
            token.raise_if_cancelled("user embedding batch")
            for user_id in user_ids[start:start + batch_size]:
                try:
                    embedding = self.build_user_embedding(user_id)
                except Exception as e:
                    failed += 1
                    self.logger.warning("[engine] USER_REFRESH_FAILED user_id=%s error=%s", user_id, e)
                    continue
                sources[embedding.metadata.source] += 1
        summary = {
            "requested": len(user_ids),
            "refreshed": sum(sources.values()),
            "failed": failed,
        }
        self.logger.info(
            "[engine] USER_REFRESH %s sources=%s",
            " ".join(f"{k}={v}" for k, v in summary.items()),
            dict(sources),
        )
        return summary

    def activeness(self, user_id: str, context: Optional[RecommendationContext] = None) -> float:
        now = context.now if context is not None else None
        return self.user_embeddings.activeness_factor(self.recent_interactions(user_id), now=now)

    # -------------------------------------------------------------------------
    # Content embeddings
    # -------------------------------------------------------------------------

    def embed_content(self, signals: ContentSignals) -> ContentEmbedding:
        result = self.content_embeddings.generate(signals)
        metadata = EmbeddingMetadata(
            source=result.source,
            model_version=self.model_version,
            error=result.error,
        )
        self.content_store.put(signals.content_id, result.vector, metadata)
        return ContentEmbedding(content_id=signals.content_id, vector=result.vector, metadata=metadata)

    def refresh_content_embeddings(
        self,
        items: Sequence[ContentSignals],
        token: Optional[CancellationToken] = None,
        force: bool = False,
    ) -> Dict[str, int]:
        """
        Regenerate stale content embeddings in batches. Fresh model-sourced
        vectors are blended 70/30 with the regenerated ones.
        """
        stale = [
            s for s in items
            if force or self.content_embeddings.needs_refresh(self.content_store.get_record(s.content_id))
        ]
        results, failed = self.content_embeddings.generate_batch(stale, token)
        for content_id, result in results.items():
            record = self.content_store.get_record(content_id)
            vector = result.vector
            if record is not None and record.metadata.source == "model" and result.source == "model":
                vector = self.content_embeddings.update(record.vector, result.vector.values)
            self.content_store.put(
                content_id,
                vector,
                EmbeddingMetadata(source=result.source, model_version=self.model_version, error=result.error),
            )
        summary = {
            "requested": len(items),
            "refreshed": len(results),
            "skipped": len(items) - len(stale),
            "failed": len(failed),
        }
        self.logger.info("[engine] CONTENT_REFRESH %s", " ".join(f"{k}={v}" for k, v in summary.items()))
        return summary

    # -------------------------------------------------------------------------
    # Clusters
    # -------------------------------------------------------------------------

    @property
    def clusters(self) -> List[ClusterInfo]:
        with self._clusters_lock:
            return list(self._clusters)

    def load_clusters(self, clusters: Sequence[ClusterInfo]) -> None:
        """Install a cluster snapshot produced elsewhere."""
        with self._clusters_lock:
            self._clusters = list(clusters)

    def recompute_clusters(
        self,
        config: Union[None, AlgorithmSettings, Mapping] = None,
        query: Optional[ContentQuery] = None,
        token: Optional[CancellationToken] = None,
    ) -> ClusteringResult:
        """
        Full clustering pass over a snapshot of the content store.
        Bad parameters raise ClusterConfigInvalid before any work starts.
        """
        settings = parse_cluster_settings(config, self.config.clustering)
        if token is None:
            token = CancellationToken(self.config.execution.clustering_timeout_seconds)

        embeddings: Dict[str, Sequence[float]] = {}
        for record in self.content_store.records():
            if query is not None:
                try:
                    content = self.content_repository.find(record.entity_id)
                except Exception as e:
                    self.logger.warning(
                        "[engine] HYDRATE_FAILED content_id=%s error=%s", record.entity_id, e
                    )
                    continue
                if content is None or not query.matches(content):
                    continue
            embeddings[record.entity_id] = record.vector.values

        result = self.cluster_engine.cluster(
            embeddings, settings, token, dimension=self.config.embedding.dimension
        )
        clusters = label_cluster_topics(
            result.clusters,
            self.content_repository,
            self.config.clustering.topics_per_cluster,
            self.logger,
        )
        clusters = assign_stability(clusters, self.clusters)
        result = result.model_copy(update={"clusters": clusters})
        self.load_clusters(clusters)
        return result

    # -------------------------------------------------------------------------
    # Recommendations
    # -------------------------------------------------------------------------

    def select_and_score_candidates(
        self,
        user_id: str,
        context: Optional[RecommendationContext] = None,
        limit: Optional[int] = None,
    ) -> RecommendationResult:
        if limit is None:
            limit = self.config.selector.default_limit
        if limit <= 0:
            return RecommendationResult(user_id=user_id)
        now = context.now if context is not None else None

        embedding = self.get_user_embedding(user_id)
        profile = self.load_profile(user_id)
        clusters = self.clusters
        user_vector = None if embedding.vector.is_zero else embedding.vector.to_list()

        matches = self.matcher.match(user_vector, clusters, profile, context)
        excluded = set(profile.interacted_ids) if self.config.selector.exclude_seen else set()
        candidates = self.selector.select_candidates(
            matches, limit=limit, exclude_ids=excluded, user_id=user_id, now=now
        )
        if not candidates:
            self.logger.info(
                "[engine] NO_CANDIDATES user_id=%s clusters=%s matched=%s",
                user_id,
                len(clusters),
                len(matches),
            )
            return RecommendationResult(
                user_id=user_id,
                no_candidates=True,
                matched_clusters=len(matches),
                embedding_source=embedding.metadata.source,
            )

        subject = ScoringSubject(user_id=user_id, embedding=user_vector, profile=profile)
        ranked, partial = self.combiner.score_candidates(
            subject, candidates, {c.id: c for c in clusters}, context
        )
        return RecommendationResult(
            user_id=user_id,
            candidates=ranked[:limit],
            partial=partial,
            no_candidates=not ranked,
            matched_clusters=len(matches),
            embedding_source=embedding.metadata.source,
        )
