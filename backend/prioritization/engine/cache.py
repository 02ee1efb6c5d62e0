# prioritization/engine/cache.py

import json
import hashlib
import logging
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional, Tuple

from django.core.cache import caches
from django.conf import settings

logger = logging.getLogger(__name__)

# (member_id, submitted_at, row_version) of one admissible ballot
BallotKey = Tuple[int, Optional[datetime], int]


class AggregateViewCache:
    """
    Memo of the aggregate ordering for a workgroup.

    The key is a SHA256 digest of everything the ordering depends on: the
    eligibility version, the admissible ballots, and a per-workgroup
    generation counter that writers bump through `invalidate()`. A stale
    entry is therefore never addressed again; it simply ages out.

    Cache backend failures are logged and the ordering is computed directly.
    """

    def __init__(self, ttl: int = 3600, version: str = "v1", cache_alias: str = "default"):
        self.ttl = getattr(settings, 'PRIORITIZATION_CACHE_TTL', ttl)
        self.version = version
        self.cache_alias = cache_alias

    @property
    def backend(self):
        return caches[self.cache_alias]

    def get_or_set_ranking(
        self,
        workgroup_id: int,
        eligibility_version: int,
        ballots: Iterable[BallotKey],
        compute: Callable[[], List[Any]],
    ) -> List[Any]:
        cache_key = self._generate_key(workgroup_id, eligibility_version, ballots)

        try:
            cached_result = self.backend.get(cache_key)
            if cached_result is not None:
                logger.debug(f"Aggregate cache hit: {cache_key}")
                return cached_result
        except Exception as e:
            logger.error(f"Cache retrieval failure: {str(e)}")

        logger.debug(f"Aggregate cache miss: {cache_key}")
        result = compute()

        try:
            self.backend.set(cache_key, result, timeout=self.ttl)
        except Exception as e:
            logger.error(f"Cache persistence failure: {str(e)}")

        return result

    def invalidate(self, workgroup_id: int) -> None:
        """Bump the workgroup's generation so existing entries are never read again."""
        gen_key = self._generation_key(workgroup_id)
        try:
            try:
                self.backend.incr(gen_key)
            except ValueError:
                # Counter not present yet (first write, or evicted)
                self.backend.set(gen_key, 1, timeout=None)
        except Exception as e:
            logger.error(f"Cache invalidation failure for workgroup {workgroup_id}: {str(e)}")

    def _generation(self, workgroup_id: int) -> int:
        try:
            return self.backend.get(self._generation_key(workgroup_id)) or 0
        except Exception as e:
            logger.error(f"Cache generation lookup failure: {str(e)}")
            return 0

    def _generation_key(self, workgroup_id: int) -> str:
        return f"prioritization_gen_{self.version}_{workgroup_id}"

    def _generate_key(
        self,
        workgroup_id: int,
        eligibility_version: int,
        ballots: Iterable[BallotKey],
    ) -> str:
        payload = {
            "workgroup": workgroup_id,
            "eligibility_version": eligibility_version,
            "generation": self._generation(workgroup_id),
            "ballots": sorted(
                (member_id, submitted_at.isoformat() if submitted_at else None, row_version)
                for member_id, submitted_at, row_version in ballots
            ),
            "version": self.version,
        }

        serialized_payload = json.dumps(payload, sort_keys=True)
        hash_digest = hashlib.sha256(serialized_payload.encode()).hexdigest()

        return f"prioritization_{self.version}_{hash_digest}"
