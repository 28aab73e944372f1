"""
얼굴 매칭 모듈
질의 특징 벡터와 등록된 프로필들을 비교하여 가장 가까운 프로필을 찾습니다.
"""
import math
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Tuple

import numpy as np

from ..config import MatcherConfig
from ..errors import InvalidThreshold
from ..models import MatchResult, Profile, SearchHit
from ..utils.helpers import distance_to_confidence, l2_normalize
from ..utils.log import get_logger

logger = get_logger(__name__)


def check_threshold(threshold: float) -> float:
    try:
        value = float(threshold)
    except (TypeError, ValueError):
        raise InvalidThreshold()
    if not math.isfinite(value) or value < 0.0 or value > 1.0:
        raise InvalidThreshold()
    return value


class Matcher(ABC):
    """매처 인터페이스"""

    @abstractmethod
    def match(
        self,
        query: np.ndarray,
        profiles: Iterable[Profile],
        threshold: float,
    ) -> MatchResult:
        """가장 잘 맞는 프로필 1개 (임계값 미달이면 matched=False)"""

    @abstractmethod
    def rank(
        self,
        query: np.ndarray,
        profiles: Iterable[Profile],
        threshold: float,
        limit: Optional[int] = None,
    ) -> List[SearchHit]:
        """임계값 이상인 프로필들 (신뢰도 내림차순)"""


class NearestDescriptorMatcher(Matcher):
    """
    최근접 특징 벡터 매처

    프로필별 점수 = 질의 벡터와 그 프로필의 각 특징 벡터 사이 거리 중 최솟값.
    전체에서 가장 가까운 프로필을 고르고, 신뢰도가 임계값 이상일 때만 매칭으로 판단합니다.
    거리가 같은 (tie_tolerance 이내) 프로필이 여럿이면 id 가 가장 작은 프로필을 선택합니다.

    사용법:
        matcher = NearestDescriptorMatcher()
        result = matcher.match(descriptor, repository.list(), threshold=0.7)
    """

    def __init__(self, config: Optional[MatcherConfig] = None):
        self.config = config or MatcherConfig()

    def _best_distances(
        self,
        query: np.ndarray,
        profiles: Iterable[Profile],
    ) -> List[Tuple[Profile, float]]:
        """프로필별 최소 거리 (특징 벡터가 없는 프로필은 제외)"""
        q = l2_normalize(np.asarray(query, dtype=np.float64).reshape(-1), dtype=np.float64)
        dim = q.shape[0]

        candidates: List[Profile] = []
        mats: List[np.ndarray] = []
        owners: List[np.ndarray] = []

        for profile in profiles:
            rows = []
            for descriptor in profile.descriptors:
                vec = np.asarray(descriptor, dtype=np.float64).reshape(-1)
                if vec.shape[0] != dim:
                    logger.warning(
                        "특징 벡터 크기 불일치로 건너뜀: profile=%s (%d != %d)",
                        profile.id, vec.shape[0], dim,
                    )
                    continue
                rows.append(vec)
            if not rows:
                continue

            candidates.append(profile)
            mats.append(np.stack(rows))
            owners.append(np.full((len(rows),), len(candidates) - 1, dtype=np.int32))

        if not candidates:
            return []

        # 한 번의 행렬 연산 + 프로필별 최솟값 (float64, 저장된 float32 반올림 오차는 tie_tolerance 로 흡수)
        matrix = l2_normalize(np.concatenate(mats, axis=0), dtype=np.float64)
        owner_ids = np.concatenate(owners, axis=0)
        distances = np.linalg.norm(matrix - q, axis=1)

        best = np.full((len(candidates),), np.inf, dtype=np.float64)
        np.minimum.at(best, owner_ids, distances)

        return [(profile, float(best[i])) for i, profile in enumerate(candidates)]

    def _ordered(self, scored: List[Tuple[Profile, float]]) -> List[Tuple[Profile, float]]:
        """거리 오름차순, 허용 오차 이내 동률은 id 오름차순"""
        scored = sorted(scored, key=lambda item: (item[1], item[0].id))
        tol = self.config.tie_tolerance

        ordered: List[Tuple[Profile, float]] = []
        i = 0
        while i < len(scored):
            # 동률 그룹: 그룹 첫 원소와의 차이가 tol 이내
            j = i + 1
            while j < len(scored) and scored[j][1] - scored[i][1] <= tol:
                j += 1
            ordered.extend(sorted(scored[i:j], key=lambda item: item[0].id))
            i = j
        return ordered

    def match(
        self,
        query: np.ndarray,
        profiles: Iterable[Profile],
        threshold: float,
    ) -> MatchResult:
        threshold = check_threshold(threshold)

        scored = self._best_distances(query, profiles)
        if not scored:
            return MatchResult(matched=False)

        profile, distance = self._ordered(scored)[0]
        confidence = distance_to_confidence(distance)

        if confidence >= threshold:
            return MatchResult(matched=True, profile=profile, confidence=confidence)

        logger.debug("임계값 미달: best=%s confidence=%.4f threshold=%.4f", profile.id, confidence, threshold)
        return MatchResult(matched=False)

    def rank(
        self,
        query: np.ndarray,
        profiles: Iterable[Profile],
        threshold: float,
        limit: Optional[int] = None,
    ) -> List[SearchHit]:
        threshold = check_threshold(threshold)

        hits = []
        for profile, distance in self._ordered(self._best_distances(query, profiles)):
            confidence = distance_to_confidence(distance)
            if confidence < threshold:
                continue
            hits.append(SearchHit(profile=profile, confidence=confidence))

        if limit is not None:
            hits = hits[:max(0, int(limit))]
        return hits
