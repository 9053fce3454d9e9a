"""
신뢰도 계산 모듈

요인분석 결과와 응답 데이터로부터 다음을 계산합니다:
- Cronbach's Alpha (크론바흐 알파)
- Ordinal Alpha (다분 상관행렬 기반 알파)
- Composite Reliability (CR, 합성신뢰도 / omega)
- Average Variance Extracted (AVE, 평균분산추출)
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


class ReliabilityCalculator:
    """단일 요인 신뢰도 계산 클래스"""

    def calculate_cronbach_alpha(self, data: pd.DataFrame, items: Sequence[str]) -> float:
        """
        크론바흐 알파 계산

        Args:
            data (pd.DataFrame): 원시 데이터
            items (Sequence[str]): 해당 요인의 문항들

        Returns:
            float: 크론바흐 알파 값
        """
        item_data = data[list(items)].dropna()
        k = len(items)

        if len(item_data) == 0:
            logger.warning("크론바흐 알파 계산용 데이터가 없습니다.")
            return np.nan

        if k < 2:
            logger.warning("크론바흐 알파 계산을 위해서는 최소 2개 문항이 필요합니다.")
            return np.nan

        sum_item_var = item_data.var(ddof=1).sum()
        total_var = item_data.sum(axis=1).var(ddof=1)

        if total_var == 0:
            return np.nan

        alpha = (k / (k - 1)) * (1 - sum_item_var / total_var)
        logger.info(f"크론바흐 알파 계산 완료: {alpha:.4f}")
        return float(alpha)

    def calculate_ordinal_alpha(self, correlations: pd.DataFrame) -> float:
        """
        다분(polychoric) 상관행렬 기반 ordinal alpha

        alpha = k/(k-1) * (1 - k / ΣR)
        """
        corr = np.asarray(correlations, dtype=float)
        k = corr.shape[0]
        if k < 2:
            logger.warning("ordinal alpha 계산을 위해서는 최소 2개 문항이 필요합니다.")
            return np.nan

        total = corr.sum()
        if total == 0:
            return np.nan
        return float((k / (k - 1)) * (1 - k / total))

    def calculate_composite_reliability(self, loadings: Sequence[float]) -> float:
        """
        합성신뢰도 (CR) 계산: (Σλ)² / [(Σλ)² + Σ(1 - λ²)]

        Args:
            loadings (Sequence[float]): 표준화된 요인부하량들

        Returns:
            float: 합성신뢰도 값
        """
        loadings = np.asarray(loadings, dtype=float)
        if loadings.size == 0:
            return np.nan

        numerator = np.sum(loadings) ** 2
        denominator = numerator + np.sum(1 - loadings ** 2)
        if denominator == 0:
            return np.nan

        return float(numerator / denominator)

    def calculate_ave(self, loadings: Sequence[float]) -> float:
        """
        평균분산추출 (AVE) 계산: Σλ² / k

        표준화 해에서는 Σλ² / (Σλ² + Σ(1 - λ²))와 같습니다.
        """
        loadings = np.asarray(loadings, dtype=float)
        if loadings.size == 0:
            return np.nan
        return float(np.mean(loadings ** 2))

    def calculate_factor_reliability(self, data: pd.DataFrame, loadings_df: pd.DataFrame,
                                     correlations: Optional[pd.DataFrame] = None) -> Dict[str, Any]:
        """
        단일 요인의 신뢰도 통계 계산

        Args:
            data (pd.DataFrame): 분석에 사용된 응답 데이터
            loadings_df (pd.DataFrame): Item, Loading 컬럼을 가진 표준화 loading 테이블
            correlations (Optional[pd.DataFrame]): 문항 상관행렬 (ordinal alpha용)

        Returns:
            Dict[str, Any]: 신뢰도 통계들
        """
        items: List[str] = loadings_df['Item'].tolist()
        std_loadings = loadings_df['Loading'].to_numpy(dtype=float)

        ave = self.calculate_ave(std_loadings)
        results = {
            'cronbach_alpha': self.calculate_cronbach_alpha(data, items),
            'ordinal_alpha': (self.calculate_ordinal_alpha(correlations.loc[items, items])
                              if correlations is not None and not correlations.empty else np.nan),
            'composite_reliability': self.calculate_composite_reliability(std_loadings),
            'ave': ave,
            'sqrt_ave': float(np.sqrt(ave)) if not np.isnan(ave) else np.nan,
            'n_items': len(items),
            'items': items,
            'mean_loading': float(np.mean(std_loadings)),
            'min_loading': float(np.min(std_loadings)),
            'max_loading': float(np.max(std_loadings))
        }

        logger.info("신뢰도 통계 계산 완료")
        return results
