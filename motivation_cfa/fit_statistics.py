"""
Fit Statistics Module

추정기(semopy)가 돌려준 검정통계량과 상관행렬로부터
RMSEA 신뢰구간, close-fit p값, SRMR, 잔차 상관행렬, R² 등을 계산합니다.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from scipy.optimize import brentq

logger = logging.getLogger(__name__)


def cov_to_corr(matrix: np.ndarray) -> np.ndarray:
    """공분산행렬을 상관행렬로 변환 (대각원소 1)"""
    matrix = np.asarray(matrix, dtype=float)
    sd = np.sqrt(np.diag(matrix))
    if np.any(sd <= 0):
        raise ValueError("분산이 0 이하인 변수가 있어 상관행렬로 변환할 수 없습니다")
    corr = matrix / np.outer(sd, sd)
    corr = (corr + corr.T) / 2
    np.fill_diagonal(corr, 1.0)
    return corr


def calc_residual_correlations(observed: np.ndarray, implied: np.ndarray,
                               names: Sequence[str]) -> pd.DataFrame:
    """
    잔차 상관행렬 = 관측 상관행렬 - 모델 내재 상관행렬

    두 행렬 모두 상관행렬로 변환한 뒤 차이를 구하므로 대칭이며 대각원소는 0입니다.

    Args:
        observed (np.ndarray): 관측 공분산/상관행렬
        implied (np.ndarray): 모델 내재 공분산행렬
        names (Sequence[str]): 변수 이름

    Returns:
        pd.DataFrame: 잔차 상관행렬
    """
    observed = np.asarray(observed, dtype=float)
    implied = np.asarray(implied, dtype=float)
    if observed.shape != implied.shape:
        raise ValueError(f"행렬 크기가 다릅니다: {observed.shape} vs {implied.shape}")

    residuals = cov_to_corr(observed) - cov_to_corr(implied)
    residuals = (residuals + residuals.T) / 2
    np.fill_diagonal(residuals, 0.0)
    return pd.DataFrame(residuals, index=list(names), columns=list(names))


def calc_srmr(residuals: pd.DataFrame) -> float:
    """
    SRMR (Standardized Root Mean square Residual)

    잔차 상관행렬의 하삼각(대각 포함) 원소 p(p+1)/2개에 대한 제곱평균제곱근
    """
    values = np.asarray(residuals, dtype=float)
    lower = values[np.tril_indices_from(values)]
    return float(np.sqrt(np.mean(lower ** 2)))


def calc_rmsea(chi2: float, df: int, n: int) -> float:
    """RMSEA 점추정치: sqrt(max(chi2 - df, 0) / (df * n))"""
    if df <= 0:
        return 0.0
    return float(np.sqrt(max(chi2 - df, 0.0) / (df * n)))


def _noncentral_cdf(chi2: float, df: int, nc: float) -> float:
    """비중심 카이제곱 누적분포 (nc=0이면 중심 분포)"""
    if nc <= 0:
        return float(stats.chi2.cdf(chi2, df))
    return float(stats.ncx2.cdf(chi2, df, nc))


def _solve_noncentrality(chi2: float, df: int, target: float) -> float:
    """
    P(X <= chi2 | df, lambda) = target 을 만족하는 비중심모수 lambda 탐색

    lambda=0에서 이미 target보다 작으면 0을 반환합니다.
    """
    if _noncentral_cdf(chi2, df, 0.0) < target:
        return 0.0

    upper = max(chi2, 1.0)
    while _noncentral_cdf(chi2, df, upper) > target:
        upper *= 2
        if upper > 1e8:
            raise ValueError("RMSEA 신뢰구간의 비중심모수를 찾을 수 없습니다")

    return float(brentq(lambda nc: _noncentral_cdf(chi2, df, nc) - target, 0.0, upper,
                        xtol=1e-10))


def calc_rmsea_confidence_interval(chi2: float, df: int, n: int,
                                   level: float = 0.90) -> Tuple[float, float]:
    """
    비중심 카이제곱 분포를 역산하여 RMSEA 신뢰구간 계산

    Args:
        chi2 (float): 검정통계량
        df (int): 자유도
        n (int): 표본 크기 (mimic 설정에 따라 N 또는 N - 1)
        level (float): 신뢰수준 (기본 90%)

    Returns:
        Tuple[float, float]: (하한, 상한)
    """
    if df <= 0:
        return 0.0, 0.0

    alpha = 1 - level
    lambda_lower = _solve_noncentrality(chi2, df, 1 - alpha / 2)
    lambda_upper = _solve_noncentrality(chi2, df, alpha / 2)

    lower = float(np.sqrt(lambda_lower / (df * n)))
    upper = float(np.sqrt(lambda_upper / (df * n)))
    return lower, upper


def calc_rmsea_p_close(chi2: float, df: int, n: int, close: float = 0.05) -> float:
    """H0: RMSEA <= close 에 대한 p값 (close-fit test)"""
    if df <= 0:
        return float('nan')
    nc = close ** 2 * df * n
    return float(1 - _noncentral_cdf(chi2, df, nc))


def calc_r_squared(std_loadings: Sequence[float]) -> np.ndarray:
    """단일 요인 모델에서 문항의 설명분산 R² = (표준화 loading)²"""
    return np.asarray(std_loadings, dtype=float) ** 2


def standardized_confidence_interval(std_estimate: float, estimate: float, se: float,
                                     level: float = 0.95) -> Tuple[float, float, float]:
    """
    표준화 loading의 표준오차와 신뢰구간 (비표준화 SE를 같은 비율로 변환)

    Returns:
        Tuple[float, float, float]: (표준화 SE, 하한, 상한)
    """
    if se is None or np.isnan(se) or estimate == 0:
        return np.nan, np.nan, np.nan

    z_crit = stats.norm.ppf(1 - (1 - level) / 2)
    std_se = abs(se * std_estimate / estimate)
    lower = max(std_estimate - z_crit * std_se, -1.0)
    upper = min(std_estimate + z_crit * std_se, 1.0)
    return float(std_se), float(lower), float(upper)


def check_correlation_matrix(matrix: pd.DataFrame, diagonal: float,
                             tolerance: float = 1e-8) -> Optional[str]:
    """
    상관 계열 행렬의 대칭성과 대각원소 확인

    Returns:
        Optional[str]: 문제가 있으면 설명 문자열, 없으면 None
    """
    values = np.asarray(matrix, dtype=float)
    if not np.allclose(values, values.T, atol=tolerance):
        return "행렬이 대칭이 아닙니다"
    if not np.allclose(np.diag(values), diagonal, atol=tolerance):
        return f"대각원소가 {diagonal}이 아닙니다"
    return None
