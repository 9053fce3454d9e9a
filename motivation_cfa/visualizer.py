"""
Factor Analysis Visualization Module

보고서에 포함되는 두 개의 그림을 생성합니다.
- 표준화 loading 막대그래프 (신뢰구간 포함)
- 잔차 상관행렬 히트맵
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .config import RESULTS_CONFIG

logger = logging.getLogger(__name__)

LOADINGS_FIGURE = "standardized_loadings.png"
RESIDUALS_FIGURE = "residual_correlations.png"


class FactorLoadingPlotter:
    """Factor Loading 시각화 전담 클래스"""

    def __init__(self, figsize: Tuple[int, int] = (8, 5), style: str = 'whitegrid'):
        """
        Factor Loading Plotter 초기화

        Args:
            figsize (Tuple[int, int]): 그래프 크기
            style (str): seaborn 스타일
        """
        self.figsize = figsize
        self.style = style
        sns.set_style(style)

    def plot_standardized_loadings(self, loadings_df: pd.DataFrame,
                                   title: str = "Standardized Factor Loadings",
                                   save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
        """
        표준화 loading 가로 막대그래프 (95% 신뢰구간 오차막대)

        Args:
            loadings_df (pd.DataFrame): Item, Loading, CI_Lower, CI_Upper 컬럼
            title (str): 그래프 제목
            save_path (Optional[Union[str, Path]]): 저장 경로

        Returns:
            plt.Figure: 생성된 그래프
        """
        if loadings_df.empty:
            raise ValueError("시각화할 loading 데이터가 없습니다")

        plot_data = loadings_df.iloc[::-1]
        positions = np.arange(len(plot_data))

        fig, ax = plt.subplots(figsize=self.figsize)

        ax.barh(positions, plot_data['Loading'], color='steelblue', alpha=0.7,
                edgecolor='black', linewidth=0.5)

        if {'CI_Lower', 'CI_Upper'}.issubset(plot_data.columns):
            lower_err = (plot_data['Loading'] - plot_data['CI_Lower']).clip(lower=0)
            upper_err = (plot_data['CI_Upper'] - plot_data['Loading']).clip(lower=0)
            ax.errorbar(plot_data['Loading'], positions,
                        xerr=[lower_err.fillna(0), upper_err.fillna(0)],
                        fmt='none', ecolor='black', capsize=3, linewidth=1)

        for pos, loading in zip(positions, plot_data['Loading']):
            ax.text(0.02, pos, f'{loading:.2f}', va='center', ha='left',
                    color='white', fontsize=9, fontweight='bold')

        ax.set_yticks(positions)
        ax.set_yticklabels(plot_data['Item'])
        ax.set_xlim(min(0.0, float(plot_data['Loading'].min()) - 0.1), 1)
        ax.axvline(x=0.5, color='gray', linestyle='--', alpha=0.6)
        ax.set_xlabel('Standardized loading', fontsize=12)
        ax.set_title(title, fontsize=14, fontweight='bold')

        plt.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=300, bbox_inches='tight')
            logger.info(f"loading 막대그래프 저장 완료: {save_path}")

        return fig


class ResidualHeatmapPlotter:
    """잔차 상관행렬 히트맵 전담 클래스"""

    def __init__(self, figsize: Tuple[int, int] = (7, 6)):
        self.figsize = figsize

    def plot_residual_correlations(self, residuals: pd.DataFrame,
                                   title: str = "Residual Correlations",
                                   save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
        """
        잔차 상관행렬 히트맵 (하삼각만 표시)

        Args:
            residuals (pd.DataFrame): 잔차 상관행렬
            title (str): 그래프 제목
            save_path (Optional[Union[str, Path]]): 저장 경로

        Returns:
            plt.Figure: 생성된 그래프
        """
        if residuals.empty:
            raise ValueError("시각화할 잔차 상관행렬이 없습니다")

        mask = np.triu(np.ones(residuals.shape, dtype=bool))
        limit = max(0.1, float(np.abs(residuals.to_numpy()).max()))

        fig, ax = plt.subplots(figsize=self.figsize)
        sns.heatmap(residuals,
                    mask=mask,
                    annot=True,
                    fmt='.3f',
                    cmap='RdBu_r',
                    center=0,
                    vmin=-limit,
                    vmax=limit,
                    square=True,
                    ax=ax,
                    cbar_kws={'label': 'Observed - implied correlation'})

        ax.set_title(title, fontsize=14, fontweight='bold')
        plt.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=300, bbox_inches='tight')
            logger.info(f"잔차 히트맵 저장 완료: {save_path}")

        return fig


def create_report_figures(results: Dict[str, Any],
                          output_dir: Optional[Union[str, Path]] = None) -> Dict[str, Path]:
    """
    보고서용 그림 두 개를 저장

    Args:
        results (Dict[str, Any]): 분석 결과
        output_dir (Optional[Union[str, Path]]): 그림 저장 디렉토리

    Returns:
        Dict[str, Path]: {'loadings': 경로, 'residuals': 경로}
    """
    if output_dir is None:
        output_dir = RESULTS_CONFIG["results_dir"] / RESULTS_CONFIG["figures_subdir"]
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    factor = results.get('factor_description', results.get('factor_name', ''))
    figures = {}

    loadings_path = output_dir / LOADINGS_FIGURE
    fig = FactorLoadingPlotter().plot_standardized_loadings(
        results['factor_loadings'], title=f"Standardized Loadings - {factor}",
        save_path=loadings_path
    )
    plt.close(fig)
    figures['loadings'] = loadings_path

    residuals_path = output_dir / RESIDUALS_FIGURE
    fig = ResidualHeatmapPlotter().plot_residual_correlations(
        results['residual_correlations'], save_path=residuals_path
    )
    plt.close(fig)
    figures['residuals'] = residuals_path

    return figures
