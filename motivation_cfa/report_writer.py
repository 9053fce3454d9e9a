"""
Narrative Report Writer Module

분석 결과를 사회복지 연구자가 읽을 수 있는 Markdown 보고서(표 + 서술문 + 그림 참조)로 작성합니다.
적합도 판단 기준은 서술문에 함께 제시하며 최종 해석은 독자에게 맡깁니다.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .config import RESULTS_CONFIG
from .data_loader import get_item_frequencies
from .results_exporter import interpret_fit_index

logger = logging.getLogger(__name__)

FIT_CUTOFFS = {
    'RMSEA': '<= .05 close, .05-.08 reasonable, >= .10 poor',
    'CFI': '>= .95',
    'TLI': '>= .95',
    'SRMR': '<= .08',
}


def format_stat(value: Optional[float], digits: int = 3, leading_zero: bool = False) -> str:
    """APA 형식 숫자 (|값| < 1 이고 leading_zero=False이면 앞의 0 생략)"""
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "--"
    text = f"{value:.{digits}f}"
    if not leading_zero and abs(value) < 1:
        text = text.replace("0.", ".", 1)
    return text


def format_count(value: Optional[int]) -> str:
    """천 단위 구분 정수 (값이 없으면 "--")"""
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "--"
    return f"{int(value):,}"


def format_p_value(p_value: Optional[float]) -> str:
    """p값 표기 (p < .001)"""
    if p_value is None or (isinstance(p_value, float) and np.isnan(p_value)):
        return "--"
    if p_value < 0.001:
        return "< .001"
    return f"= {format_stat(p_value)}"


class NarrativeReportWriter:
    """CFA 결과 서술형 보고서 작성 클래스"""

    def __init__(self, output_dir: Optional[Union[str, Path]] = None):
        """
        Args:
            output_dir (Optional[Union[str, Path]]): 보고서 저장 디렉토리
        """
        if output_dir is None:
            self.output_dir = RESULTS_CONFIG["results_dir"]
        else:
            self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def write_report(self, results: Dict[str, Any],
                     data: Optional[pd.DataFrame] = None,
                     figures: Optional[Dict[str, Path]] = None,
                     filename: Optional[str] = None,
                     categories: Sequence[int] = (1, 2, 3, 4, 5)) -> Path:
        """
        Markdown 보고서 작성

        Args:
            results (Dict[str, Any]): 분석 결과
            data (Optional[pd.DataFrame]): 원자료 (응답 빈도표용)
            figures (Optional[Dict[str, Path]]): create_report_figures 반환값
            filename (Optional[str]): 파일명
            categories (Sequence[int]): 응답 범주

        Returns:
            Path: 저장된 보고서 경로
        """
        file_path = self.output_dir / (filename or RESULTS_CONFIG["report_filename"])
        text = self.build_report(results, data, figures, categories)

        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(text)

        logger.info(f"서술형 보고서 저장 완료: {file_path}")
        return file_path

    def build_report(self, results: Dict[str, Any],
                     data: Optional[pd.DataFrame] = None,
                     figures: Optional[Dict[str, Path]] = None,
                     categories: Sequence[int] = (1, 2, 3, 4, 5)) -> str:
        """보고서 본문 문자열 생성"""
        description = results.get('factor_description', results.get('factor_name', 'Latent factor'))

        sections = [
            f"# Confirmatory Factor Analysis: {description}",
            f"_Generated {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}_",
            self._data_section(results, data, categories),
            self._model_section(results),
            self._fit_section(results.get('fit_indices', {})),
            self._loadings_section(results.get('factor_loadings', pd.DataFrame()), figures),
            self._residuals_section(results.get('residual_correlations', pd.DataFrame()), figures),
        ]
        if results.get('reliability_stats'):
            sections.append(self._reliability_section(results['reliability_stats']))

        return "\n\n".join(section for section in sections if section) + "\n"

    def _data_section(self, results: Dict[str, Any], data: Optional[pd.DataFrame],
                      categories: Sequence[int]) -> str:
        info = results.get('model_info', {})
        items: List[str] = info.get('items', [])
        n_loaded = results.get('n_rows_loaded', info.get('n_observations'))
        n_used = info.get('n_observations')

        lines = ["## Data",
                 f"The analysis used {format_count(n_used)} of {format_count(n_loaded)} respondents "
                 f"({len(items)} items, {len(categories)}-point ordered response scale). "
                 f"Respondents with any missing item response were excluded listwise."]

        if data is not None and items:
            freq = get_item_frequencies(data, items, categories)
            lines.append("")
            lines.append("**Table 1.** Response frequencies by item")
            lines.append("")
            lines.append(freq.to_markdown())

        return "\n".join(lines)

    def _model_section(self, results: Dict[str, Any]) -> str:
        info = results.get('model_info', {})
        lines = ["## Model",
                 f"A single-factor model was specified in which all {info.get('n_variables', '')} "
                 f"items load on one latent factor. Items were treated as "
                 f"{'ordinal' if info.get('ordinal') else 'continuous'}; the model was estimated "
                 f"with {info.get('estimator')} in semopy "
                 f"({self._mimic_note(info.get('mimic'))}), and the latent variance was "
                 f"{'fixed to 1 with all loadings freely estimated' if info.get('std_lv') else 'identified by fixing the first loading to 1'}.",
                 ""]
        if results.get('model_spec'):
            lines.extend(["```", results['model_spec'], "```"])
        if info.get('converged') is False:
            lines.append("")
            lines.append("**Warning:** the optimizer did not report convergence.")
        return "\n".join(lines)

    def _fit_section(self, fit: Dict[str, Any]) -> str:
        if not fit:
            return ""

        rows = []
        for key in ['RMSEA', 'CFI', 'TLI', 'SRMR']:
            if key in fit:
                rows.append({'Index': key, 'Value': format_stat(fit[key]),
                             'Conventional cutoff': FIT_CUTOFFS.get(key, ''),
                             'Label': interpret_fit_index(key, fit[key])})
        table = pd.DataFrame(rows)

        chi2_text = (f"The chi-square test of exact fit gave "
                     f"chi2({fit['df']}) = {fit['chi2']:.2f}, p {format_p_value(fit['p_value'])}. "
                     f"With {fit['n_observations']:,} respondents this test is sensitive to trivial "
                     f"misfit, so approximate fit indices are considered as well.")
        rmsea_text = (f"RMSEA was {format_stat(fit['RMSEA'])}, 90% CI "
                      f"[{format_stat(fit['RMSEA_CI_Lower'])}, {format_stat(fit['RMSEA_CI_Upper'])}], "
                      f"p-close {format_p_value(fit['RMSEA_p_close'])} "
                      f"(values <= .05 suggest close fit, .05 to .08 reasonable fit, >= .10 poor fit).")
        cfi_text = (f"CFI was {format_stat(fit['CFI'])} (values >= .95 are commonly taken to "
                    f"indicate good fit) and SRMR was {format_stat(fit['SRMR'])} "
                    f"(values <= .08 are commonly taken to indicate good fit).")

        return "\n".join(["## Model fit", chi2_text, "", rmsea_text, cfi_text, "",
                          "**Table 2.** Approximate fit indices", "",
                          table.to_markdown(index=False, disable_numparse=True)])

    def _loadings_section(self, loadings: pd.DataFrame,
                          figures: Optional[Dict[str, Path]]) -> str:
        if loadings.empty:
            return ""

        table = pd.DataFrame({
            'Item': loadings['Item'],
            'Std. loading': loadings['Loading'].map(format_stat),
            '95% CI': [f"[{format_stat(lo)}, {format_stat(hi)}]"
                       for lo, hi in zip(loadings['CI_Lower'], loadings['CI_Upper'])],
            'SE': loadings['SE'].map(format_stat),
            'z': loadings['Z_value'].map(lambda v: format_stat(v, 2, leading_zero=True)),
            'p': loadings['P_value'].map(format_p_value),
            'R2': loadings['R2'].map(format_stat),
        })

        strong = loadings.loc[loadings['R2'] >= 0.50, 'Item'].tolist()
        lines = ["## Parameter estimates",
                 f"Standardized loadings ranged from {format_stat(loadings['Loading'].min(), 2)} "
                 f"to {format_stat(loadings['Loading'].max(), 2)}, and the proportion of item "
                 f"variance explained by the factor (R2) ranged from "
                 f"{format_stat(loadings['R2'].min(), 2)} to {format_stat(loadings['R2'].max(), 2)}. "
                 + (f"R2 reached the desirable level of .50 for {', '.join(strong)}."
                    if strong else "No item reached the desirable R2 level of .50."),
                 "",
                 "**Table 3.** Standardized loadings and explained variance",
                 "",
                 table.to_markdown(index=False, disable_numparse=True)]

        if figures and 'loadings' in figures:
            lines.extend(["", f"![Figure 1. Standardized loadings]({self._relative(figures['loadings'])})"])
        return "\n".join(lines)

    def _residuals_section(self, residuals: pd.DataFrame,
                           figures: Optional[Dict[str, Path]]) -> str:
        if residuals.empty:
            return ""

        values = residuals.to_numpy(dtype=float)
        lower = np.tril_indices_from(values, k=-1)
        abs_values = np.abs(values[lower])
        largest = int(np.argmax(abs_values))
        row_name = residuals.index[lower[0][largest]]
        col_name = residuals.columns[lower[1][largest]]
        n_large = int(np.sum(abs_values > 0.10))

        formatted = residuals.apply(lambda col: col.map(format_stat))
        lines = ["## Residual correlations",
                 f"The largest absolute residual correlation was "
                 f"{format_stat(values[lower][largest])} ({row_name} with {col_name}); "
                 f"{n_large} residual correlation(s) exceeded .10 in absolute value.",
                 "",
                 "**Table 4.** Residual correlations (observed minus model-implied)",
                 "",
                 formatted.to_markdown(disable_numparse=True)]

        if figures and 'residuals' in figures:
            lines.extend(["", f"![Figure 2. Residual correlations]({self._relative(figures['residuals'])})"])
        return "\n".join(lines)

    def _reliability_section(self, stats: Dict[str, Any]) -> str:
        return "\n".join([
            "## Reliability",
            f"Cronbach's alpha was {format_stat(stats.get('cronbach_alpha'))}, ordinal alpha was "
            f"{format_stat(stats.get('ordinal_alpha'))}, composite reliability (omega) was "
            f"{format_stat(stats.get('composite_reliability'))}, and the average variance "
            f"extracted was {format_stat(stats.get('ave'))}."
        ])

    @staticmethod
    def _mimic_note(mimic: Optional[str]) -> str:
        """mimic 설정 설명 (semopy에는 Mplus 모드가 없어 Mplus는 RMSEA 표본 크기 규칙만 바뀜)"""
        if mimic is None:
            return "no mimic target; RMSEA uses N - 1"
        divisor = "N" if mimic == 'Mplus' else "N - 1"
        return f"mimic = {mimic}: semopy lavaan-compatible mode, RMSEA uses {divisor}"

    def _relative(self, path: Path) -> str:
        path = Path(path)
        try:
            return path.resolve().relative_to(self.output_dir.resolve()).as_posix()
        except ValueError:
            return path.as_posix()


def write_narrative_report(results: Dict[str, Any],
                           output_dir: Optional[Union[str, Path]] = None,
                           data: Optional[pd.DataFrame] = None,
                           figures: Optional[Dict[str, Path]] = None) -> Path:
    """서술형 보고서를 작성하는 편의 함수"""
    return NarrativeReportWriter(output_dir).write_report(results, data, figures)
