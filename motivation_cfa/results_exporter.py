"""
Factor Analysis Results Exporter Module

이 모듈은 순서형 CFA 결과를 CSV/JSON 파일로 저장하는 기능을 제공합니다.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd

from .config import RESULTS_CONFIG

logger = logging.getLogger(__name__)

FIT_INDEX_LABELS = {
    'chi2': 'Chi-square',
    'df': 'Degrees of freedom',
    'p_value': 'Chi-square p-value',
    'CFI': 'CFI',
    'TLI': 'TLI',
    'RMSEA': 'RMSEA',
    'RMSEA_CI_Lower': 'RMSEA 90% CI lower',
    'RMSEA_CI_Upper': 'RMSEA 90% CI upper',
    'RMSEA_p_close': 'RMSEA p-close (H0: RMSEA <= .05)',
    'SRMR': 'SRMR',
}


def interpret_fit_index(index_name: str, value: float) -> str:
    """적합도 지수 값 해석 (관례적 기준)"""
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "N/A"
    if index_name in ['CFI', 'TLI']:
        if value >= 0.95:
            return "Good"
        elif value >= 0.90:
            return "Acceptable"
        else:
            return "Poor"
    elif index_name in ['RMSEA', 'RMSEA_CI_Upper']:
        if value <= 0.05:
            return "Close"
        elif value <= 0.08:
            return "Reasonable"
        elif value < 0.10:
            return "Mediocre"
        else:
            return "Poor"
    elif index_name == 'SRMR':
        if value <= 0.08:
            return "Good"
        else:
            return "Poor"
    else:
        return "N/A"


def interpret_loading_strength(loading: float) -> str:
    """Loading 강도 해석"""
    abs_loading = abs(loading)
    if abs_loading >= 0.7:
        return "Strong"
    elif abs_loading >= 0.5:
        return "Moderate"
    elif abs_loading >= 0.3:
        return "Weak"
    else:
        return "Very Weak"


class FactorResultsExporter:
    """Factor Analysis 결과를 내보내는 클래스"""

    def __init__(self, output_dir: Optional[Union[str, Path]] = None):
        """
        Results Exporter 초기화

        Args:
            output_dir (Union[str, Path]): 결과 저장 디렉토리
        """
        if output_dir is None:
            self.output_dir = RESULTS_CONFIG["results_dir"]
        else:
            self.output_dir = Path(output_dir)

        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _default_filename(self, prefix: str, results: Dict[str, Any], suffix: str) -> str:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        analysis_type = results.get('analysis_type', 'factor_analysis')
        return f"{prefix}_{analysis_type}_{timestamp}.{suffix}"

    def export_factor_loadings(self, results: Dict[str, Any],
                               filename: Optional[str] = None) -> Path:
        """
        문항별 loading 테이블을 CSV 파일로 내보내기

        Args:
            results (Dict[str, Any]): 분석 결과
            filename (Optional[str]): 파일명 (기본값: 자동 생성)

        Returns:
            Path: 저장된 파일 경로
        """
        if 'factor_loadings' not in results or results['factor_loadings'].empty:
            raise ValueError("Factor loadings 데이터가 없습니다")

        if filename is None:
            filename = self._default_filename("factor_loadings", results, "csv")

        file_path = self.output_dir / filename

        loadings_df = results['factor_loadings'].copy()
        loadings_df['Loading_Strength'] = loadings_df['Loading'].apply(interpret_loading_strength)
        loadings_df['Sample_Size'] = results.get('model_info', {}).get('n_observations', 'unknown')

        loadings_df.to_csv(file_path, index=False, encoding='utf-8-sig')
        logger.info(f"Factor loadings 저장 완료: {file_path}")

        return file_path

    def export_fit_indices(self, results: Dict[str, Any],
                           filename: Optional[str] = None) -> Path:
        """
        적합도 지수를 CSV 파일로 내보내기

        Args:
            results (Dict[str, Any]): 분석 결과
            filename (Optional[str]): 파일명

        Returns:
            Path: 저장된 파일 경로
        """
        if 'fit_indices' not in results or not results['fit_indices']:
            raise ValueError("적합도 지수 데이터가 없습니다")

        if filename is None:
            filename = self._default_filename("fit_indices", results, "csv")

        file_path = self.output_dir / filename

        fit_data = []
        for index_name, value in results['fit_indices'].items():
            fit_data.append({
                'Fit_Index': index_name,
                'Label': FIT_INDEX_LABELS.get(index_name, index_name),
                'Value': value,
                'Interpretation': interpret_fit_index(index_name, value)
            })

        fit_df = pd.DataFrame(fit_data)
        fit_df.to_csv(file_path, index=False, encoding='utf-8-sig')
        logger.info(f"적합도 지수 저장 완료: {file_path}")

        return file_path

    def export_residual_correlations(self, results: Dict[str, Any],
                                     filename: Optional[str] = None) -> Path:
        """잔차 상관행렬을 CSV 파일로 내보내기"""
        residuals = results.get('residual_correlations')
        if residuals is None or residuals.empty:
            raise ValueError("잔차 상관행렬 데이터가 없습니다")

        if filename is None:
            filename = self._default_filename("residual_correlations", results, "csv")

        file_path = self.output_dir / filename
        residuals.round(4).to_csv(file_path, encoding='utf-8-sig')
        logger.info(f"잔차 상관행렬 저장 완료: {file_path}")

        return file_path

    def export_metadata(self, results: Dict[str, Any],
                        filename: Optional[str] = None) -> Path:
        """
        분석 메타데이터를 JSON 파일로 내보내기

        Args:
            results (Dict[str, Any]): 분석 결과
            filename (Optional[str]): 파일명

        Returns:
            Path: 저장된 파일 경로
        """
        if filename is None:
            filename = self._default_filename("factor_analysis_metadata", results, "json")

        file_path = self.output_dir / filename

        loadings = results.get('factor_loadings', pd.DataFrame())
        metadata = {
            'analysis_timestamp': datetime.now().isoformat(),
            'analysis_type': results.get('analysis_type', 'unknown'),
            'factor_name': results.get('factor_name'),
            'model_spec': results.get('model_spec'),
            'data_source': results.get('data_source'),
            'model_info': results.get('model_info', {}),
            'fit_indices': results.get('fit_indices', {}),
            'reliability_stats': results.get('reliability_stats', {}),
            'n_items': len(loadings)
        }

        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(_json_safe(metadata), f, indent=2, ensure_ascii=False,
                      allow_nan=False, default=_json_default)

        logger.info(f"메타데이터 저장 완료: {file_path}")
        return file_path

    def export_comprehensive_results(self, results: Dict[str, Any],
                                     base_filename: Optional[str] = None) -> Dict[str, Path]:
        """
        모든 결과를 종합적으로 내보내기

        개별 파일 저장이 실패하면 경고를 남기고 나머지 파일 저장을 계속합니다.

        Args:
            results (Dict[str, Any]): 분석 결과
            base_filename (Optional[str]): 기본 파일명

        Returns:
            Dict[str, Path]: 저장된 파일들의 경로
        """
        if base_filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            analysis_type = results.get('analysis_type', 'factor_analysis')
            base_filename = f"factor_analysis_{analysis_type}_{timestamp}"

        saved_files = {}
        exports = [
            ('factor_loadings', self.export_factor_loadings, f"{base_filename}_loadings.csv"),
            ('fit_indices', self.export_fit_indices, f"{base_filename}_fit_indices.csv"),
            ('residual_correlations', self.export_residual_correlations,
             f"{base_filename}_residual_correlations.csv"),
            ('metadata', self.export_metadata, f"{base_filename}_metadata.json"),
        ]

        for key, export_func, filename in exports:
            try:
                saved_files[key] = export_func(results, filename)
            except (ValueError, OSError) as e:
                logger.warning(f"{key} 저장 실패: {e}")

        logger.info(f"종합 결과 저장 완료: {len(saved_files)}개 파일")
        return saved_files


def _json_safe(value: Any) -> Any:
    """NaN/무한대를 None으로 바꿔 표준 JSON으로 저장 가능하게 변환 (중첩 구조 포함)"""
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, np.ndarray):
        return _json_safe(value.tolist())
    if isinstance(value, (float, np.floating)) and not np.isfinite(value):
        return None
    return value


def _json_default(value: Any) -> Any:
    """numpy 타입을 JSON 직렬화 가능한 값으로 변환"""
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return None if np.isnan(value) else float(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, Path):
        return str(value)
    raise TypeError(f"JSON으로 직렬화할 수 없는 타입: {type(value)}")


def export_factor_results(results: Dict[str, Any],
                          output_dir: Optional[Union[str, Path]] = None,
                          comprehensive: bool = True) -> Union[Path, Dict[str, Path]]:
    """
    Factor analysis 결과를 내보내는 편의 함수

    Args:
        results (Dict[str, Any]): 분석 결과
        output_dir (Optional[Union[str, Path]]): 출력 디렉토리
        comprehensive (bool): 종합 결과 내보내기 여부

    Returns:
        Union[Path, Dict[str, Path]]: 저장된 파일 경로(들)
    """
    exporter = FactorResultsExporter(output_dir)

    if comprehensive:
        return exporter.export_comprehensive_results(results)
    else:
        return exporter.export_factor_loadings(results)
