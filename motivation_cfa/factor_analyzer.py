"""
Factor Analysis Module using semopy

이 모듈은 semopy를 사용하여 순서형 문항에 대한 확인적 요인분석(CFA)을 수행하고
적합도 지수, 잔차 상관행렬, 문항별 표준화 loading과 R²를 추출합니다.
"""

import logging
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd

# semopy 임포트
try:
    import semopy
    from semopy import Model
    from semopy.stats import calc_stats
except ImportError as e:
    logging.error("semopy 라이브러리를 찾을 수 없습니다. pip install semopy로 설치해주세요.")
    raise e

from .config import (FactorAnalysisConfig, FactorConfig, FactorModelSpecBuilder,
                     DATA_CONFIG, get_default_config)
from .data_loader import SurveyDataLoader, validate_item_categories
from .fit_statistics import (calc_r_squared, calc_residual_correlations, calc_rmsea,
                             calc_rmsea_confidence_interval, calc_rmsea_p_close,
                             calc_srmr, check_correlation_matrix, cov_to_corr,
                             standardized_confidence_interval)
from .reliability_calculator import ReliabilityCalculator

logger = logging.getLogger(__name__)


class SemopyAnalyzer:
    """semopy를 사용한 순서형 CFA 클래스"""

    def __init__(self, config: Optional[FactorAnalysisConfig] = None):
        """
        Semopy Analyzer 초기화

        Args:
            config (Optional[FactorAnalysisConfig]): 분석 설정
        """
        self.config = config if config is not None else get_default_config()
        self.model = None
        self.results = None
        self.fitted = False

    def fit_model(self, data: pd.DataFrame, model_spec: str, items: List[str],
                  factor_name: str = 'academic_motivation') -> Dict[str, Any]:
        """
        모델을 적합하고 결과를 반환

        추정기에서 발생한 오류(비수렴, 특이행렬 등)는 로그를 남긴 뒤 그대로 전달합니다.

        Args:
            data (pd.DataFrame): 분석할 데이터
            model_spec (str): semopy 모델 스펙
            items (List[str]): 관측 문항
            factor_name (str): 잠재요인 이름

        Returns:
            Dict[str, Any]: 분석 결과
        """
        logger.info("semopy 모델 적합 시작")

        try:
            clean_data = self._prepare_data(data, items)

            self.model = Model(model_spec, mimic_lavaan=self.config.mimic is not None)

            logger.info(f"SEM 최적화 시작 (obj={self.config.estimator}, "
                        f"solver={self.config.optimizer})...")

            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                self.results = self.model.fit(
                    clean_data,
                    obj=self.config.estimator,
                    solver=self.config.optimizer
                )

            self.fitted = True
            self._log_solver_result()

            analysis_results = self._process_results(clean_data, items, factor_name)
            self.results = analysis_results

            logger.info("모델 적합 완료")
            return analysis_results

        except Exception as e:
            logger.error(f"모델 적합 중 오류 발생: {e}")
            raise

    def _log_solver_result(self) -> None:
        """최적화 결과 로깅"""
        last_result = getattr(self.model, 'last_result', None)
        if last_result is None:
            return

        logger.info("SEM 최적화 완료:")
        for attr, label in [('n_it', '반복 횟수'), ('fun', '목적함수 값'),
                            ('success', '수렴 여부'), ('message', '메시지')]:
            if hasattr(last_result, attr):
                logger.info(f"  {label}: {getattr(last_result, attr)}")

        if getattr(last_result, 'success', True) is False:
            logger.warning("최적화가 수렴하지 않았습니다. 결과 해석에 주의하세요.")

    def _prepare_data(self, data: pd.DataFrame, items: List[str]) -> pd.DataFrame:
        """
        분석용 데이터 전처리

        Args:
            data (pd.DataFrame): 원본 데이터
            items (List[str]): 분석 문항

        Returns:
            pd.DataFrame: 전처리된 데이터
        """
        missing_items = [item for item in items if item not in data.columns]
        if missing_items:
            raise ValueError(f"데이터에 없는 문항: {missing_items}")

        # 응답자 ID 등 식별 컬럼 제외
        clean_data = data[items].copy()

        validate_item_categories(clean_data, items, self.config.response_categories)

        if self.config.missing_data_method == 'listwise':
            n_before = len(clean_data)
            clean_data = clean_data.dropna()
            logger.info(f"결측치 제거 후 샘플 수: {len(clean_data)} (제거: {n_before - len(clean_data)})")

        zero_var_cols = clean_data.columns[clean_data.var() == 0]
        if len(zero_var_cols) > 0:
            raise ValueError(f"분산이 0인 문항이 있어 모델을 추정할 수 없습니다: {list(zero_var_cols)}")

        logger.info(f"전처리 완료: {clean_data.shape}")
        return clean_data

    def _process_results(self, clean_data: pd.DataFrame, items: List[str],
                         factor_name: str) -> Dict[str, Any]:
        """
        분석 결과를 처리하고 정리

        Args:
            clean_data (pd.DataFrame): 분석에 사용된 데이터
            items (List[str]): 관측 문항
            factor_name (str): 잠재요인 이름

        Returns:
            Dict[str, Any]: 정리된 분석 결과
        """
        last_result = getattr(self.model, 'last_result', None)
        results = {
            'model_info': {
                'n_observations': len(clean_data),
                'n_variables': len(items),
                'items': list(items),
                'factor_name': factor_name,
                'estimator': self.config.estimator,
                'optimizer': self.config.optimizer,
                'ordinal': self.config.ordinal,
                'mimic': self.config.mimic,
                'std_lv': self.config.std_lv,
                'converged': bool(getattr(last_result, 'success', True)),
                'semopy_version': getattr(semopy, '__version__', 'unknown')
            },
            'factor_loadings': pd.DataFrame(),
            'fit_indices': {},
            'observed_correlations': pd.DataFrame(),
            'implied_correlations': pd.DataFrame(),
            'residual_correlations': pd.DataFrame(),
            'reliability_stats': {}
        }

        observed, implied, residuals = self._extract_correlation_matrices(items)
        results['observed_correlations'] = observed
        results['implied_correlations'] = implied
        results['residual_correlations'] = residuals

        params = self.model.inspect(std_est=self.config.standardized)
        results['parameter_estimates'] = params
        results['factor_loadings'] = self._format_factor_loadings(params, items, factor_name)

        if self.config.calculate_fit_indices:
            fit_stats = calc_stats(self.model)
            results['fit_indices'] = self._format_fit_indices(fit_stats, len(clean_data),
                                                              calc_srmr(residuals))
            self._check_degrees_of_freedom(results['fit_indices'].get('df'), len(items))

        if self.config.calculate_reliability and not results['factor_loadings'].empty:
            calculator = ReliabilityCalculator()
            results['reliability_stats'] = calculator.calculate_factor_reliability(
                clean_data, results['factor_loadings'], observed
            )

        # 모델 객체 포함 (추가 inspect 등에 사용)
        results['model'] = self.model
        return results

    def _extract_correlation_matrices(self, items: List[str]):
        """관측/내재/잔차 상관행렬 추출 (문항 순서로 정렬)"""
        names = list(self.model.vars['observed'])
        sigma = self.model.calc_sigma()[0]
        observed_cov = np.asarray(self.model.mx_cov, dtype=float)

        observed = pd.DataFrame(cov_to_corr(observed_cov), index=names, columns=names)
        implied = pd.DataFrame(cov_to_corr(sigma), index=names, columns=names)
        residuals = calc_residual_correlations(observed_cov, sigma, names)

        for label, matrix, diagonal in [('관측 상관행렬', observed, 1.0),
                                        ('내재 상관행렬', implied, 1.0),
                                        ('잔차 상관행렬', residuals, 0.0)]:
            problem = check_correlation_matrix(matrix, diagonal, tolerance=1e-6)
            if problem:
                logger.warning(f"{label} 검증 실패: {problem}")

        order = [item for item in items if item in names]
        return (observed.loc[order, order], implied.loc[order, order],
                residuals.loc[order, order])

    def _format_factor_loadings(self, params: pd.DataFrame, items: List[str],
                                factor_name: str) -> pd.DataFrame:
        """
        문항별 loading 테이블 생성

        semopy에서는 측정모형이 '~' 연산자로 표시되며 lval이 문항, rval이 요인입니다.
        표준화 해의 SE, Z, P값은 비표준화 해에서 가져옵니다.
        """
        loadings = params[(params['op'] == '~') & (params['rval'] == factor_name)].copy()
        if loadings.empty:
            logger.warning(f"{factor_name}의 factor loading을 찾을 수 없습니다")
            return pd.DataFrame()

        loadings = loadings.set_index('lval').reindex(items)

        rows = []
        for item, row in loadings.iterrows():
            estimate = float(row['Estimate'])
            std_estimate = float(row['Est. Std']) if 'Est. Std' in row.index else estimate
            se = pd.to_numeric(row.get('Std. Err'), errors='coerce')
            z_value = pd.to_numeric(row.get('z-value'), errors='coerce')
            p_value = pd.to_numeric(row.get('p-value'), errors='coerce')

            std_se, ci_lower, ci_upper = standardized_confidence_interval(
                std_estimate, estimate, se, self.config.confidence_level
            )
            rows.append({
                'Factor': factor_name,
                'Item': item,
                'Estimate': estimate,
                'Loading': std_estimate,
                'CI_Lower': ci_lower,
                'CI_Upper': ci_upper,
                'SE': std_se,
                'Z_value': z_value,
                'P_value': p_value,
                'Significant': bool(p_value < 0.05) if not np.isnan(p_value) else False
            })

        formatted = pd.DataFrame(rows)
        formatted.insert(formatted.columns.get_loc('Significant'), 'R2',
                         calc_r_squared(formatted['Loading']))
        numeric_cols = formatted.select_dtypes(include=[np.number]).columns
        formatted[numeric_cols] = formatted[numeric_cols].round(4)
        return formatted

    @staticmethod
    def _stat_value(fit_stats: pd.DataFrame, name: str) -> float:
        """calc_stats 결과에서 스칼라 값 추출"""
        value = fit_stats[name]
        # pandas Series인 경우 첫 번째 값 추출
        if hasattr(value, 'iloc'):
            value = value.iloc[0]
        elif hasattr(value, 'item'):
            value = value.item()
        return float(value)

    def _format_fit_indices(self, fit_stats: pd.DataFrame, n_observations: int,
                            srmr: float) -> Dict[str, float]:
        """
        적합도 지수를 정리된 형태로 포맷

        검정통계량, CFI, TLI는 semopy에서 가져오고 RMSEA(점추정, 신뢰구간, close-fit)는
        mimic 설정의 표본 크기 규칙에 맞춰 다시 계산합니다.
        """
        chi2 = self._stat_value(fit_stats, 'chi2')
        df = int(round(self._stat_value(fit_stats, 'DoF')))
        n_effective = n_observations - self.config.rmsea_sample_divisor_offset

        rmsea_lower, rmsea_upper = calc_rmsea_confidence_interval(
            chi2, df, n_effective, self.config.rmsea_ci_level
        )

        fit_indices = {
            'chi2': round(chi2, 4),
            'df': df,
            'p_value': round(self._stat_value(fit_stats, 'chi2 p-value'), 4),
            'chi2_baseline': round(self._stat_value(fit_stats, 'chi2 Baseline'), 4),
            'df_baseline': int(round(self._stat_value(fit_stats, 'DoF Baseline'))),
            'CFI': round(self._stat_value(fit_stats, 'CFI'), 4),
            'TLI': round(self._stat_value(fit_stats, 'TLI'), 4),
            'RMSEA': round(calc_rmsea(chi2, df, n_effective), 4),
            'RMSEA_CI_Lower': round(rmsea_lower, 4),
            'RMSEA_CI_Upper': round(rmsea_upper, 4),
            'RMSEA_p_close': round(calc_rmsea_p_close(chi2, df, n_effective,
                                                      self.config.rmsea_close_fit), 4),
            'SRMR': round(srmr, 4),
            'n_observations': n_observations
        }
        return fit_indices

    def _check_degrees_of_freedom(self, df: Optional[int], n_items: int) -> None:
        """식별 규칙에서 기대되는 자유도와 추정기 자유도 비교 (불일치하면 ValueError)"""
        expected = FactorModelSpecBuilder().expected_degrees_of_freedom(n_items)
        if df is not None and df != expected:
            raise ValueError(f"자유도 불일치: 추정기 {df}, 기대값 {expected}. "
                             f"잠재변수 척도 설정(std_lv={self.config.std_lv})을 확인하세요.")

    def get_factor_loadings_table(self) -> pd.DataFrame:
        """Factor loadings 테이블 반환"""
        if not self.fitted:
            raise ValueError("모델이 적합되지 않았습니다")

        return self.results.get('factor_loadings', pd.DataFrame())

    def get_fit_indices(self) -> Dict[str, float]:
        """적합도 지수 반환"""
        if not self.fitted:
            raise ValueError("모델이 적합되지 않았습니다")

        return self.results.get('fit_indices', {})

    def get_model_summary(self) -> str:
        """모델 요약 문자열 반환"""
        if not self.fitted:
            raise ValueError("모델이 적합되지 않았습니다")

        info = self.results['model_info']
        summary_lines = []
        summary_lines.append("=== Ordinal CFA Results Summary ===")
        summary_lines.append(f"Sample size: {info['n_observations']}")
        summary_lines.append(f"Variables: {info['n_variables']}")
        summary_lines.append(f"Estimator: {info['estimator']} (mimic={info['mimic']})")
        summary_lines.append("")

        fit_indices = self.get_fit_indices()
        if fit_indices:
            summary_lines.append("Fit Indices:")
            for index, value in fit_indices.items():
                summary_lines.append(f"  {index}: {value}")

        loadings = self.get_factor_loadings_table()
        if not loadings.empty:
            summary_lines.append("")
            summary_lines.append("Standardized Loadings:")
            for _, row in loadings.iterrows():
                summary_lines.append(f"  {row['Item']}: {row['Loading']:.3f} (R2={row['R2']:.3f})")

        return "\n".join(summary_lines)


class FactorAnalyzer:
    """데이터 로딩, 모델 스펙 생성, 추정을 묶는 통합 클래스"""

    def __init__(self, data_path: Optional[Union[str, Path]] = None,
                 config: Optional[FactorAnalysisConfig] = None):
        """
        Factor Analyzer 초기화

        Args:
            data_path (Optional[Union[str, Path]]): 응답 데이터 파일
            config (Optional[FactorAnalysisConfig]): 분석 설정
        """
        self.config = config if config is not None else get_default_config()
        self.factor_config = FactorConfig()
        self.data_loader = SurveyDataLoader(data_path, self.factor_config)
        self.spec_builder = FactorModelSpecBuilder(self.factor_config)
        self.analyzer = SemopyAnalyzer(self.config)
        self.data = None

    def analyze_single_factor(self, factor_name: str = 'academic_motivation') -> Dict[str, Any]:
        """
        단일 요인 분석

        Args:
            factor_name (str): 분석할 요인 이름

        Returns:
            Dict[str, Any]: 분석 결과
        """
        self.data = self.data_loader.load_data(factor_name)
        items = self.factor_config.get_factor_items(factor_name)

        model_spec = self.spec_builder.create_single_factor_spec(factor_name, self.config, items)
        logger.info(f"모델 스펙:\n{model_spec}")

        results = self.analyzer.fit_model(self.data, model_spec, items, factor_name)
        results['analysis_type'] = 'single_factor'
        results['factor_name'] = factor_name
        results['factor_description'] = self.factor_config.get_factor_description(factor_name)
        results['model_spec'] = model_spec
        results['data_source'] = str(self.data_loader.data_path)
        results['n_rows_loaded'] = len(self.data)

        return results


def analyze_factor_loading(factor_name: str = 'academic_motivation',
                           data_path: Optional[Union[str, Path]] = None,
                           config: Optional[FactorAnalysisConfig] = None) -> Dict[str, Any]:
    """
    순서형 CFA를 수행하는 편의 함수

    Args:
        factor_name (str): 분석할 요인 이름
        data_path (Optional[Union[str, Path]]): 응답 데이터 파일 (기본값: DATA_CONFIG)
        config (Optional[FactorAnalysisConfig]): 분석 설정

    Returns:
        Dict[str, Any]: 분석 결과
    """
    analyzer = FactorAnalyzer(data_path or DATA_CONFIG["survey_file"], config)
    return analyzer.analyze_single_factor(factor_name)
