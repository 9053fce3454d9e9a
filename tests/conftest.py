"""
공통 테스트 fixture
"""

import numpy as np
import pandas as pd
import pytest

ITEMS = ['am1', 'am2', 'am3', 'am4', 'am5', 'am6']


def simulate_ordinal_survey(n: int = 800, loadings=(0.62, 0.66, 0.70, 0.73, 0.68, 0.64),
                            seed: int = 42) -> pd.DataFrame:
    """단일 요인 모형에서 생성한 5점 순서형 응답 (잠재 정규변수를 임계값으로 범주화)"""
    rng = np.random.default_rng(seed)
    factor = rng.standard_normal(n)
    thresholds = np.array([-1.5, -0.5, 0.5, 1.5])

    data = {'id': np.arange(1, n + 1)}
    for item, loading in zip(ITEMS, loadings):
        latent = loading * factor + np.sqrt(1 - loading ** 2) * rng.standard_normal(n)
        data[item] = np.searchsorted(thresholds, latent) + 1
    return pd.DataFrame(data)


@pytest.fixture
def survey_data():
    """테스트용 응답 데이터"""
    return simulate_ordinal_survey()


@pytest.fixture
def survey_csv(tmp_path, survey_data):
    """임시 CSV 파일로 저장된 응답 데이터"""
    path = tmp_path / "survey.csv"
    survey_data.to_csv(path, index=False)
    return path


@pytest.fixture
def fake_results():
    """추정기 없이 만든 결과 딕셔너리 (내보내기/보고서 테스트용)"""
    loadings = np.array([0.62, 0.66, 0.70, 0.73, 0.68, 0.64])
    implied = np.outer(loadings, loadings)
    np.fill_diagonal(implied, 1.0)
    residual_values = np.zeros((6, 6))
    residual_values[1, 0] = residual_values[0, 1] = 0.12
    residual_values[5, 4] = residual_values[4, 5] = -0.03
    residuals = pd.DataFrame(residual_values, index=ITEMS, columns=ITEMS)
    observed = pd.DataFrame(implied, index=ITEMS, columns=ITEMS) + residuals

    factor_loadings = pd.DataFrame({
        'Factor': 'academic_motivation',
        'Item': ITEMS,
        'Estimate': loadings,
        'Loading': loadings,
        'CI_Lower': loadings - 0.03,
        'CI_Upper': loadings + 0.03,
        'SE': 0.015,
        'Z_value': loadings / 0.015,
        'P_value': 0.0,
        'R2': loadings ** 2,
        'Significant': True
    })

    return {
        'analysis_type': 'single_factor',
        'factor_name': 'academic_motivation',
        'factor_description': 'Academic motivation',
        'model_spec': ("academic_motivation =~ lambda_am1*am1 + lambda_am2*am2 + lambda_am3*am3 + "
                       "lambda_am4*am4 + lambda_am5*am5 + lambda_am6*am6"),
        'data_source': 'survey.csv',
        'n_rows_loaded': 3300,
        'model_info': {
            'n_observations': 3221,
            'n_variables': 6,
            'items': ITEMS,
            'factor_name': 'academic_motivation',
            'estimator': 'DWLS',
            'optimizer': 'SLSQP',
            'ordinal': True,
            'mimic': 'Mplus',
            'std_lv': True,
            'converged': np.bool_(True),
            'semopy_version': 'test'
        },
        'factor_loadings': factor_loadings,
        'fit_indices': {
            'chi2': 113.77, 'df': 9, 'p_value': 0.0,
            'chi2_baseline': 9000.0, 'df_baseline': 15,
            'CFI': 0.99, 'TLI': 0.98,
            'RMSEA': 0.060, 'RMSEA_CI_Lower': 0.051, 'RMSEA_CI_Upper': 0.070,
            'RMSEA_p_close': 0.0335, 'SRMR': 0.025, 'n_observations': 3221
        },
        'observed_correlations': observed,
        'implied_correlations': pd.DataFrame(implied, index=ITEMS, columns=ITEMS),
        'residual_correlations': residuals,
        'reliability_stats': {
            'cronbach_alpha': 0.80, 'ordinal_alpha': 0.84,
            'composite_reliability': 0.84, 'ave': 0.46
        }
    }
