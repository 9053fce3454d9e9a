"""
semopy 순서형 CFA 통합 테스트

시뮬레이션 자료(단일 요인, 6문항, 5점 척도)로 모델 적합 결과의 불변 조건을 확인하고,
실제 설문 자료가 있으면 논문 보고치와 비교합니다.
"""

import numpy as np
import pandas as pd
import pytest

from motivation_cfa.config import (DATA_CONFIG, REFERENCE_VALUES, FactorAnalysisConfig,
                                   FactorModelSpecBuilder,
                                   create_factor_model_spec)
from motivation_cfa.factor_analyzer import FactorAnalyzer, SemopyAnalyzer, analyze_factor_loading
from motivation_cfa.fit_statistics import check_correlation_matrix

ITEMS = ['am1', 'am2', 'am3', 'am4', 'am5', 'am6']
TRUE_LOADINGS = np.array([0.62, 0.66, 0.70, 0.73, 0.68, 0.64])


@pytest.fixture(scope="module")
def fitted_results():
    """시뮬레이션 자료로 한 번 적합한 결과"""
    from conftest import simulate_ordinal_survey

    data = simulate_ordinal_survey()
    analyzer = SemopyAnalyzer(FactorAnalysisConfig())
    results = analyzer.fit_model(data, create_factor_model_spec(), ITEMS)
    return analyzer, data, results


class TestSemopyAnalyzer:

    def test_model_info(self, fitted_results):
        _, data, results = fitted_results
        info = results['model_info']

        assert info['n_observations'] == len(data)
        assert info['items'] == ITEMS
        assert info['estimator'] == 'DWLS'
        assert info['converged'] is True

    def test_loadings_table(self, fitted_results):
        _, _, results = fitted_results
        loadings = results['factor_loadings']

        assert loadings['Item'].tolist() == ITEMS
        assert loadings['Loading'].between(-1, 1).all()
        assert np.allclose(loadings['R2'], loadings['Loading'] ** 2, atol=1e-3)
        assert (loadings['CI_Lower'] <= loadings['Loading']).all()
        assert (loadings['Loading'] <= loadings['CI_Upper']).all()
        assert loadings['Significant'].all()

    def test_loadings_recover_simulation(self, fitted_results):
        _, _, results = fitted_results
        estimated = results['factor_loadings']['Loading'].to_numpy()
        assert np.allclose(estimated, TRUE_LOADINGS, atol=0.12)

    def test_fit_indices(self, fitted_results):
        _, _, results = fitted_results
        fit = results['fit_indices']

        assert fit['df'] == 9
        assert fit['chi2'] >= 0
        assert 0 <= fit['p_value'] <= 1
        assert fit['RMSEA'] >= 0
        assert fit['RMSEA_CI_Lower'] <= fit['RMSEA'] <= fit['RMSEA_CI_Upper']
        assert 0 <= fit['RMSEA_p_close'] <= 1
        assert 0 <= fit['SRMR'] < 0.10
        assert np.isfinite(fit['CFI'])

    def test_correlation_matrices(self, fitted_results):
        _, _, results = fitted_results

        assert check_correlation_matrix(results['observed_correlations'], 1.0, 1e-6) is None
        assert check_correlation_matrix(results['implied_correlations'], 1.0, 1e-6) is None
        assert check_correlation_matrix(results['residual_correlations'], 0.0, 1e-6) is None

        residuals = results['residual_correlations']
        expected = results['observed_correlations'] - results['implied_correlations']
        assert list(residuals.index) == ITEMS
        assert np.allclose(residuals.to_numpy(), expected.to_numpy(), atol=1e-6)

    def test_reliability(self, fitted_results):
        _, _, results = fitted_results
        stats = results['reliability_stats']

        assert stats['n_items'] == 6
        assert 0 < stats['composite_reliability'] < 1
        assert stats['ave'] == pytest.approx(results['factor_loadings']['R2'].mean(), abs=1e-3)

    def test_deterministic(self, fitted_results):
        """같은 자료와 설정이면 같은 추정치"""
        _, data, results = fitted_results
        again = SemopyAnalyzer(FactorAnalysisConfig()).fit_model(data, create_factor_model_spec(), ITEMS)

        pd.testing.assert_frame_equal(results['factor_loadings'], again['factor_loadings'])
        assert results['fit_indices'] == again['fit_indices']

    def test_summary(self, fitted_results):
        analyzer, _, _ = fitted_results
        summary = analyzer.get_model_summary()

        assert "Sample size: 800" in summary
        assert "am6" in summary
        assert analyzer.get_fit_indices()['df'] == 9


class TestDataPreparation:
    """적합 전 자료 검증"""

    def test_not_fitted(self):
        analyzer = SemopyAnalyzer()
        with pytest.raises(ValueError):
            analyzer.get_factor_loadings_table()
        with pytest.raises(ValueError):
            analyzer.get_model_summary()

    def test_out_of_range_response(self, survey_data):
        data = survey_data.copy()
        data.loc[0, 'am1'] = 9

        with pytest.raises(ValueError, match="am1"):
            SemopyAnalyzer().fit_model(data, create_factor_model_spec(), ITEMS)

    def test_zero_variance_item(self, survey_data):
        data = survey_data.copy()
        data['am5'] = 3

        with pytest.raises(ValueError, match="am5"):
            SemopyAnalyzer().fit_model(data, create_factor_model_spec(), ITEMS)

    def test_missing_item_column(self, survey_data):
        with pytest.raises(ValueError):
            SemopyAnalyzer().fit_model(survey_data.drop(columns=['am2']),
                                       create_factor_model_spec(), ITEMS)

    def test_listwise_deletion(self, survey_data):
        data = survey_data.astype({'am3': float})
        data.loc[:19, 'am3'] = np.nan

        clean = SemopyAnalyzer()._prepare_data(data, ITEMS)
        assert len(clean) == len(data) - 20
        assert list(clean.columns) == ITEMS

    def test_degrees_of_freedom_mismatch(self):
        """추정기 자유도가 식별 규칙과 다르면 (예: loading이 추가로 고정됨) 오류"""
        analyzer = SemopyAnalyzer()
        analyzer._check_degrees_of_freedom(9, 6)

        with pytest.raises(ValueError, match="자유도"):
            analyzer._check_degrees_of_freedom(10, 6)


def test_large_sample_recovers_all_loadings():
    """N = 3,000 시뮬레이션: 모든 loading이 자유모수로 추정되고 참값 근처에서 회복되는지 확인"""
    from conftest import simulate_ordinal_survey

    data = simulate_ordinal_survey(n=3000, seed=7)
    results = SemopyAnalyzer().fit_model(data, create_factor_model_spec(), ITEMS)

    loadings = results['factor_loadings']
    assert loadings['Loading'].between(0.55, 0.80).all()
    assert loadings['R2'].lt(1.0).all()

    params = results['parameter_estimates']
    measurement = params[(params['op'] == '~') & (params['rval'] == 'academic_motivation')]
    assert len(measurement) == 6
    assert pd.to_numeric(measurement['Std. Err'], errors='coerce').notna().all()

    expected_df = FactorModelSpecBuilder().expected_degrees_of_freedom(len(ITEMS))
    assert results['fit_indices']['df'] == expected_df


def test_factor_analyzer_pipeline(survey_csv):
    analyzer = FactorAnalyzer(survey_csv)
    results = analyzer.analyze_single_factor()

    assert results['analysis_type'] == 'single_factor'
    assert results['factor_description'] == 'Academic motivation'
    assert results['n_rows_loaded'] == len(analyzer.data)
    assert "DEFINE(ordinal)" in results['model_spec']
    assert len(results['factor_loadings']) == 6


@pytest.mark.skipif(not DATA_CONFIG["survey_file"].exists(),
                    reason="실제 설문 자료가 없습니다")
def test_reference_values():
    """논문 보고치와 비교 (semopy에는 robust 보정 검정통계량이 없으므로 loading, R², SRMR만 비교)"""
    results = analyze_factor_loading()
    loadings = results['factor_loadings']
    low, high = REFERENCE_VALUES["loading_range"]
    r2_low, r2_high = REFERENCE_VALUES["r_squared_range"]

    assert results['model_info']['n_observations'] == REFERENCE_VALUES["n_observations"]
    assert results['fit_indices']['df'] == REFERENCE_VALUES["df"]
    assert loadings['Loading'].min() == pytest.approx(low, abs=0.02)
    assert loadings['Loading'].max() == pytest.approx(high, abs=0.02)
    assert loadings['R2'].min() == pytest.approx(r2_low, abs=0.03)
    assert loadings['R2'].max() == pytest.approx(r2_high, abs=0.03)
    assert results['fit_indices']['SRMR'] == pytest.approx(REFERENCE_VALUES["SRMR"], abs=0.01)
