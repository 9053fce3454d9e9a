"""
응답 데이터 로딩 및 범주 검증 테스트
"""

import numpy as np
import pandas as pd
import pytest

from motivation_cfa.data_loader import (SurveyDataLoader, check_item_categories,
                                        get_item_frequencies, load_survey_data,
                                        validate_item_categories)

ITEMS = ['am1', 'am2', 'am3', 'am4', 'am5', 'am6']


class TestSurveyDataLoader:

    def test_load_data(self, survey_csv, survey_data):
        df = SurveyDataLoader(survey_csv).load_data()
        assert df.shape == survey_data.shape
        assert set(ITEMS).issubset(df.columns)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SurveyDataLoader(tmp_path / "none.csv")

    def test_directory_path(self, tmp_path):
        with pytest.raises(ValueError):
            SurveyDataLoader(tmp_path)

    def test_missing_items(self, tmp_path, survey_data):
        path = tmp_path / "partial.csv"
        survey_data.drop(columns=['am6']).to_csv(path, index=False)

        with pytest.raises(ValueError, match="am6"):
            load_survey_data(path)

    def test_non_numeric_items(self, tmp_path, survey_data):
        path = tmp_path / "text.csv"
        df = survey_data.copy()
        df['am2'] = df['am2'].map(lambda v: f"level{v}")
        df.to_csv(path, index=False)

        with pytest.raises(ValueError):
            load_survey_data(path)

    def test_missing_values_are_kept(self, tmp_path, survey_data):
        """결측치는 로딩 단계에서 대체/삭제하지 않음"""
        path = tmp_path / "missing.csv"
        df = survey_data.copy().astype({'am3': float})
        df.loc[:9, 'am3'] = np.nan
        df.to_csv(path, index=False)

        loaded = load_survey_data(path)
        assert len(loaded) == len(df)
        assert loaded['am3'].isnull().sum() == 10

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        pd.DataFrame(columns=ITEMS).to_csv(path, index=False)

        with pytest.raises(ValueError):
            load_survey_data(path)


class TestItemCategories:
    """순서형 범주 검증 테스트"""

    def test_valid_categories(self, survey_data):
        summary = check_item_categories(survey_data, ITEMS, [1, 2, 3, 4, 5])
        assert (summary['N_Out_Of_Range'] == 0).all()
        assert (summary['N_Valid'] == len(survey_data)).all()
        validate_item_categories(survey_data, ITEMS, [1, 2, 3, 4, 5])

    def test_out_of_range_detected(self, survey_data):
        df = survey_data.copy()
        df.loc[0, 'am4'] = 7
        df.loc[1, 'am4'] = 0

        summary = check_item_categories(df, ITEMS, [1, 2, 3, 4, 5]).set_index('Item')
        assert summary.loc['am4', 'N_Out_Of_Range'] == 2
        assert summary.loc['am4', 'Out_Of_Range_Values'] == [0, 7]

        with pytest.raises(ValueError, match="am4"):
            validate_item_categories(df, ITEMS, [1, 2, 3, 4, 5])

    def test_missing_not_counted_as_out_of_range(self):
        df = pd.DataFrame({'am1': [1, 2, np.nan, 5], 'am2': [3, 3, 4, np.nan]})
        summary = check_item_categories(df, ['am1', 'am2'], [1, 2, 3, 4, 5])

        assert summary['N_Out_Of_Range'].tolist() == [0, 0]
        assert summary['N_Missing'].tolist() == [1, 1]
        assert summary['N_Valid'].tolist() == [3, 3]


def test_item_frequencies():
    df = pd.DataFrame({'am1': [1, 1, 2, 5, np.nan], 'am2': [3, 3, 3, 4, 4]})
    freq = get_item_frequencies(df, ['am1', 'am2'], [1, 2, 3, 4, 5])

    assert list(freq.columns) == ['am1', 'am2']
    assert freq.loc[1, 'am1'] == 2
    assert freq.loc[3, 'am1'] == 0
    assert freq.loc[3, 'am2'] == 3
    assert freq.loc['Missing', 'am1'] == 1
    assert freq.loc['Missing', 'am2'] == 0
    # 범주 빈도 + 결측 = 전체 응답자 수
    assert (freq.sum() == len(df)).all()
