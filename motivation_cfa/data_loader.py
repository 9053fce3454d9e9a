"""
Survey Data Loader Module

이 모듈은 설문 응답 CSV 파일을 불러오고 순서형 문항의 범주 유효성을 검증합니다.
결측치는 이 단계에서 대체하지 않고 추정 단계의 결측치 처리 방식에 맡깁니다.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd

from .config import DATA_CONFIG, FactorConfig

logger = logging.getLogger(__name__)


class SurveyDataLoader:
    """설문 응답 CSV 파일을 로딩하는 클래스"""

    def __init__(self, data_path: Optional[Union[str, Path]] = None,
                 factor_config: Optional[FactorConfig] = None):
        """
        Survey Data Loader 초기화

        Args:
            data_path (Optional[Union[str, Path]]): 응답 데이터 파일 경로
            factor_config (Optional[FactorConfig]): 요인-문항 구조
        """
        if data_path is None:
            # 기본 경로: data/academic_motivation_survey.csv
            self.data_path = DATA_CONFIG["survey_file"]
        else:
            self.data_path = Path(data_path)

        self.factor_config = factor_config if factor_config is not None else FactorConfig()
        self._validate_data_file()

    def _validate_data_file(self) -> None:
        """데이터 파일 유효성 검증"""
        if not self.data_path.exists():
            raise FileNotFoundError(f"데이터 파일을 찾을 수 없습니다: {self.data_path}")

        if not self.data_path.is_file():
            raise ValueError(f"경로가 파일이 아닙니다: {self.data_path}")

    def load_data(self, factor_name: str = 'academic_motivation') -> pd.DataFrame:
        """
        응답 데이터를 로딩하고 검증

        Args:
            factor_name (str): 분석할 요인 이름 (필수 문항 확인용)

        Returns:
            pd.DataFrame: 응답 데이터
        """
        try:
            df = pd.read_csv(self.data_path, encoding='utf-8-sig')
            logger.info(f"응답 데이터 로딩 완료: {df.shape}")
        except Exception as e:
            logger.error(f"응답 데이터 로딩 실패: {e}")
            raise

        return self._validate_survey_data(df, factor_name)

    def _validate_survey_data(self, df: pd.DataFrame, factor_name: str) -> pd.DataFrame:
        """
        응답 데이터의 유효성 검증

        Args:
            df (pd.DataFrame): 검증할 데이터프레임
            factor_name (str): 요인 이름

        Returns:
            pd.DataFrame: 검증된 데이터프레임
        """
        if df.empty:
            raise ValueError(f"{self.data_path} 데이터가 비어있습니다")

        expected_items = self.factor_config.get_factor_items(factor_name)
        missing_items = [item for item in expected_items if item not in df.columns]
        if missing_items:
            raise ValueError(f"{factor_name} 문항이 데이터에 없습니다: {missing_items}")

        non_numeric = [item for item in expected_items
                       if not pd.api.types.is_numeric_dtype(df[item])]
        if non_numeric:
            raise ValueError(f"숫자형이 아닌 문항이 있습니다: {non_numeric}")

        # 결측치 확인 (대체하지 않음)
        missing_count = int(df[expected_items].isnull().sum().sum())
        if missing_count > 0:
            logger.info(f"{factor_name} 문항에서 {missing_count}개의 결측치 발견")

        return df


def check_item_categories(data: pd.DataFrame, items: Sequence[str],
                          categories: Sequence[int]) -> pd.DataFrame:
    """
    문항별로 허용 범주 밖의 값 개수를 집계

    Args:
        data (pd.DataFrame): 응답 데이터
        items (Sequence[str]): 확인할 문항
        categories (Sequence[int]): 허용되는 순서형 범주

    Returns:
        pd.DataFrame: Item, N_Valid, N_Missing, N_Out_Of_Range, Out_Of_Range_Values
    """
    allowed = set(categories)
    rows = []
    for item in items:
        values = data[item]
        observed = values.dropna()
        invalid = observed[~observed.isin(allowed)]
        rows.append({
            'Item': item,
            'N_Valid': int(len(observed) - len(invalid)),
            'N_Missing': int(values.isnull().sum()),
            'N_Out_Of_Range': int(len(invalid)),
            'Out_Of_Range_Values': sorted(invalid.unique().tolist())
        })
    return pd.DataFrame(rows)


def validate_item_categories(data: pd.DataFrame, items: Sequence[str],
                             categories: Sequence[int]) -> None:
    """
    허용 범주 밖의 값이 있으면 ValueError 발생

    범주 밖 응답은 모델 문제가 아니라 데이터 품질 문제로 취급합니다.
    """
    summary = check_item_categories(data, items, categories)
    offending = summary[summary['N_Out_Of_Range'] > 0]
    if not offending.empty:
        details = {row['Item']: row['Out_Of_Range_Values'] for _, row in offending.iterrows()}
        logger.error(f"허용 범주 {list(categories)} 밖의 응답 발견: {details}")
        raise ValueError(f"허용 범주 밖의 응답이 있는 문항: {details}")

    logger.info(f"{len(items)}개 문항 범주 검증 통과")


def get_item_frequencies(data: pd.DataFrame, items: Sequence[str],
                         categories: Sequence[int]) -> pd.DataFrame:
    """
    범주 x 문항 응답 빈도표 생성

    Returns:
        pd.DataFrame: index=범주, columns=문항 (+ 'Missing' 행)
    """
    table = pd.DataFrame(
        {item: data[item].value_counts().reindex(categories, fill_value=0) for item in items}
    )
    table.index.name = 'Category'
    table.loc['Missing'] = [int(data[item].isnull().sum()) for item in items]
    return table.astype(int)


def load_survey_data(data_path: Optional[Union[str, Path]] = None,
                     factor_name: str = 'academic_motivation') -> pd.DataFrame:
    """
    응답 데이터를 로딩하는 편의 함수

    Args:
        data_path (Optional[Union[str, Path]]): 데이터 파일 경로
        factor_name (str): 요인 이름

    Returns:
        pd.DataFrame: 로딩된 데이터
    """
    loader = SurveyDataLoader(data_path)
    return loader.load_data(factor_name)
