"""
Factor Analysis Configuration Module

이 모듈은 순서형(ordinal) 확인적 요인분석을 위한 설정과 모델 스펙을 관리합니다.
FactorConfig에 정의된 요인-문항 구조로부터 semopy 모델 스펙을 생성합니다.

Author: Academic Motivation Survey Team
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

# 데이터 디렉토리 설정
DATA_CONFIG = {
    "data_dir": Path("data"),
    "survey_file": Path("data") / "academic_motivation_survey.csv",
    "id_columns": ["id"],
}

# 결과 디렉토리 설정
RESULTS_CONFIG = {
    "results_dir": Path("results") / "factor_analysis",
    "figures_subdir": "figures",
    "report_filename": "cfa_report.md",
}

# 로그 설정
LOGGING_CONFIG = {
    "log_dir": Path("logs"),
    "factor_analysis_log": Path("logs") / "factor_analysis.log",
    "log_level": "INFO",
    "log_format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# 논문에 보고된 기준값 (N = 3,221)
REFERENCE_VALUES = {
    "n_observations": 3221,
    "chi2": 113.77,
    "df": 9,
    "RMSEA": 0.060,
    "RMSEA_CI_Lower": 0.051,
    "RMSEA_CI_Upper": 0.070,
    "CFI": 0.99,
    "SRMR": 0.025,
    "loading_range": (0.62, 0.73),
    "r_squared_range": (0.39, 0.53),
}

VALID_ESTIMATORS = ['MLW', 'ULS', 'GLS', 'WLS', 'DWLS', 'FIML']
ESTIMATOR_ALIASES = {'WLSMV': 'DWLS', 'ML': 'MLW'}
VALID_OPTIMIZERS = ['SLSQP', 'L-BFGS-B', 'trust-constr']
VALID_MIMIC = [None, 'lavaan', 'Mplus']


@dataclass
class FactorAnalysisConfig:
    """Factor Analysis 설정을 저장하는 데이터클래스"""

    # 분석 설정
    estimator: str = 'DWLS'  # WLSMV 점추정치와 동일한 대각가중최소제곱
    optimizer: str = 'SLSQP'
    ordinal: bool = True
    mimic: Optional[str] = 'Mplus'
    std_lv: bool = True  # 잠재변수 분산 1로 고정

    # 모델 적합도 설정
    calculate_fit_indices: bool = True
    confidence_level: float = 0.95
    rmsea_ci_level: float = 0.90
    rmsea_close_fit: float = 0.05

    # 출력 설정
    standardized: bool = True
    calculate_reliability: bool = True

    # 데이터 설정
    missing_data_method: str = 'listwise'
    response_categories: List[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])

    def __post_init__(self):
        """초기화 후 검증"""
        self.estimator = ESTIMATOR_ALIASES.get(self.estimator, self.estimator)
        if self.estimator not in VALID_ESTIMATORS:
            raise ValueError(f"지원되지 않는 추정방법: {self.estimator}")

        if self.optimizer not in VALID_OPTIMIZERS:
            raise ValueError(f"지원되지 않는 최적화 방법: {self.optimizer}")

        if self.mimic not in VALID_MIMIC:
            raise ValueError(f"지원되지 않는 mimic 옵션: {self.mimic}")

        for name in ('confidence_level', 'rmsea_ci_level'):
            level = getattr(self, name)
            if not 0 < level < 1:
                raise ValueError(f"{name}은 0과 1 사이여야 합니다: {level}")

        if self.missing_data_method not in ('listwise', 'fiml'):
            raise ValueError(f"지원되지 않는 결측치 처리 방법: {self.missing_data_method}")

        if self.missing_data_method == 'fiml' and self.estimator != 'FIML':
            raise ValueError("fiml 결측치 처리는 FIML 추정방법에서만 사용할 수 있습니다")

        if len(self.response_categories) < 2:
            raise ValueError("응답 범주는 최소 2개 이상이어야 합니다")

    @property
    def rmsea_sample_divisor_offset(self) -> int:
        """RMSEA 계산 시 N에서 뺄 값 (Mplus는 N, 그 외는 N - 1)"""
        return 0 if self.mimic == 'Mplus' else 1


class FactorConfig:
    """요인-문항 구조를 관리하는 클래스 (분석 시점에 고정)"""

    FACTOR_DEFINITIONS = {
        'academic_motivation': {
            'description': 'Academic motivation',
            'items': ['am1', 'am2', 'am3', 'am4', 'am5', 'am6'],
        },
    }

    def get_all_factors(self) -> List[str]:
        """정의된 모든 요인 이름 반환"""
        return list(self.FACTOR_DEFINITIONS.keys())

    def get_factor_items(self, factor_name: str) -> List[str]:
        """요인별 문항 목록 반환"""
        if factor_name not in self.FACTOR_DEFINITIONS:
            raise ValueError(f"알 수 없는 요인: {factor_name}")
        return list(self.FACTOR_DEFINITIONS[factor_name]['items'])

    def get_factor_description(self, factor_name: str) -> str:
        return self.FACTOR_DEFINITIONS.get(factor_name, {}).get('description', factor_name)


class FactorModelSpecBuilder:
    """semopy 모델 스펙을 생성하는 클래스"""

    def __init__(self, factor_config: Optional[FactorConfig] = None):
        """모델 스펙 빌더 초기화"""
        self.factor_config = factor_config if factor_config is not None else FactorConfig()

    def create_single_factor_spec(self, factor_name: str,
                                  config: Optional[FactorAnalysisConfig] = None,
                                  items: Optional[List[str]] = None) -> str:
        """
        단일 요인에 대한 semopy 모델 스펙 생성

        Args:
            factor_name (str): 요인 이름
            config (Optional[FactorAnalysisConfig]): 분석 설정 (ordinal, std_lv 반영)
            items (Optional[List[str]]): 문항 목록 (None이면 FactorConfig 사용)

        Returns:
            str: semopy 모델 스펙 문자열
        """
        config = config if config is not None else get_default_config()
        if items is None:
            items = self.factor_config.get_factor_items(factor_name)

        if len(items) < 3:
            raise ValueError(f"{factor_name}: 단일 요인 모델 식별에는 최소 3개 문항이 필요합니다")

        spec_lines = [f"# {factor_name} Factor Model"]

        if config.std_lv:
            # semopy는 라벨 없는 첫 번째 loading을 1로 고정하므로 모든 loading에 라벨을 붙임
            terms = [f"lambda_{item}*{item}" for item in items]
            spec_lines.append(f"{factor_name} =~ " + " + ".join(terms))
            # 잠재변수 분산을 1로 고정하여 모델 식별
            spec_lines.append(f"{factor_name} ~~ 1*{factor_name}")
        else:
            spec_lines.append(f"{factor_name} =~ " + " + ".join(items))

        if config.ordinal:
            spec_lines.append("DEFINE(ordinal) " + " ".join(items))

        return "\n".join(spec_lines)

    def expected_degrees_of_freedom(self, n_items: int) -> int:
        """단일 요인 모델의 자유도: p(p+1)/2 - (loading p개 + 잔차분산 p개)"""
        return n_items * (n_items + 1) // 2 - 2 * n_items


def create_factor_model_spec(single_factor: str = 'academic_motivation',
                             config: Optional[FactorAnalysisConfig] = None,
                             items: Optional[List[str]] = None) -> str:
    """
    Factor 모델 스펙을 생성하는 편의 함수

    Args:
        single_factor (str): 분석할 요인
        config (Optional[FactorAnalysisConfig]): 분석 설정
        items (Optional[List[str]]): 문항 목록

    Returns:
        str: semopy 모델 스펙 문자열
    """
    builder = FactorModelSpecBuilder()
    return builder.create_single_factor_spec(single_factor, config, items)


def get_default_config() -> FactorAnalysisConfig:
    """기본 설정을 반환하는 편의 함수"""
    return FactorAnalysisConfig()


def create_custom_config(**kwargs: Any) -> FactorAnalysisConfig:
    """사용자 정의 설정을 생성하는 편의 함수"""
    return FactorAnalysisConfig(**kwargs)


def setup_logging(log_file: Optional[Path] = None, level: Optional[str] = None) -> None:
    """
    파일 + 콘솔 로깅 설정

    Args:
        log_file (Optional[Path]): 로그 파일 경로 (기본값: LOGGING_CONFIG)
        level (Optional[str]): 로그 레벨
    """
    log_file = Path(log_file) if log_file is not None else LOGGING_CONFIG["factor_analysis_log"]
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level or LOGGING_CONFIG["log_level"]),
        format=LOGGING_CONFIG["log_format"],
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler()
        ],
        force=True
    )
