"""
Ordinal CFA 패키지

semopy를 이용한 학업동기(academic motivation) 단일 요인 확인적 요인분석 모듈들을 제공합니다.
응답 CSV 파일을 불러와 순서형 CFA를 수행하고, 적합도/모수 추정치를 표와 서술형 보고서로 정리합니다.

Author: Academic Motivation Survey Team
"""

from .config import (FactorAnalysisConfig, FactorConfig, FactorModelSpecBuilder,
                     create_factor_model_spec, create_custom_config, get_default_config,
                     setup_logging)
from .data_loader import (SurveyDataLoader, load_survey_data, check_item_categories,
                          validate_item_categories, get_item_frequencies)
from .factor_analyzer import FactorAnalyzer, SemopyAnalyzer, analyze_factor_loading
from .reliability_calculator import ReliabilityCalculator
from .results_exporter import FactorResultsExporter, export_factor_results
from .report_writer import NarrativeReportWriter, write_narrative_report
from .visualizer import FactorLoadingPlotter, ResidualHeatmapPlotter, create_report_figures

__version__ = "1.0.0"
__author__ = "Academic Motivation Survey Team"

__all__ = [
    # Configuration
    'FactorAnalysisConfig',
    'FactorConfig',
    'FactorModelSpecBuilder',
    'create_factor_model_spec',
    'create_custom_config',
    'get_default_config',
    'setup_logging',

    # Data loading
    'SurveyDataLoader',
    'load_survey_data',
    'check_item_categories',
    'validate_item_categories',
    'get_item_frequencies',

    # Factor analysis
    'FactorAnalyzer',
    'SemopyAnalyzer',
    'analyze_factor_loading',

    # Reliability
    'ReliabilityCalculator',

    # Results export
    'FactorResultsExporter',
    'export_factor_results',
    'NarrativeReportWriter',
    'write_narrative_report',

    # Visualization
    'FactorLoadingPlotter',
    'ResidualHeatmapPlotter',
    'create_report_figures'
]
