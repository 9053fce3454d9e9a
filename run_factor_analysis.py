#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
학업동기 단일 요인 순서형 CFA 실행 스크립트

데이터 로딩 -> 모델 적합 -> 적합도/모수 추출 -> 결과 저장 -> 그림 -> 서술형 보고서
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from motivation_cfa import (FactorAnalyzer, FactorResultsExporter, NarrativeReportWriter,
                            create_report_figures, get_default_config, setup_logging)
from motivation_cfa.config import DATA_CONFIG, RESULTS_CONFIG

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ordinal single-factor CFA report")
    parser.add_argument('--data', type=Path, default=DATA_CONFIG["survey_file"],
                        help="응답 데이터 CSV 경로")
    parser.add_argument('--output-dir', type=Path, default=RESULTS_CONFIG["results_dir"],
                        help="결과 저장 디렉토리")
    parser.add_argument('--factor', default='academic_motivation', help="분석할 요인 이름")
    parser.add_argument('--no-figures', action='store_true', help="그림 생성 생략")
    return parser.parse_args(argv)


def print_summary(results: dict) -> None:
    """콘솔 요약 출력"""
    fit = results.get('fit_indices', {})
    loadings = results.get('factor_loadings')

    print('=' * 60)
    print(f"{results.get('factor_description', '')} - Ordinal CFA")
    print('=' * 60)
    print(f"   - 샘플 크기: {results['model_info']['n_observations']}")
    print(f"   - 추정방법: {results['model_info']['estimator']}")

    if fit:
        print(f"\n📈 적합도: chi2({fit['df']}) = {fit['chi2']:.2f}, p = {fit['p_value']:.4f}")
        print(f"   RMSEA = {fit['RMSEA']:.3f} [{fit['RMSEA_CI_Lower']:.3f}, {fit['RMSEA_CI_Upper']:.3f}]")
        print(f"   CFI = {fit['CFI']:.3f}, SRMR = {fit['SRMR']:.3f}")

    if loadings is not None and not loadings.empty:
        print('\n📊 표준화 loading:')
        for _, row in loadings.iterrows():
            print(f"     {row['Item']}: {row['Loading']:.3f} (R2={row['R2']:.3f})")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    logger.info(f"분석 시작: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    config = get_default_config()

    try:
        analyzer = FactorAnalyzer(args.data, config)
        results = analyzer.analyze_single_factor(args.factor)

        output_dir = Path(args.output_dir)
        saved_files = FactorResultsExporter(output_dir).export_comprehensive_results(results)

        figures = None
        if not args.no_figures:
            figures = create_report_figures(results, output_dir / RESULTS_CONFIG["figures_subdir"])

        report_path = NarrativeReportWriter(output_dir).write_report(
            results, analyzer.data, figures, categories=config.response_categories
        )
    except Exception as e:
        logger.error(f"분석 실패: {e}")
        raise

    print_summary(results)
    print(f"\n💾 {len(saved_files)}개 결과 파일 저장, 보고서: {report_path}")
    logger.info("분석 완료")
    return 0


if __name__ == "__main__":
    sys.exit(main())
