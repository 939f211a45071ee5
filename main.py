"""
main.py

애플리케이션의 진입점이며 객체 생성 및 의존성 주입(Composition Root)을 담당합니다.
"""
from __future__ import annotations

import argparse
import sys
import traceback
from typing import List, NoReturn, Optional

from Common.log import Log
from Function.log_cleanup import clean_old_logs
from Service.container import build_app


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="선형 레이어로 공간 네트워크를 만들고 위상을 정돈하여 GeoPackage로 저장합니다.")
    parser.add_argument("input", help="입력 선형 파일 (.shp/.gpkg/.geojson)")
    parser.add_argument("--points", required=False, help="네트워크에 블렌딩할 점 파일")
    parser.add_argument("--output-dir", required=False, help="결과 디렉토리 (기본값: 실행 위치/Result)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> NoReturn:
    args = parse_args(argv)
    logger = Log()

    try:
        logger.log("=== 애플리케이션 초기화 시작 ===", level="INFO")

        built = build_app(logger)
        clean_old_logs(logger.log_dir, logger, retention_days=built.config.log_retention_days)

        output_path = built.network_service.run_pipeline(args.input, points_path=args.points, output_dir=args.output_dir)

        logger.log(f"=== 애플리케이션 정상 종료 (결과: {output_path}) ===", level="INFO")
        sys.exit(0)

    except Exception:
        error_msg = traceback.format_exc()
        logger.log(f"실행 중 치명적 오류 발생:\n{error_msg}", level="ERROR")
        sys.exit(1)


if __name__ == "__main__":
    main()
