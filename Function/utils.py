"""
Function/utils.py

실행 위치 기준 경로 연산과 결과 파일명 생성을 처리하는 유틸리티 모듈입니다.
"""
from pathlib import Path
import sys


def get_runtime_base_path() -> Path:
    """
    실행 파일 또는 메인 스크립트가 위치한 물리적 경로를 반환합니다.

    Returns:
        Path: 프로그램 실행 파일이 위치한 디렉토리 경로
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    if not sys.argv or not sys.argv[0]:
        return Path.cwd()
    return Path(sys.argv[0]).resolve().parent


def build_output_path(output_dir: Path, stem: str, tag: str, suffix: str = ".gpkg") -> Path:
    """
    결과 디렉토리 아래 '<stem>_<tag><suffix>' 형식의 파일 경로를 만듭니다.

    Args:
        output_dir (Path): 결과 디렉토리
        stem (str): 입력 파일 이름(확장자 제외)
        tag (str): 단계 또는 산출물 구분자
        suffix (str): 확장자

    Returns:
        Path: 결과 파일 경로
    """
    safe_tag = tag.strip().replace(" ", "_") or "result"
    return Path(output_dir) / f"{stem}_{safe_tag}{suffix}"
