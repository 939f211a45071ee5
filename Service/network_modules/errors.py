"""
Service/network_modules/errors.py

위상 엔진이 호출자에게 전달하는 예외 유형을 정의합니다.
"""
from __future__ import annotations


class NetworkError(Exception):
    """네트워크 연산 예외의 기본 클래스입니다."""


class StructuralViolation(NetworkError):
    """연산 결과가 노드/간선 정합성 불변식을 깨뜨릴 때 발생합니다. 부분 결과는 반환되지 않습니다."""


class InvalidArgument(NetworkError, ValueError):
    """그룹 벡터, 속성 요약 규칙, 허용 오차 등 입력 인자가 잘못되었을 때 변경 전에 발생합니다."""
