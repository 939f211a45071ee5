"""
Function/decorators.py

실행 시간 측정, 예외 기록, 네트워크 불변식 검증을 위한 데코레이터 모듈입니다.
"""
from __future__ import annotations

import functools
import logging
import time
import traceback
from typing import Any, Callable, ParamSpec, TypeVar, Optional

P = ParamSpec("P")
R = TypeVar("R")


def _resolve_attr(instance: Any, names: tuple, capability: str) -> Optional[Any]:
    """인스턴스에서 주어진 이름 중 capability 메서드를 가진 첫 번째 속성을 찾습니다."""
    if instance is None:
        return None
    for name in names:
        candidate = getattr(instance, name, None)
        if candidate is not None and hasattr(candidate, capability):
            return candidate
    return None


def _resolve_custom_logger(instance: Any) -> Optional[Any]:
    """
    인스턴스 내부에서 커스텀 로거(log 메서드 보유)를 찾아 반환합니다.

    Args:
        instance (Any): 클래스 인스턴스(self)

    Returns:
        Optional[Any]: 로거 인스턴스 또는 None
    """
    return _resolve_attr(instance, ("_logger", "logger"), "log")


def _emit(custom_logger: Optional[Any], msg: str, level: str) -> None:
    if custom_logger:
        custom_logger.log(msg, level=level)
    else:
        logging.log(logging.getLevelName(level), msg)


def log_execution_time(func: Callable[P, R]) -> Callable[P, R]:
    """
    함수의 시작과 종료 시점을 기록하고 실행 시간을 측정하는 데코레이터입니다.

    Returns:
        Callable: 데코레이트된 함수
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        custom_logger = _resolve_custom_logger(args[0] if args else None)
        func_name = func.__qualname__
        start_time = time.perf_counter()

        _emit(custom_logger, f"▶ [시작] {func_name}", "DEBUG")
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - start_time
        _emit(custom_logger, f"◀ [완료] {func_name} (소요 시간: {elapsed:.4f}초)", "DEBUG")

        return result

    return wrapper


def safe_run(func: Callable[P, R]) -> Callable[P, R]:
    """
    함수 실행 중 발생하는 예외의 Traceback을 로그에 기록하고 예외를 재전파합니다.

    Raises:
        Exception: 원본 함수에서 발생한 예외
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return func(*args, **kwargs)
        except Exception:
            custom_logger = _resolve_custom_logger(args[0] if args else None)
            tb_str = traceback.format_exc()
            _emit(custom_logger, f"'{func.__qualname__}' 실행 중 오류 발생\n[Traceback]\n{tb_str}", "ERROR")
            raise

    return wrapper


def check_network_invariants(func: Callable[P, R]) -> Callable[P, R]:
    """
    반환된 네트워크가 인덱스/좌표 정합성 불변식을 만족하는지 검증합니다.

    인스턴스에 validate 메서드를 가진 `_validator`가 있을 때만 동작하며,
    위반 시 검증기가 던지는 StructuralViolation이 그대로 전파됩니다.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        result = func(*args, **kwargs)
        validator = _resolve_attr(args[0] if args else None, ("_validator",), "validate")
        if validator is not None:
            validator.validate(result)
        return result

    return wrapper
