"""
Service/network_modules/model/reducers.py

여러 노드/간선의 속성을 하나로 합칠 때 사용하는 리듀서 레지스트리와 속성 요약 규칙입니다.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..errors import InvalidArgument

Reducer = Callable[[List[Any]], Any]
ReducerLike = Union[str, Reducer]

IGNORE = "ignore"
RESERVED_COLUMNS = frozenset({"from", "to", "geometry"})


def _present(values: List[Any]) -> List[Any]:
    return [v for v in values if not is_missing(v)]


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _numeric(values: List[Any], func: Callable[[np.ndarray], Any]) -> Any:
    present = _present(values)
    if not present:
        return np.nan
    return func(np.asarray(present, dtype=float)).item()


def _concat(values: List[Any]) -> List[Any]:
    out: List[Any] = []
    for v in values:
        if isinstance(v, (list, tuple)):
            out.extend(v)
        else:
            out.append(v)
    return out


REDUCERS: Dict[str, Reducer] = {
    "first": lambda values: values[0] if values else None,
    "last": lambda values: values[-1] if values else None,
    "sum": lambda values: _numeric(values, np.sum),
    "mean": lambda values: _numeric(values, np.mean),
    "median": lambda values: _numeric(values, np.median),
    "min": lambda values: _numeric(values, np.min),
    "max": lambda values: _numeric(values, np.max),
    "concat": _concat,
}


def is_tracking_column(name: str) -> bool:
    """'.'로 시작하는 인덱스 추적 컬럼인지 확인합니다."""
    return isinstance(name, str) and name.startswith(".")


def combinable_columns(columns: Iterable[str]) -> List[str]:
    """from/to/geometry 및 추적 컬럼을 제외한 속성 컬럼 목록을 반환합니다."""
    return [c for c in columns if c not in RESERVED_COLUMNS and not is_tracking_column(c)]


def resolve_reducer(spec: ReducerLike) -> Optional[Reducer]:
    """리듀서 이름 또는 호출 객체를 실제 함수로 변환합니다. 'ignore'는 None입니다."""
    if callable(spec):
        return spec
    if isinstance(spec, str):
        if spec == IGNORE:
            return None
        if spec in REDUCERS:
            return REDUCERS[spec]
    raise InvalidArgument(f"알 수 없는 리듀서입니다: {spec!r} (허용: {sorted(REDUCERS) + [IGNORE]} 또는 callable)")


@dataclass(frozen=True)
class AttributeSummary:
    """
    속성명별 리듀서 지정과 지정되지 않은 속성에 적용할 기본 리듀서입니다.

    기본 리듀서 'ignore'는 병합 결과에서 해당 속성을 결측값으로 남깁니다.
    """
    rules: Mapping[str, ReducerLike] = field(default_factory=dict)
    default: ReducerLike = IGNORE

    @classmethod
    def coerce(cls, value: Union[None, "AttributeSummary", Mapping[str, ReducerLike], ReducerLike], default: ReducerLike = IGNORE) -> "AttributeSummary":
        """None, 매핑, 단일 리듀서를 AttributeSummary로 정규화합니다."""
        if value is None:
            return cls(default=default)
        if isinstance(value, AttributeSummary):
            return value
        if isinstance(value, Mapping):
            return cls(rules=dict(value), default=default)
        return cls(default=value)

    def validate(self, columns: Sequence[str]) -> None:
        """
        규칙에 적힌 속성명이 실제 속성 컬럼에 있는지, 리듀서가 유효한지 검사합니다.

        Raises:
            InvalidArgument: 존재하지 않는 속성명, 예약 컬럼 지정, 알 수 없는 리듀서
        """
        available = set(combinable_columns(columns))
        for name, spec in self.rules.items():
            if name in RESERVED_COLUMNS or is_tracking_column(name):
                raise InvalidArgument(f"'{name}' 컬럼은 속성 요약 대상이 될 수 없습니다.")
            if name not in available:
                raise InvalidArgument(f"속성 요약 규칙의 '{name}' 컬럼이 존재하지 않습니다. (사용 가능: {sorted(available)})")
            resolve_reducer(spec)
        resolve_reducer(self.default)

    def reduce(self, frame: pd.DataFrame, columns: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        """
        frame의 행들을 속성별 리듀서로 하나의 속성 딕셔너리로 합칩니다.
        """
        names = combinable_columns(columns if columns is not None else frame.columns)
        out: Dict[str, Any] = {}
        for name in names:
            reducer = resolve_reducer(self.rules.get(name, self.default))
            if reducer is None:
                out[name] = None
                continue
            out[name] = reducer(list(frame[name]))
        return out


def _upcast_dtype(dtype: Any, value: Any) -> Optional[Any]:
    """value를 dtype 컬럼에 그대로 담을 수 없으면 바꿀 dtype을 반환합니다. 담을 수 있으면 None."""
    if dtype == object:
        return None
    if isinstance(value, (list, tuple, dict)):
        return object
    missing = is_missing(value)
    real = isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, (bool, np.bool_))
    if pd.api.types.is_bool_dtype(dtype):
        return None if isinstance(value, (bool, np.bool_)) else object
    if pd.api.types.is_integer_dtype(dtype):
        if isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_)):
            return None
        return float if (missing or real) else object
    if pd.api.types.is_float_dtype(dtype):
        return None if (missing or real) else object
    if pd.api.types.is_string_dtype(dtype):
        return None if (missing or isinstance(value, str)) else object
    return None if missing else object


def set_row_values(frame: pd.DataFrame, row: Any, values: Mapping[str, Any]) -> None:
    """
    요약 결과를 frame의 한 행에 기록합니다.

    값이 컬럼 dtype에 맞지 않으면 컬럼을 먼저 넓힙니다. 정수 컬럼에 실수나 결측값이 오면 float,
    리스트나 서로 다른 종류의 값이 오면 object로 바꿉니다.
    """
    for name, value in values.items():
        if name not in frame.columns:
            frame[name] = None
        target = _upcast_dtype(frame[name].dtype, value)
        if target is not None:
            frame[name] = frame[name].astype(target)
        frame.at[row, name] = value
