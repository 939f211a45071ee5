"""
Service/network_modules/model/units.py

길이 단위가 붙은 허용치를 네트워크 좌표계 단위로 환산합니다.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError
from pyproj import CRS, get_units_map

from Service.schemas import ToleranceSpec
from ..errors import InvalidArgument

# PROJ 이름/약어에 없을 때 찾아볼 EPSG 단위 이름
_UNIT_ALIASES = {
    "m": "metre",
    "meter": "metre",
    "meters": "metre",
    "metres": "metre",
    "km": "kilometre",
    "kilometer": "kilometre",
    "cm": "centimetre",
    "mm": "millimetre",
    "ft": "foot",
    "feet": "foot",
    "us-ft": "us survey foot",
    "yd": "yard",
    "mi": "statute mile",
    "mile": "statute mile",
    "miles": "statute mile",
}

_TEXT_PATTERN = re.compile(r"^\s*([-+]?\d*\.?\d+(?:[eE][-+]?\d+)?)\s*([A-Za-z\-]*)\s*$")

ToleranceLike = Union[None, float, int, str, Tuple[float, str], ToleranceSpec]


def parse_tolerance(value: ToleranceLike) -> Optional[ToleranceSpec]:
    """
    숫자, (값, 단위) 쌍, '5 m' 형식 문자열, ToleranceSpec을 ToleranceSpec으로 정규화합니다.

    Raises:
        InvalidArgument: 음수, 해석 불가 문자열, 알 수 없는 단위
    """
    if value is None:
        return None
    if isinstance(value, ToleranceSpec):
        spec = value
    else:
        raw: Any
        if isinstance(value, str):
            match = _TEXT_PATTERN.match(value)
            if match is None:
                raise InvalidArgument(f"허용치 문자열을 해석할 수 없습니다: {value!r}")
            raw = {"value": float(match.group(1)), "unit": match.group(2) or None}
        elif isinstance(value, tuple):
            if len(value) != 2:
                raise InvalidArgument(f"허용치는 (값, 단위) 쌍이어야 합니다: {value!r}")
            raw = {"value": value[0], "unit": value[1]}
        else:
            raw = {"value": value}
        try:
            spec = ToleranceSpec(**raw)
        except ValidationError as e:
            raise InvalidArgument(f"잘못된 허용치: {value!r} ({e.errors()[0]['msg']})") from e

    if spec.unit is not None:
        meters_per_unit(spec.unit)
    return spec


def to_crs_units(value: ToleranceLike, crs: Optional[Any]) -> Optional[float]:
    """
    허용치를 좌표계의 축 단위 값으로 환산합니다. None은 '제한 없음'으로 그대로 반환합니다.

    Raises:
        InvalidArgument: 단위가 있으나 좌표계가 없거나 지리 좌표계(도 단위)인 경우
    """
    spec = parse_tolerance(value)
    if spec is None:
        return None
    if spec.unit is None:
        return float(spec.value)

    if crs is None:
        raise InvalidArgument(f"좌표계가 없는 네트워크에는 단위 허용치({spec.unit})를 적용할 수 없습니다.")

    crs = CRS.from_user_input(crs)
    if crs.is_geographic:
        raise InvalidArgument(f"지리 좌표계({crs.name})에는 선형 단위 허용치를 적용할 수 없습니다. 투영 좌표계로 변환하세요.")

    axis_factor = _axis_unit_factor(crs)
    return float(spec.value) * meters_per_unit(spec.unit) / axis_factor


def _axis_unit_factor(crs: CRS) -> float:
    """좌표계 첫 번째 축 단위의 미터 환산 계수를 반환합니다."""
    axes = crs.axis_info
    if not axes:
        return 1.0
    factor = axes[0].unit_conversion_factor
    return float(factor) if factor else 1.0


@lru_cache(maxsize=1)
def _linear_units() -> Dict[str, float]:
    """PROJ 데이터베이스의 선형 단위를 소문자 이름과 PROJ 약어(m, km, us-ft 등)로 찾을 수 있게 모읍니다."""
    table: Dict[str, float] = {}
    for name, unit in get_units_map(category="linear").items():
        table.setdefault(name.lower(), float(unit.conv_factor))
        if unit.proj_short_name:
            table.setdefault(unit.proj_short_name.lower(), float(unit.conv_factor))
    return table


def meters_per_unit(unit: str) -> float:
    """
    길이 단위 1의 미터 값을 반환합니다.

    Raises:
        InvalidArgument: PROJ가 모르는 단위
    """
    units = _linear_units()
    key = unit if unit in units else _UNIT_ALIASES.get(unit, unit)
    if key not in units:
        raise InvalidArgument(f"알 수 없는 길이 단위입니다: {unit} (예: m, km, cm, ft, us-ft, mi)")
    return units[key]
