"""
Service/config.py

공간 네트워크 위상 엔진의 동작을 제어하는 설정 모듈입니다.
"""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NetworkConfig(BaseSettings):
    """
    위상 변환, 블렌딩, 조인, 경로 탐색의 기본 파라미터를 정의하는 설정 클래스입니다.
    """

    debug_export_intermediate: bool = Field(
        default=False,
        description="디버그 모드: 단계별 중간 네트워크를 Result 폴더에 저장 여부"
    )

    coordinate_tolerance: float = Field(
        default=1e-8,
        ge=0.0,
        description="두 좌표를 같은 점으로 간주하는 최대 거리(ε, 좌표계 단위)"
    )

    default_directed: bool = Field(
        default=True,
        description="선형 데이터로 네트워크를 만들 때 방향 그래프 여부"
    )

    default_attribute_reducer: Literal["ignore", "first", "last", "sum", "mean", "median", "min", "max", "concat"] = Field(
        default="ignore",
        description="속성 요약 규칙이 지정되지 않은 속성에 적용할 기본 리듀서 이름"
    )

    blend_tolerance: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="블렌딩 시 점과 간선 사이의 최대 허용 거리 (None이면 제한 없음)"
    )

    blend_tolerance_unit: Optional[str] = Field(
        default=None,
        description="blend_tolerance의 길이 단위 (None이면 좌표계 단위)"
    )

    blend_allow_duplicates: bool = Field(
        default=False,
        description="이미 점유된 노드 위치에 블렌딩된 점을 중복 노드로 추가할지 여부"
    )

    join_node_policy: Literal["x", "y", "coalesce"] = Field(
        default="x",
        description="조인 시 좌표가 일치한 노드 쌍의 속성 병합 규칙"
    )

    simplify_remove_loops: bool = Field(
        default=True,
        description="단순화 단계에서 루프 간선 제거 여부"
    )

    routing_default_router: Literal["dijkstra", "bellman-ford"] = Field(
        default="dijkstra",
        description="경로 탐색 요청에 라우터가 지정되지 않았을 때 사용할 알고리즘"
    )

    routing_default_weight: Optional[str] = Field(
        default=None,
        description="경로 탐색 가중치로 사용할 간선 속성명 (None이면 간선 길이)"
    )

    log_retention_days: int = Field(
        default=3,
        ge=0,
        description="로그 파일 보관 일수"
    )

    model_config = SettingsConfigDict(
        env_prefix="SFNET_",
        env_file=".env",
        env_file_encoding="utf-8",
    )
