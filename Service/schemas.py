"""
Service/schemas.py

파일 입출력 요청과 허용 오차 값의 구조를 정의하고 유효성을 검증하는 스키마 모듈입니다.
"""
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

LOADABLE_SUFFIXES = {".shp", ".gpkg", ".geojson", ".json"}


class FileLoadRequest(BaseModel):
    """
    선형 레이어 로드 요청을 위한 데이터 모델입니다.
    """
    file_path: Path = Field(..., description="읽어올 벡터 파일의 경로")
    layer: Optional[str] = Field(default=None, description="GeoPackage 레이어 이름")

    @field_validator("file_path")
    @classmethod
    def validate_extension(cls, v: Path) -> Path:
        if v.suffix.lower() not in LOADABLE_SUFFIXES:
            raise ValueError(f"지원하지 않는 파일 형식입니다. ({sorted(LOADABLE_SUFFIXES)} 필요): {v.suffix}")
        return v

    @field_validator("file_path")
    @classmethod
    def validate_existence(cls, v: Path) -> Path:
        resolved_path = v.resolve()
        if not resolved_path.exists() or not resolved_path.is_file():
            raise ValueError(f"파일을 찾을 수 없습니다: {resolved_path}")
        return resolved_path


class FileSaveRequest(BaseModel):
    """
    네트워크(nodes/edges 레이어) 저장 요청을 위한 데이터 모델입니다.
    """
    output_path: Path = Field(..., description="결과를 저장할 GeoPackage 경로")

    @field_validator("output_path")
    @classmethod
    def validate_extension(cls, v: Path) -> Path:
        if v.suffix.lower() != ".gpkg":
            raise ValueError(f"저장 파일 형식은 .gpkg여야 합니다: {v.suffix}")
        return v.resolve()


class ToleranceSpec(BaseModel):
    """
    단위가 붙은 거리 허용치입니다. unit이 None이면 좌표계 단위로 해석합니다.
    """
    value: float = Field(..., ge=0.0, description="허용 거리")
    unit: Optional[str] = Field(default=None, description="길이 단위 (m, km, ft 등)")

    @field_validator("unit")
    @classmethod
    def normalize_unit(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None
