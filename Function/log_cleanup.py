"""
Function/log_cleanup.py

보관 기간이 지난 'Log_YYYYMMDD.log' 파일을 삭제하는 모듈입니다.
"""
import datetime
from pathlib import Path

RETENTION_DAYS = 3


def _parse_log_date(file_name: str):
    """'Log_YYYYMMDD*.log' 파일명에서 날짜를 추출합니다. 형식이 다르면 None."""
    if not file_name.startswith("Log_"):
        return None
    date_part = file_name[4:12]
    if not date_part.isdigit():
        return None
    return datetime.datetime.strptime(date_part, "%Y%m%d")


def clean_old_logs(log_dir, logger, retention_days=RETENTION_DAYS, now=None):
    """
    지정된 디렉토리 내에서 보관 기간이 만료된 로그 파일을 찾아 삭제합니다.

    Args:
        log_dir (str | Path): 로그 파일이 저장된 디렉토리 경로
        logger (Log): 로그 기록을 위한 로거 인스턴스
        retention_days (int): 보관 일수
        now (datetime | None): 기준 시각 (기본값: 현재 시각)

    Returns:
        int: 삭제된 파일 수
    """
    log_path = Path(log_dir)
    if not log_path.exists():
        logger.log(f"로그 디렉토리 없음: {log_path} (삭제 과정 생략)", level="WARNING")
        return 0

    now = now or datetime.datetime.now()
    removed = 0

    for file_path in log_path.iterdir():
        if not file_path.is_file():
            continue
        try:
            file_date = _parse_log_date(file_path.name)
        except ValueError:
            logger.log(f"잘못된 로그 파일 형식 (삭제 스킵): {file_path.name}", level="WARNING")
            continue
        if file_date is None:
            continue

        if (now - file_date).days > retention_days:
            try:
                file_path.unlink()
            except OSError as e:
                logger.log(f"로그 파일 삭제 실패: {file_path.name} ({e})", level="WARNING")
                continue
            removed += 1
            logger.log(f"오래된 로그 파일 삭제: {file_path.name}", level="INFO")

    return removed
