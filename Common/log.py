import logging
import datetime
import shutil
import os

from Function.utils import get_runtime_base_path

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


class Log:
    def __init__(self, log_dir="Log", console=True, name="sfnet"):
        # 상대 경로는 실행 위치 기준
        base_dir = get_runtime_base_path()
        self.log_dir = os.path.join(base_dir, log_dir)
        os.makedirs(self.log_dir, exist_ok=True)

        # 'Log_YYYYMMDD.log'
        self.log_file = os.path.join(self.log_dir, f'Log_{self._current_date_str()}.log')
        # 작업 로그 사본 'YYYYMMDD_network.log'
        self.target_path = os.path.join(base_dir, f'{self._current_date_str()}_network.log')
        self._console = console

        self._logger = logging.getLogger(name)
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False
        if not any(getattr(h, "baseFilename", None) == os.path.abspath(self.log_file) for h in self._logger.handlers):
            handler = logging.FileHandler(self.log_file, encoding='utf-8')
            handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s', datefmt='%Y/%m/%d %H:%M'))
            self._logger.addHandler(handler)

    def _current_date_str(self):
        return datetime.datetime.now().strftime("%Y%m%d")

    def log(self, msg, level='DEBUG', create_log=False):
        """지정된 로그 레벨로 메시지를 기록하고, 필요시 로그 파일을 복사합니다."""
        level = level.upper()
        if level not in _LEVELS:
            print(f"알 수 없는 로그 레벨: {level}")
            return

        self._logger.log(_LEVELS[level], msg)

        if self._console:
            print(f"{level}: {msg}")

        if create_log:
            self._copy_log()

    def _copy_log(self):
        """로그 파일을 작업 로그 경로로 복사합니다."""
        try:
            shutil.copy(self.log_file, self.target_path)
        except OSError as e:
            print(f"로그 파일 복사 실패: {e}")

    def get_log_paths(self):
        """현재 로그 파일 경로를 반환하는 메서드."""
        return self.log_file
