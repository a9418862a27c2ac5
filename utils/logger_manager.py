# v3.1

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

class LoggerManager:
    """
    チューナーアプリ全体のロギングを管理するクラス。
    v3.1: フレーム毎の DEBUG ログがファイルを埋めないよう、既定レベルを INFO に固定。
    """

    @staticmethod
    def setup_logging(log_dir: Path, log_file: str = "tuner.log", level: int = logging.INFO) -> Path:
        """
        ロギング設定を初期化し、ログファイルのパスを返します。
        - ログローテーション: 1MBごと、最大3世代保持。
        - 出力先: ファイル + 標準出力。
        """
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / log_file

        formatter = logging.Formatter(
            fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=1024 * 1024, # 1MB
            backupCount=3,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)

        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        # 既存のハンドラをクリアして追加
        if root_logger.hasHandlers():
            root_logger.handlers.clear()

        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

        # 外部ライブラリのログ抑制
        logging.getLogger('flet').setLevel(logging.WARNING)
        logging.getLogger('flet_core').setLevel(logging.WARNING)

        logging.info("--- Logging System Initialized ---")
        logging.info(f"Log file: {log_path}")
        return log_path
