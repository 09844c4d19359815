import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..config.config import settings


def setup_logging(level: int = logging.INFO):
    """
    Uygulama genelinde kullanılacak olan merkezi loglama yapılandırmasını kurar.

    Loglar hem konsola hem de 5MB'ı geçtiğinde dönen bir dosyaya yazılır.
    Log klasörü LOG_DIR ayarından okunur ve yoksa oluşturulur.
    """
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Zaman - Modül Adı - Seviye - Mesaj
    log_format = "%(asctime)s - [%(name)s] - %(levelname)s - %(message)s"

    logger = logging.getLogger()
    logger.setLevel(level)

    # Uvicorn'un varsayılan handler'larını temizleyerek kendi formatımızı zorunlu kılıyoruz.
    if logger.hasHandlers():
        logger.handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(stdout_handler)

    file_handler = RotatingFileHandler(
        log_dir / "happypath.log",
        maxBytes=5*1024*1024,  # 5 MB
        backupCount=5
    )
    file_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(file_handler)

    # apscheduler her job çalışmasını INFO seviyesinde yazıyor, sadece uyarıları görelim
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
