import logging
from typing import Optional

from .settings import settings

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

_configured = False


def configure_logging(log_file: Optional[str] = None, level: Optional[str] = None) -> None:
    """
    Настроить журнал сервиса: файл с отметками времени и вывод в stderr.
    Ошибки записи в журнал обрабатываются Handler.handleError и не влияют на заявки.
    """
    global _configured
    if _configured:
        return

    root = logging.getLogger("access_manager")
    root.setLevel((level or settings.log_level).upper())
    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    path = log_file or settings.log_file
    try:
        file_handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        root.warning("Log file %s is not writable: %s", path, exc)
    else:
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    _configured = True
