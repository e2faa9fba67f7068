class AccessManagerError(Exception):
    """Базовая ошибка сервиса заявок."""


class DirectoryUnavailable(AccessManagerError):
    """Каталог недоступен: ошибка соединения или запроса."""


class ResourceNotFound(AccessManagerError):
    """Ресурс с указанным именем отсутствует в каталоге."""


class OwnerUnresolvable(AccessManagerError):
    """У ресурса нет managedBy или у владельца нет адреса почты."""


class SubmissionError(AccessManagerError):
    """
    Ошибка уровня отправки заявки.
    Не пробрасывается наружу из RequestSubmitter, а возвращается как результат.
    """

    reason = "submission failed"

    def __init__(self, message: str = ""):
        super().__init__(message or self.reason)


class NoResourcesSelected(SubmissionError):
    reason = "no resources selected"


class NoResolvableOwners(SubmissionError):
    reason = "no resolvable owners"


class DispatchFailure(SubmissionError):
    reason = "dispatch failed"


class PermanentDispatchFailure(DispatchFailure):
    """Письмо не может быть доставлено повторной попыткой (5xx, отказ по адресатам)."""

    reason = "dispatch rejected permanently"


class InvalidSubmissionState(AccessManagerError):
    """Переход конечного автомата отправки из недопустимого состояния."""
