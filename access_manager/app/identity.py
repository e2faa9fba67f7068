import getpass
import socket
from dataclasses import dataclass

from .entities import Applicant


@dataclass(frozen=True)
class LocalEnvironment:
    """Локальные имя пользователя и имя машины: запасная идентичность без каталога."""

    user_name: str
    machine_name: str

    @classmethod
    def detect(cls) -> "LocalEnvironment":
        return cls(user_name=getpass.getuser(), machine_name=socket.gethostname())

    def fallback_applicant(self) -> Applicant:
        return Applicant(full_name=self.user_name)
