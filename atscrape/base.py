from abc import ABC, abstractmethod

from .models import Credentials, ScraperConfig, Session, TaskRef


class BaseScraper(ABC):
    """Site adapter: one login handshake plus read-only page fetches.

    Implementations hold no cookie state of their own; every call receives
    the Session (or None) it should act with.
    """

    def __init__(self, config: ScraperConfig | None = None):
        self.config = config or ScraperConfig()

    @property
    @abstractmethod
    def platform_name(self) -> str: ...

    @abstractmethod
    def login(self, credentials: Credentials) -> Session: ...

    @abstractmethod
    def list_tasks(self, contest_id: str, session: Session | None) -> list[TaskRef]: ...

    @abstractmethod
    def fetch_task_page(self, task: TaskRef, session: Session | None) -> str: ...
