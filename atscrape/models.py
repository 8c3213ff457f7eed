import re
import time
from datetime import datetime, timezone
from enum import Enum

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)

REQUIRED_COOKIES = frozenset({"REVEL_SESSION"})
CONTEST_ID_RE = re.compile(r"^[a-z0-9_-]{1,64}$")
CONTEST_URL_RE = re.compile(r"/contests/([^/?#]+)")


def parse_contest_id(raw: str) -> str:
    s = raw.strip()
    m = CONTEST_URL_RE.search(s)
    if m:
        s = m.group(1)
    s = s.lower()
    if not CONTEST_ID_RE.match(s):
        raise ValueError(f"Invalid contest id: {raw!r}")
    return s


class LoginMode(str, Enum):
    LOGGED_IN = "logged_in"
    LOGGED_IN_CACHED = "logged_in_cached"
    NO_LOGIN = "no_login"


class Credentials(BaseModel):
    username: str = Field(min_length=1)
    password: SecretStr

    model_config = ConfigDict(extra="forbid", frozen=True)


class Cookie(BaseModel):
    name: str
    value: str
    domain: str = ""
    path: str = "/"
    expires: int | None = None
    secure: bool = True

    model_config = ConfigDict(extra="forbid", frozen=True)

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires is None:
            return False
        return self.expires <= (time.time() if now is None else now)


class Session(BaseModel):
    """Authenticated cookie set, immutable once issued."""

    cookies: list[Cookie]
    issued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(extra="forbid", frozen=True)

    def is_complete(self, now: float | None = None) -> bool:
        live = {c.name for c in self.cookies if not c.is_expired(now)}
        return bool(self.cookies) and REQUIRED_COOKIES <= live

    def cookie_dict(self) -> dict[str, str]:
        return {c.name: c.value for c in self.cookies}


class TaskRef(BaseModel):
    label: str = Field(min_length=1)
    url: str
    name: str = ""

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("label")
    @classmethod
    def _upper_label(cls, v: str) -> str:
        return v.strip().upper()


class SamplePair(BaseModel):
    index: int = Field(ge=1)
    input: str = Field(min_length=1)
    output: str = Field(min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)


class TaskBundle(BaseModel):
    task: TaskRef
    samples: list[SamplePair] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def has_samples(self) -> bool:
        return bool(self.samples)


class ContestBundle(BaseModel):
    contest_id: str
    tasks: list[TaskBundle] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("contest_id")
    @classmethod
    def _valid_contest_id(cls, v: str) -> str:
        return parse_contest_id(v)

    @model_validator(mode="after")
    def _unique_labels(self) -> "ContestBundle":
        labels = [t.task.label for t in self.tasks]
        if len(labels) != len(set(labels)):
            raise ValueError(f"Duplicate task labels in {self.contest_id}: {labels}")
        return self

    @property
    def labels(self) -> list[str]:
        return [t.task.label for t in self.tasks]


class ScrapingResult(BaseModel):
    success: bool
    error: str

    model_config = ConfigDict(extra="forbid")


class ScrapeResult(ScrapingResult):
    bundle: ContestBundle | None = None
    warnings: list[str] = Field(default_factory=list)
    cancelled: bool = False

    model_config = ConfigDict(extra="forbid")


class ScraperConfig(BaseModel):
    timeout_connect_seconds: float = 10.0
    timeout_read_seconds: float = 30.0
    max_tries: int = Field(default=3, ge=1)
    backoff_base: float = 2.0
    backoff_factor: float = 1.0
    backoff_max_seconds: float = 30.0
    jitter: bool = True
    max_concurrency: int = Field(default=4, ge=1, le=8)
    language: str = Field(default="en", pattern=r"^(en|ja)$")

    model_config = ConfigDict(extra="forbid")

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.timeout_connect_seconds, self.timeout_read_seconds)
