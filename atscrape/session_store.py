import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from .errors import StoreCorruptError, StoreIOError
from .models import Session

logger = logging.getLogger(__name__)

SESSION_FILE_ENV = "ATSCRAPE_SESSION_FILE"


def default_session_path() -> Path:
    override = os.environ.get(SESSION_FILE_ENV)
    if override:
        return Path(override).expanduser()
    cache = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(cache) / "atscrape" / "session.json"


class SessionStore:
    """Persists a Session as JSON; writes are atomic via rename."""

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path) if path is not None else default_session_path()

    def load(self) -> Session | None:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreIOError(f"Cannot read session file {self.path}: {e}") from e

        try:
            session = Session.model_validate_json(raw)
        except ValidationError as e:
            raise StoreCorruptError(
                f"Session file {self.path} is corrupt: {e.error_count()} errors"
            ) from e

        if not session.is_complete():
            logger.warning(
                "Discarding incomplete or expired session from %s", self.path
            )
            return None
        return session

    def save(self, session: Session) -> None:
        data = session.model_dump_json(indent=2)
        tmp_name = None
        try:
            self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=".session-", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise StoreIOError(f"Cannot write session file {self.path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
        logger.info("Saved session to %s", self.path)

    def clear(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StoreIOError(f"Cannot remove session file {self.path}: {e}") from e
        return True
