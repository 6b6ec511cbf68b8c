"""order_tickets: order-ticket lifecycle for a chat food-ordering bot.

Usage:
    from order_tickets import Settings, TicketDesk, create_store
    from order_tickets.infra.telegram import TelegramGateway

    settings = Settings.from_env()
    store = create_store("sqlite", db_path=settings.db_path)
    desk = TicketDesk(TelegramGateway(settings.bot_token), store, store, settings)
    outcome = desk.next_ticket(42)
"""

from .app.desk import TicketDesk
from .config import Settings
from .domain.models import Outcome, SourceMessage, Stage
from .domain.ports import PersistenceStore

_REGISTRY: dict[str, type] = {}


def _ensure_registry() -> None:
    """Lazily populate the registry on first use."""
    if _REGISTRY:
        return
    from .infra.memory import InMemoryStore
    from .infra.sqlite import SqliteStore

    _REGISTRY["memory"] = InMemoryStore
    _REGISTRY["sqlite"] = SqliteStore


def create_store(kind: str, **kwargs) -> PersistenceStore:
    """Create a PersistenceStore adapter.

    Args:
        kind: Store name ('memory' or 'sqlite').
        **kwargs: Passed to the store constructor.

    Raises:
        ValueError: If the store kind is not supported.
    """
    _ensure_registry()
    cls = _REGISTRY.get(kind.lower())
    if cls is None:
        supported = ", ".join(sorted(_REGISTRY))
        raise ValueError(
            f"Unsupported store: {kind!r}. Supported: {supported}"
        )
    return cls(**kwargs)


__all__ = [
    "Outcome",
    "PersistenceStore",
    "Settings",
    "SourceMessage",
    "Stage",
    "TicketDesk",
    "create_store",
]
