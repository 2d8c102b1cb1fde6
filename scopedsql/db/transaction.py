"""Implicit, reentrant transaction demarcation.

The outermost ``transaction()`` on a call chain owns the physical
transaction; nested uses run inline. The first write inside the scope issues
``BEGIN``; the owning scope commits (then notifies clients) or rolls back.

Each coordinator keeps its scope state in its own ``ContextVar``, so it
follows a call chain across ``await`` points but is not shared by unrelated
threads, asyncio tasks or other coordinators (other connections).
"""

from __future__ import annotations

import functools
import inspect
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Notifier(Protocol):
    def notify_all_clients(self) -> None: ...


@dataclass
class ScopeState:
    is_transactional: bool = False
    is_in_transaction: bool = False


class TransactionCoordinator:
    """Decides per logical call whether to BEGIN, COMMIT or ROLLBACK."""

    def __init__(
        self,
        begin: Callable[[], Any],
        commit: Callable[[], Any],
        rollback: Callable[[], Any],
        notifier: Optional[Notifier] = None,
    ):
        self._begin = begin
        self._commit = commit
        self._rollback = rollback
        self.notifier = notifier
        self._scope: ContextVar[Optional[ScopeState]] = ContextVar(
            f"scopedsql_scope_{id(self):x}", default=None
        )

    # -- introspection ---------------------------------------------------------

    def current_scope(self) -> Optional[ScopeState]:
        """The live scope of the calling context, if any."""
        scope = self._scope.get()
        if scope is None or not scope.is_transactional:
            return None
        return scope

    def is_transactional(self) -> bool:
        return self.current_scope() is not None

    def is_in_transaction(self) -> bool:
        scope = self.current_scope()
        return scope is not None and scope.is_in_transaction

    # -- write hook ------------------------------------------------------------

    def begin_if_necessary(self) -> None:
        """Open the physical transaction on the first write of a scope."""
        scope = self.current_scope()
        if scope is None or scope.is_in_transaction:
            return
        self._begin()
        scope.is_in_transaction = True

    # -- scope -----------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[ScopeState]:
        outer = self.current_scope()
        if outer is not None:
            # the enclosing scope owns commit/rollback
            yield outer
            return

        state = ScopeState(is_transactional=True)
        token = self._scope.set(state)
        try:
            yield state
        except BaseException:
            if state.is_in_transaction:
                self._rollback_quietly()
            raise
        else:
            if state.is_in_transaction:
                try:
                    self._commit()
                except Exception:
                    logger.error("COMMIT failed, rolling back")
                    self._rollback_quietly()
                    raise
                self._notify()
        finally:
            state.is_transactional = False
            state.is_in_transaction = False
            self._scope.reset(token)

    def transactional(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``func`` inside a scope. Coroutine functions get an awaitable back."""
        return self.scoped(func)(*args, **kwargs)

    def scoped(self, func: Callable[..., T]) -> Callable[..., T]:
        """Decorator form of :meth:`transactional`."""
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with self.transaction():
                    return await func(*args, **kwargs)
            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            with self.transaction():
                return func(*args, **kwargs)
        return wrapper

    # -- internal --------------------------------------------------------------

    def _rollback_quietly(self) -> None:
        # the caller must see the error that aborted the scope, not this one
        logger.warning("Rolling back transaction")
        try:
            self._rollback()
        except Exception:
            logger.exception("ROLLBACK failed")

    def _notify(self) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify_all_clients()
        except Exception:
            logger.exception("Failed to notify clients after commit")
