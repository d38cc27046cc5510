"""
The hosted backend the dashboard talks to.

Every view goes through a :class:`Backend`: generic table calls
(select/insert/update/delete/upsert with filters), object storage, auth and a
change feed. ``SupabaseBackend`` is the production implementation and
``InMemoryBackend`` keeps the same contract in process for tests and local
development.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
import secrets
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Callable
from typing import Iterable

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string
from supabase import ClientOptions
from supabase import acreate_client
from supabase import create_client


logger = logging.getLogger(__name__)

ChangeCallback = Callable[[dict[str, Any]], None]


class BackendError(Exception):
    def __init__(self, message: str, *, code: str = "backend_error") -> None:
        super().__init__(message)
        self.message = message
        self.code = code


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def is_in(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", list(values))


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    user: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "user": dict(self.user),
        }

    @classmethod
    def from_dict(cls, data: Any) -> AuthSession | None:
        if not isinstance(data, dict):
            return None
        access_token = str(data.get("access_token") or "")
        user = data.get("user")
        if not access_token or not isinstance(user, dict) or not user.get("id"):
            return None
        return cls(
            access_token=access_token,
            refresh_token=str(data.get("refresh_token") or ""),
            user={"id": str(user.get("id")), "email": str(user.get("email") or "")},
        )


class Subscription:
    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel = cancel
        self._lock = threading.Lock()
        self.active = True

    def unsubscribe(self) -> None:
        with self._lock:
            if not self.active:
                return
            self.active = False
        self._cancel()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_message(exc: BaseException) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message.strip():
        return message.strip()
    text = str(exc).strip()
    return text or exc.__class__.__name__


def _change_event(table: str, payload: Any) -> dict[str, Any]:
    raw = payload if isinstance(payload, dict) else {}
    data = raw.get("data") if isinstance(raw.get("data"), dict) else raw
    event = data.get("eventType") or data.get("type") or ""
    return {
        "table": table,
        "eventType": str(event).upper(),
        "new": data.get("new") or data.get("record") or {},
        "old": data.get("old") or data.get("old_record") or {},
    }


class Backend:
    """Generic request/response and subscription client."""

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Iterable[Filter] = (),
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    def insert(self, table: str, rows: dict[str, Any] | list[dict[str, Any]]) -> list[dict[str, Any]]:
        raise NotImplementedError

    def update(
        self, table: str, values: dict[str, Any], *, filters: Iterable[Filter]
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    def delete(self, table: str, *, filters: Iterable[Filter]) -> list[dict[str, Any]]:
        raise NotImplementedError

    def upsert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
        *,
        on_conflict: str,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    def upload_file(
        self,
        bucket: str,
        path: str,
        content: bytes,
        *,
        content_type: str,
        upsert: bool = False,
    ) -> str:
        raise NotImplementedError

    def public_url(self, bucket: str, path: str) -> str:
        raise NotImplementedError

    def remove_files(self, bucket: str, paths: list[str]) -> None:
        raise NotImplementedError

    def sign_in(self, email: str, password: str) -> AuthSession:
        raise NotImplementedError

    def sign_out(self, session: AuthSession) -> None:
        raise NotImplementedError

    def get_user(self, access_token: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        raise NotImplementedError

    def bind(self, session: AuthSession | None) -> Backend:
        return self

    def first(
        self, table: str, *, filters: Iterable[Filter], columns: str = "*"
    ) -> dict[str, Any] | None:
        rows = self.select(table, columns=columns, filters=filters, limit=1)
        return rows[0] if rows else None


def _as_rows(rows: dict[str, Any] | list[dict[str, Any]]) -> list[dict[str, Any]]:
    if isinstance(rows, dict):
        return [rows]
    return [r for r in rows if isinstance(r, dict)]


def _matches(row: dict[str, Any], filters: Iterable[Filter]) -> bool:
    for f in filters:
        value = row.get(f.column)
        if f.op == "eq":
            if value != f.value:
                return False
        elif f.op == "neq":
            if value == f.value:
                return False
        elif f.op == "in":
            if value not in f.value:
                return False
        elif f.op in {"gte", "lte"}:
            if value is None:
                return False
            try:
                ok = value >= f.value if f.op == "gte" else value <= f.value
            except TypeError:
                return False
            if not ok:
                return False
        else:
            raise BackendError(f"Unsupported filter operator: {f.op}")
    return True


class InMemoryBackend(Backend):
    def __init__(self, *, public_base: str = "http://localhost:54321") -> None:
        self.public_base = public_base.rstrip("/")
        self._lock = threading.RLock()
        self._tables: dict[str, list[dict[str, Any]]] = {}
        self._objects: dict[str, dict[str, tuple[bytes, str]]] = {}
        self._users: dict[str, dict[str, Any]] = {}
        self._tokens: dict[str, str] = {}
        self._subscribers: dict[str, list[ChangeCallback]] = {}
        self._failures: dict[tuple[str, str], str] = {}
        for email, password in (getattr(settings, "DASHBOARD_MEMORY_USERS", None) or {}).items():
            self.add_user(str(email), str(password))

    # Test and seeding helpers.

    def add_user(self, email: str, password: str, *, user_id: str | None = None) -> dict[str, Any]:
        user = {"id": user_id or str(uuid.uuid4()), "email": email}
        with self._lock:
            self._users[email.lower()] = {**user, "password": password}
        return user

    def fail(self, operation: str, table: str, message: str) -> None:
        """Make every ``operation`` on ``table`` raise until :meth:`recover`."""
        with self._lock:
            self._failures[(operation, table)] = message

    def recover(self) -> None:
        with self._lock:
            self._failures.clear()

    def rows(self, table: str) -> list[dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._tables.get(table, []))

    def stored_object(self, bucket: str, path: str) -> tuple[bytes, str] | None:
        with self._lock:
            return self._objects.get(bucket, {}).get(path)

    def objects(self, bucket: str) -> list[str]:
        with self._lock:
            return sorted(self._objects.get(bucket, {}))

    def _check(self, operation: str, table: str) -> None:
        message = self._failures.get((operation, table))
        if message:
            raise BackendError(message)

    def _notify(self, table: str, events: list[dict[str, Any]]) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(table, []))
        for event in events:
            for callback in callbacks:
                try:
                    callback(event)
                except Exception:
                    logger.exception("Change subscriber failed", extra={"table": table})

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Iterable[Filter] = (),
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        filters = list(filters)
        with self._lock:
            self._check("select", table)
            rows = [r for r in self._tables.get(table, []) if _matches(r, filters)]
            rows = copy.deepcopy(rows)
        if order:
            rows.sort(
                key=lambda r: (r.get(order) is None, r.get(order) if r.get(order) is not None else ""),
                reverse=descending,
            )
        if limit is not None:
            rows = rows[: max(0, int(limit))]
        if columns.strip() != "*":
            wanted = [c.strip() for c in columns.split(",") if c.strip()]
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        return rows

    def insert(self, table: str, rows: dict[str, Any] | list[dict[str, Any]]) -> list[dict[str, Any]]:
        created: list[dict[str, Any]] = []
        with self._lock:
            self._check("insert", table)
            bucket = self._tables.setdefault(table, [])
            for row in _as_rows(rows):
                now = _now_iso()
                record = copy.deepcopy(row)
                record.setdefault("id", str(uuid.uuid4()))
                record.setdefault("created_at", now)
                record.setdefault("updated_at", now)
                bucket.append(record)
                created.append(copy.deepcopy(record))
        self._notify(table, [{"table": table, "eventType": "INSERT", "new": r, "old": {}} for r in created])
        return created

    def update(
        self, table: str, values: dict[str, Any], *, filters: Iterable[Filter]
    ) -> list[dict[str, Any]]:
        filters = list(filters)
        events: list[dict[str, Any]] = []
        changed: list[dict[str, Any]] = []
        with self._lock:
            self._check("update", table)
            for record in self._tables.get(table, []):
                if not _matches(record, filters):
                    continue
                old = copy.deepcopy(record)
                record.update(copy.deepcopy(values))
                changed.append(copy.deepcopy(record))
                events.append({"table": table, "eventType": "UPDATE", "new": copy.deepcopy(record), "old": old})
        self._notify(table, events)
        return changed

    def delete(self, table: str, *, filters: Iterable[Filter]) -> list[dict[str, Any]]:
        filters = list(filters)
        with self._lock:
            self._check("delete", table)
            kept: list[dict[str, Any]] = []
            removed: list[dict[str, Any]] = []
            for record in self._tables.get(table, []):
                (removed if _matches(record, filters) else kept).append(record)
            self._tables[table] = kept
        self._notify(table, [{"table": table, "eventType": "DELETE", "new": {}, "old": r} for r in removed])
        return copy.deepcopy(removed)

    def upsert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
        *,
        on_conflict: str,
    ) -> list[dict[str, Any]]:
        keys = [k.strip() for k in on_conflict.split(",") if k.strip()]
        out: list[dict[str, Any]] = []
        for row in _as_rows(rows):
            match = [eq(k, row.get(k)) for k in keys]
            if self.select(table, filters=match, limit=1):
                out.extend(self.update(table, row, filters=match))
            else:
                out.extend(self.insert(table, row))
        return out

    def upload_file(
        self,
        bucket: str,
        path: str,
        content: bytes,
        *,
        content_type: str,
        upsert: bool = False,
    ) -> str:
        with self._lock:
            self._check("upload", bucket)
            objects = self._objects.setdefault(bucket, {})
            if path in objects and not upsert:
                raise BackendError("The resource already exists", code="duplicate")
            objects[path] = (bytes(content), content_type)
        return self.public_url(bucket, path)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base}/storage/v1/object/public/{bucket}/{path}"

    def remove_files(self, bucket: str, paths: list[str]) -> None:
        with self._lock:
            self._check("remove", bucket)
            objects = self._objects.get(bucket, {})
            for path in paths:
                objects.pop(path, None)

    def sign_in(self, email: str, password: str) -> AuthSession:
        with self._lock:
            user = self._users.get(email.strip().lower())
            if not user or user.get("password") != password:
                raise BackendError("Invalid login credentials", code="invalid_credentials")
            token = secrets.token_urlsafe(24)
            self._tokens[token] = user["id"]
        return AuthSession(
            access_token=token,
            refresh_token=secrets.token_urlsafe(24),
            user={"id": user["id"], "email": user["email"]},
        )

    def sign_out(self, session: AuthSession) -> None:
        with self._lock:
            self._tokens.pop(session.access_token, None)

    def get_user(self, access_token: str) -> dict[str, Any] | None:
        with self._lock:
            user_id = self._tokens.get(access_token)
            if not user_id:
                return None
            for user in self._users.values():
                if user["id"] == user_id:
                    return {"id": user["id"], "email": user["email"]}
        return None

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        with self._lock:
            self._subscribers.setdefault(table, []).append(callback)

        def cancel() -> None:
            with self._lock:
                callbacks = self._subscribers.get(table, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return Subscription(cancel)

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscribers.get(table, []))


class _RealtimeFeed:
    """One async client on a private event loop thread, shared by all subscriptions."""

    def __init__(self, url: str, key: str) -> None:
        self._url = url
        self._key = key
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="backend-realtime", daemon=True)
        self._lock = threading.Lock()
        self._client: Any = None
        self._names = itertools.count(1)

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _ensure_started(self) -> None:
        with self._lock:
            if not self._thread.is_alive():
                self._thread.start()

    async def _get_client(self) -> Any:
        if self._client is None:
            self._client = await acreate_client(self._url, self._key)
        return self._client

    async def _subscribe(self, table: str, callback: ChangeCallback) -> Any:
        client = await self._get_client()
        channel = client.channel(f"{table}-changes-{next(self._names)}")
        channel.on_postgres_changes(
            "*",
            schema="public",
            table=table,
            callback=lambda payload: callback(_change_event(table, payload)),
        )
        await channel.subscribe()
        return channel

    async def _unsubscribe(self, channel: Any) -> None:
        client = await self._get_client()
        await client.remove_channel(channel)

    def subscribe(self, table: str, callback: ChangeCallback, *, timeout: float = 10.0) -> Subscription:
        self._ensure_started()
        future = asyncio.run_coroutine_threadsafe(self._subscribe(table, callback), self._loop)
        try:
            channel = future.result(timeout=timeout)
        except Exception as exc:
            future.cancel()
            raise BackendError(_error_message(exc)) from exc

        def cancel() -> None:
            done = asyncio.run_coroutine_threadsafe(self._unsubscribe(channel), self._loop)
            try:
                done.result(timeout=timeout)
            except Exception:
                logger.warning("Realtime unsubscribe failed", extra={"table": table}, exc_info=True)

        return Subscription(cancel)


_feeds: dict[tuple[str, str], _RealtimeFeed] = {}
_feeds_lock = threading.Lock()


def _realtime_feed(url: str, key: str) -> _RealtimeFeed:
    with _feeds_lock:
        feed = _feeds.get((url, key))
        if feed is None:
            feed = _RealtimeFeed(url, key)
            _feeds[(url, key)] = feed
        return feed


_FILTER_METHODS = {"eq": "eq", "neq": "neq", "in": "in_", "gte": "gte", "lte": "lte"}


class SupabaseBackend(Backend):
    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        *,
        session: AuthSession | None = None,
    ) -> None:
        self.url = url or getattr(settings, "SUPABASE_URL", "")
        self.key = key or getattr(settings, "SUPABASE_KEY", "")
        if not self.url or not self.key:
            raise ImproperlyConfigured("SUPABASE_URL and SUPABASE_KEY are required for SupabaseBackend.")
        self.session = session
        self._client: Any = None

    @property
    def client(self) -> Any:
        if self._client is None:
            options = ClientOptions(auto_refresh_token=False, persist_session=False)
            client = create_client(self.url, self.key, options=options)
            if self.session:
                # Table and storage clients are built lazily from these headers,
                # so row level policies see the signed-in user.
                client.options.headers["Authorization"] = f"Bearer {self.session.access_token}"
            self._client = client
        return self._client

    def bind(self, session: AuthSession | None) -> Backend:
        if session is None:
            return self
        return SupabaseBackend(self.url, self.key, session=session)

    def _execute(self, action: str, table: str, query: Any) -> list[dict[str, Any]]:
        try:
            response = query.execute()
        except Exception as exc:
            logger.warning(
                "Backend call failed",
                extra={"action": action, "table": table, "error": _error_message(exc)},
            )
            raise BackendError(_error_message(exc)) from exc
        data = getattr(response, "data", None)
        if data is None:
            return []
        return data if isinstance(data, list) else [data]

    def _filtered(self, query: Any, filters: Iterable[Filter]) -> Any:
        for f in filters:
            method = _FILTER_METHODS.get(f.op)
            if not method:
                raise BackendError(f"Unsupported filter operator: {f.op}")
            query = getattr(query, method)(f.column, f.value)
        return query

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Iterable[Filter] = (),
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        query = self._filtered(self.client.table(table).select(columns), filters)
        if order:
            query = query.order(order, desc=descending)
        if limit is not None:
            query = query.limit(int(limit))
        return self._execute("select", table, query)

    def insert(self, table: str, rows: dict[str, Any] | list[dict[str, Any]]) -> list[dict[str, Any]]:
        return self._execute("insert", table, self.client.table(table).insert(rows))

    def update(
        self, table: str, values: dict[str, Any], *, filters: Iterable[Filter]
    ) -> list[dict[str, Any]]:
        query = self._filtered(self.client.table(table).update(values), filters)
        return self._execute("update", table, query)

    def delete(self, table: str, *, filters: Iterable[Filter]) -> list[dict[str, Any]]:
        query = self._filtered(self.client.table(table).delete(), filters)
        return self._execute("delete", table, query)

    def upsert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
        *,
        on_conflict: str,
    ) -> list[dict[str, Any]]:
        query = self.client.table(table).upsert(rows, on_conflict=on_conflict)
        return self._execute("upsert", table, query)

    def upload_file(
        self,
        bucket: str,
        path: str,
        content: bytes,
        *,
        content_type: str,
        upsert: bool = False,
    ) -> str:
        options = {
            "content-type": content_type,
            "cache-control": "3600",
            "upsert": "true" if upsert else "false",
        }
        try:
            self.client.storage.from_(bucket).upload(path, content, file_options=options)
        except Exception as exc:
            logger.warning(
                "Storage upload failed",
                extra={"bucket": bucket, "path": path, "error": _error_message(exc)},
            )
            raise BackendError(_error_message(exc)) from exc
        return self.public_url(bucket, path)

    def public_url(self, bucket: str, path: str) -> str:
        return str(self.client.storage.from_(bucket).get_public_url(path)).rstrip("?")

    def remove_files(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        try:
            self.client.storage.from_(bucket).remove(list(paths))
        except Exception as exc:
            raise BackendError(_error_message(exc)) from exc

    def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            res = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            raise BackendError(_error_message(exc), code="invalid_credentials") from exc
        session = getattr(res, "session", None)
        user = getattr(res, "user", None)
        if not session or not user:
            raise BackendError("Invalid login credentials", code="invalid_credentials")
        return AuthSession(
            access_token=session.access_token,
            refresh_token=session.refresh_token or "",
            user={"id": str(user.id), "email": str(user.email or "")},
        )

    def sign_out(self, session: AuthSession) -> None:
        try:
            self.client.auth.admin.sign_out(session.access_token)
        except Exception as exc:
            raise BackendError(_error_message(exc)) from exc

    def get_user(self, access_token: str) -> dict[str, Any] | None:
        try:
            res = self.client.auth.get_user(access_token)
        except Exception as exc:
            logger.info("Token rejected by auth service", extra={"error": _error_message(exc)})
            return None
        user = getattr(res, "user", None)
        if not user:
            return None
        return {"id": str(user.id), "email": str(user.email or "")}

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        return _realtime_feed(self.url, self.key).subscribe(table, callback)


_backend: Backend | None = None
_backend_lock = threading.Lock()


def get_backend() -> Backend:
    global _backend
    if _backend is None:
        with _backend_lock:
            if _backend is None:
                backend_cls = import_string(settings.DASHBOARD_BACKEND)
                _backend = backend_cls()
    return _backend


def use_backend(backend: Backend | None) -> None:
    global _backend
    with _backend_lock:
        _backend = backend
