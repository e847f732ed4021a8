"""Credential store for OAuth state.

Four logical tables live behind a small key-value backend:
- pendingAuth: OAuth params between /authorize and the Google callback (10 min)
- authCodes: one-time authorization codes (10 min)
- googleCredentials: upstream tokens per verified email (no store expiry)
- registeredClients: dynamic client registrations (permanent)

Records in pendingAuth and authCodes carry an ``expires_at`` field. Reads
treat an expired record as absent and delete it on the spot; there is no
background sweep.

Access and refresh tokens are JWTs and are never stored here - they are
validated via signature verification.
"""

import logging
import time
from typing import Optional, Protocol

from starlette.concurrency import run_in_threadpool

from oauth.errors import StorageError
from oauth.models import (
    AuthorizationCode,
    PendingAuthorization,
    RegisteredClient,
    UpstreamCredentials,
)

logger = logging.getLogger(__name__)

PENDING_AUTH = "pendingAuth"
AUTH_CODES = "authCodes"
GOOGLE_CREDENTIALS = "googleCredentials"
REGISTERED_CLIENTS = "registeredClients"

EXPIRING_TABLES = frozenset({PENDING_AUTH, AUTH_CODES})

PENDING_AUTH_TTL_SECONDS = 10 * 60
AUTH_CODE_TTL_SECONDS = 10 * 60


class KeyValueBackend(Protocol):
    """Exact-match get/set/delete over named tables."""

    async def get(self, table: str, key: str) -> Optional[dict]: ...

    async def set(self, table: str, key: str, record: dict) -> None: ...

    async def delete(self, table: str, key: str) -> None: ...


class MemoryBackend:
    """In-process backend. State is lost on restart."""

    def __init__(self):
        self.tables: dict[str, dict[str, dict]] = {}

    async def get(self, table: str, key: str) -> Optional[dict]:
        record = self.tables.get(table, {}).get(key)
        return dict(record) if record is not None else None

    async def set(self, table: str, key: str, record: dict) -> None:
        self.tables.setdefault(table, {})[key] = dict(record)

    async def delete(self, table: str, key: str) -> None:
        self.tables.get(table, {}).pop(key, None)


class SupabaseBackend:
    """Backend storing every table in one Supabase table.

    Expected schema::

        create table oauth_state (
            collection text not null,
            key text not null,
            data jsonb not null,
            primary key (collection, key)
        );

    The supabase client is synchronous, so calls run in the threadpool.
    """

    def __init__(self, supabase_client, table_name: str = "oauth_state"):
        self.supabase = supabase_client
        self.table_name = table_name

    def _table(self):
        return self.supabase.table(self.table_name)

    def _get(self, table: str, key: str) -> Optional[dict]:
        response = (
            self._table()
            .select("data")
            .eq("collection", table)
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0]["data"]

    def _set(self, table: str, key: str, record: dict) -> None:
        self._table().upsert(
            {"collection": table, "key": key, "data": record},
            on_conflict="collection,key",
        ).execute()

    def _delete(self, table: str, key: str) -> None:
        self._table().delete().eq("collection", table).eq("key", key).execute()

    async def get(self, table: str, key: str) -> Optional[dict]:
        try:
            return await run_in_threadpool(self._get, table, key)
        except Exception as e:
            logger.error(f"[STORE] Supabase read from {table} failed: {e}")
            raise StorageError("Storage error") from e

    async def set(self, table: str, key: str, record: dict) -> None:
        try:
            await run_in_threadpool(self._set, table, key, record)
        except Exception as e:
            logger.error(f"[STORE] Supabase write to {table} failed: {e}")
            raise StorageError("Storage error") from e

    async def delete(self, table: str, key: str) -> None:
        try:
            await run_in_threadpool(self._delete, table, key)
        except Exception as e:
            logger.error(f"[STORE] Supabase delete from {table} failed: {e}")
            raise StorageError("Storage error") from e


class CredentialStore:
    """TTL-aware access to the four OAuth tables.

    ``now`` arguments let a request compare every record against a single
    clock reading; they default to the current time.
    """

    def __init__(self, backend: KeyValueBackend):
        self.backend = backend

    async def set(self, table: str, key: str, record: dict) -> None:
        await self.backend.set(table, key, record)

    async def get(self, table: str, key: str, now: int = None) -> Optional[dict]:
        record = await self.backend.get(table, key)
        if record is None:
            return None

        if table in EXPIRING_TABLES:
            now = int(time.time()) if now is None else now
            if now >= record["expires_at"]:
                logger.debug(f"[STORE] Dropping expired record from {table}")
                await self.backend.delete(table, key)
                return None

        return record

    async def delete(self, table: str, key: str) -> None:
        await self.backend.delete(table, key)

    # Pending authorizations (keyed by OAuth state)

    async def set_pending_auth(
        self, state: str, client_id: str, redirect_uri: str, code_challenge: str, now: int
    ) -> PendingAuthorization:
        pending = PendingAuthorization(
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            expires_at=now + PENDING_AUTH_TTL_SECONDS,
        )
        await self.set(PENDING_AUTH, state, pending.model_dump())
        return pending

    async def get_pending_auth(self, state: str, now: int = None) -> Optional[PendingAuthorization]:
        record = await self.get(PENDING_AUTH, state, now)
        return PendingAuthorization(**record) if record else None

    async def delete_pending_auth(self, state: str) -> None:
        await self.delete(PENDING_AUTH, state)

    # Authorization codes

    async def set_auth_code(
        self, code: str, client_id: str, user_id: str, code_challenge: str, now: int
    ) -> AuthorizationCode:
        auth_code = AuthorizationCode(
            client_id=client_id,
            user_id=user_id,
            code_challenge=code_challenge,
            expires_at=now + AUTH_CODE_TTL_SECONDS,
        )
        await self.set(AUTH_CODES, code, auth_code.model_dump())
        return auth_code

    async def get_auth_code(self, code: str, now: int = None) -> Optional[AuthorizationCode]:
        record = await self.get(AUTH_CODES, code, now)
        return AuthorizationCode(**record) if record else None

    async def delete_auth_code(self, code: str) -> None:
        await self.delete(AUTH_CODES, code)

    # Upstream (Google) credentials, keyed by verified email

    async def set_upstream_credentials(self, user_id: str, credentials: UpstreamCredentials) -> None:
        await self.set(GOOGLE_CREDENTIALS, user_id, credentials.model_dump())

    async def get_upstream_credentials(self, user_id: str) -> Optional[UpstreamCredentials]:
        record = await self.get(GOOGLE_CREDENTIALS, user_id)
        return UpstreamCredentials(**record) if record else None

    # Registered clients

    async def set_client(self, client_id: str, client: RegisteredClient) -> None:
        await self.set(REGISTERED_CLIENTS, client_id, client.model_dump())

    async def get_client(self, client_id: str) -> Optional[RegisteredClient]:
        record = await self.get(REGISTERED_CLIENTS, client_id)
        return RegisteredClient(**record) if record else None
