"""MongoDB implementation of AccountStore.

Collections: ``accounts``, ``customers``, ``technicians``.

Each write is one ``find_one_and_update`` whose filter carries the
preconditions (gates, current digest, attempt ceiling, expiry), so two
requests racing on the same account serialize inside MongoDB and the loser
gets ``None`` back. Signup is the only multi-document write and runs in a
transaction.

Driver failures never leak: duplicate keys on signup become ConflictError,
every other PyMongoError (timeouts included) becomes ServiceUnavailableError.
"""

from __future__ import annotations

from datetime import datetime
from functools import wraps
from typing import Any, Optional, Union

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import ConflictError, ServiceUnavailableError
from schemas.models.account import AccountDoc
from schemas.models.profile import CustomerDoc, TechnicianDoc
from schemas.models.token import OtpChallenge, OtpPurpose, RefreshCredential
from shared.logging import get_logger

log = get_logger(__name__)

_LIVE = {"blocked": False, "deleted": False}


def _store_call(fn):
    """Translate driver exceptions raised by *fn* into ServiceUnavailableError."""

    @wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except (ConflictError, ServiceUnavailableError):
            raise
        except PyMongoError as e:
            log.error(
                "credential_store_error",
                operation=fn.__name__,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ServiceUnavailableError(
                "Credential store is unavailable. Please retry."
            ) from e

    return wrapper


def _field(purpose: OtpPurpose) -> str:
    return OtpPurpose(purpose).value


class AccountRepository:
    def __init__(self, db: AsyncDatabase) -> None:
        self._db = db
        self._accounts = db["accounts"]
        self._customers = db["customers"]
        self._technicians = db["technicians"]

    async def _find_one_and_update(
        self, flt: dict, update: dict
    ) -> Optional[AccountDoc]:
        doc = await self._accounts.find_one_and_update(
            flt, update, return_document=ReturnDocument.AFTER
        )
        return AccountDoc.from_mongo(doc)

    # ── Reads ────────────────────────────────────────────────────────────────

    @_store_call
    async def find_by_email(self, email: str) -> Optional[AccountDoc]:
        # Prefer the live account; a soft-deleted one is still returned so the
        # caller can refuse with a gate error instead of treating it as new.
        cursor = self._accounts.find({"email": email}).sort(
            [("deleted", ASCENDING), ("_id", -1)]
        ).limit(1)
        async for doc in cursor:
            return AccountDoc.from_mongo(doc)
        return None

    @_store_call
    async def find_by_id(self, account_id: ObjectId) -> Optional[AccountDoc]:
        return AccountDoc.from_mongo(await self._accounts.find_one({"_id": account_id}))

    @_store_call
    async def find_by_refresh_hash(self, token_hash: str) -> Optional[AccountDoc]:
        return AccountDoc.from_mongo(
            await self._accounts.find_one({"refresh.token_hash": token_hash})
        )

    # ── Writes ───────────────────────────────────────────────────────────────

    @_store_call
    async def create_with_profile(
        self, account: AccountDoc, profile: Union[CustomerDoc, TechnicianDoc]
    ) -> AccountDoc:
        profiles = (
            self._technicians if isinstance(profile, TechnicianDoc) else self._customers
        )

        async def _txn(session) -> ObjectId:
            result = await self._accounts.insert_one(account.to_mongo(), session=session)
            profile.account_id = result.inserted_id
            await profiles.insert_one(profile.to_mongo(), session=session)
            return result.inserted_id

        try:
            async with self._db.client.start_session() as session:
                account_id = await session.with_transaction(_txn)
        except DuplicateKeyError as e:
            # Email registered between the caller's lookup and this insert
            log.warning("account_create_failed", reason="duplicate_email")
            raise ConflictError("Email already registered", field="email") from e

        return account.model_copy(update={"id": account_id})

    @_store_call
    async def replace_challenge(
        self, account_id: ObjectId, purpose: OtpPurpose, challenge: OtpChallenge
    ) -> Optional[AccountDoc]:
        return await self._find_one_and_update(
            {"_id": account_id, **_LIVE},
            {
                "$set": {
                    _field(purpose): challenge.model_dump(),
                    "updated_at": challenge.issued_at,
                }
            },
        )

    @_store_call
    async def record_failed_attempt(
        self,
        account_id: ObjectId,
        purpose: OtpPurpose,
        code_hash: str,
        max_attempts: int,
    ) -> Optional[int]:
        field = _field(purpose)
        doc = await self._find_one_and_update(
            {
                "_id": account_id,
                **_LIVE,
                f"{field}.code_hash": code_hash,
                f"{field}.attempts": {"$lt": max_attempts},
            },
            {"$inc": {f"{field}.attempts": 1}},
        )
        if doc is None:
            return None
        challenge = doc.challenge_for(purpose)
        return challenge.attempts if challenge else None

    @_store_call
    async def consume_challenge(
        self,
        account_id: ObjectId,
        purpose: OtpPurpose,
        code_hash: str,
        now: datetime,
        max_attempts: int,
        updates: dict[str, Any],
    ) -> Optional[AccountDoc]:
        field = _field(purpose)
        return await self._find_one_and_update(
            {
                "_id": account_id,
                **_LIVE,
                f"{field}.code_hash": code_hash,
                f"{field}.expires_at": {"$gt": now},
                f"{field}.attempts": {"$lt": max_attempts},
            },
            {"$set": {field: None, **updates, "updated_at": now}},
        )

    @_store_call
    async def set_refresh(
        self, account_id: ObjectId, credential: RefreshCredential, now: datetime
    ) -> Optional[AccountDoc]:
        return await self._find_one_and_update(
            {"_id": account_id, **_LIVE},
            {
                "$set": {
                    "refresh": credential.model_dump(),
                    "last_login_at": now,
                    "updated_at": now,
                }
            },
        )

    @_store_call
    async def rotate_refresh(
        self,
        account_id: ObjectId,
        old_hash: str,
        credential: RefreshCredential,
        now: datetime,
    ) -> Optional[AccountDoc]:
        return await self._find_one_and_update(
            {
                "_id": account_id,
                **_LIVE,
                "refresh.token_hash": old_hash,
                "refresh.expires_at": {"$gt": now},
            },
            {"$set": {"refresh": credential.model_dump(), "updated_at": now}},
        )

    @_store_call
    async def update_password(
        self, account_id: ObjectId, expected_hash: str, new_hash: str, now: datetime
    ) -> Optional[AccountDoc]:
        return await self._find_one_and_update(
            {"_id": account_id, **_LIVE, "password_hash": expected_hash},
            {"$set": {"password_hash": new_hash, "updated_at": now}},
        )

    # ── Indexes ──────────────────────────────────────────────────────────────

    async def ensure_indexes(self) -> None:
        try:
            await self._accounts.create_index(
                [("email", ASCENDING)],
                unique=True,
                partialFilterExpression={"deleted": False},
                name="email_live_unique",
            )
            await self._accounts.create_index(
                [("refresh.token_hash", ASCENDING)],
                unique=True,
                partialFilterExpression={"refresh.token_hash": {"$type": "string"}},
                name="refresh_token_hash_unique",
            )
            await self._customers.create_index(
                [("account_id", ASCENDING)], unique=True
            )
            await self._technicians.create_index(
                [("account_id", ASCENDING)], unique=True
            )
            log.info("indexes_ensured", collections=["accounts", "customers", "technicians"])
        except PyMongoError as e:
            # Startup continues; unique emails are still re-checked on signup
            log.error("index_creation_failed", error=str(e), error_type=type(e).__name__)
