"""AccountStore protocol — services depend on this, not the concrete implementation.

Every mutating method is a single conditional write: the preconditions go
into the filter and ``None`` comes back when they no longer hold, so the
caller never performs a separate read-then-write.
"""

from datetime import datetime
from typing import Any, Optional, Protocol, Union

from bson import ObjectId

from schemas.models.account import AccountDoc
from schemas.models.profile import CustomerDoc, TechnicianDoc
from schemas.models.token import OtpChallenge, OtpPurpose, RefreshCredential


class AccountStore(Protocol):
    async def find_by_email(self, email: str) -> Optional[AccountDoc]: ...

    async def find_by_id(self, account_id: ObjectId) -> Optional[AccountDoc]: ...

    async def find_by_refresh_hash(self, token_hash: str) -> Optional[AccountDoc]: ...

    async def create_with_profile(
        self, account: AccountDoc, profile: Union[CustomerDoc, TechnicianDoc]
    ) -> AccountDoc: ...

    async def replace_challenge(
        self, account_id: ObjectId, purpose: OtpPurpose, challenge: OtpChallenge
    ) -> Optional[AccountDoc]: ...

    async def record_failed_attempt(
        self,
        account_id: ObjectId,
        purpose: OtpPurpose,
        code_hash: str,
        max_attempts: int,
    ) -> Optional[int]: ...

    async def consume_challenge(
        self,
        account_id: ObjectId,
        purpose: OtpPurpose,
        code_hash: str,
        now: datetime,
        max_attempts: int,
        updates: dict[str, Any],
    ) -> Optional[AccountDoc]: ...

    async def set_refresh(
        self, account_id: ObjectId, credential: RefreshCredential, now: datetime
    ) -> Optional[AccountDoc]: ...

    async def rotate_refresh(
        self,
        account_id: ObjectId,
        old_hash: str,
        credential: RefreshCredential,
        now: datetime,
    ) -> Optional[AccountDoc]: ...

    async def update_password(
        self, account_id: ObjectId, expected_hash: str, new_hash: str, now: datetime
    ) -> Optional[AccountDoc]: ...
