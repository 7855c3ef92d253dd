"""Password change."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..events import PasswordChanged
from ..exceptions import ValidationError
from ..inputs import ChangePasswordInput, validate_input
from .base import SettingsCeremony

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..config import CeremonyConfig
    from ..dispatcher import EventDispatcher
    from ..ports import IOwnerRepository, IPasswordHasher
    from ..request import CeremonyRequest
    from ..session import ISessionStore
    from ..sudo import SudoModeGuard

logger = logging.getLogger(__name__)


class ChangePassword(SettingsCeremony):
    """Replaces the password of a password account."""

    password_only = True

    def __init__(
        self,
        sessions: ISessionStore,
        owners: IOwnerRepository,
        hasher: IPasswordHasher,
        sudo: SudoModeGuard,
        dispatcher: EventDispatcher,
        config: CeremonyConfig,
    ) -> None:
        super().__init__(sessions, owners, sudo, dispatcher)
        self.hasher = hasher
        self.config = config

    async def update(self, request: CeremonyRequest, payload: Mapping[str, Any]) -> None:
        """Verify the current password and store the new one.

        Raises:
            PasswordRequiredError: For passkey accounts.
            SudoModeRequiredError: When sudo mode is not active.
            ValidationError: When the input is malformed or the current
                password is wrong.
        """
        owner = await self.sensitive_owner(request)
        data = validate_input(
            ChangePasswordInput,
            payload,
            context={"password_min_length": self.config.password_min_length},
        )
        if not owner.password_hash or not self.hasher.verify(
            owner.password_hash, data.current_password
        ):
            raise ValidationError(
                {"current_password": ["The provided password does not match our records."]}
            )

        owner.password_hash = self.hasher.hash(data.new_password)
        await self.owners.save(owner)
        await self.dispatcher.emit(PasswordChanged.for_request(request, user_id=owner.id))
        logger.info("Password changed for %s", owner.id)


__all__: list[str] = ["ChangePassword"]
