"""Recovery code (re)generation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..events import RecoveryCodesGenerated
from ..exceptions import ChallengeFailedError, PreconditionFailedError
from ..inputs import RecoveryCodeInput, validate_input
from ..recovery_codes import RecoveryCodeManager
from .base import SettingsCeremony

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..request import CeremonyRequest

logger = logging.getLogger(__name__)


class RecoveryCodesGeneration(SettingsCeremony):
    """Two-step replacement of the owner's recovery codes.

    A fresh set is kept pending in the session until the owner echoes one of
    its codes back, which shows they stored the set somewhere.
    """

    async def initialize(self, request: CeremonyRequest) -> list[str]:
        """Generate and return a pending set.

        Raises:
            SudoModeRequiredError: When sudo mode is not active.
        """
        await self.sensitive_owner(request)
        codes = RecoveryCodeManager.generate().to_list()
        await self.state(request).set_pending_recovery_codes(codes)
        return codes

    async def pending(self, request: CeremonyRequest) -> list[str]:
        """Return the pending set.

        Raises:
            PreconditionFailedError: When no set is pending.
        """
        await self.owner(request)
        codes = await self.state(request).pending_recovery_codes()
        if not codes:
            raise PreconditionFailedError()
        return codes

    async def confirm(self, request: CeremonyRequest, payload: Mapping[str, Any]) -> None:
        """Persist the pending set.

        Raises:
            ValidationError: When no code was submitted.
            PreconditionFailedError: When no set is pending.
            ChallengeFailedError: When the code is not part of the pending set.
        """
        owner = await self.sensitive_owner(request)
        data = validate_input(RecoveryCodeInput, payload)
        state = self.state(request)
        pending = await state.pending_recovery_codes()
        if not pending:
            raise PreconditionFailedError()

        codes = RecoveryCodeManager.from_list(pending)
        if not codes.contains(data.code):
            raise ChallengeFailedError(credential_type="recovery-code")

        owner.recovery_codes = tuple(codes.to_list())
        await self.owners.save(owner)
        await state.clear_pending_recovery_codes()
        await self.dispatcher.emit(RecoveryCodesGenerated.for_request(request, user_id=owner.id))
        logger.info("Recovery codes replaced for %s", owner.id)


__all__: list[str] = ["RecoveryCodesGeneration"]
