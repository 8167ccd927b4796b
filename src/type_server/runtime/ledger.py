"""
Registration ledger shared by the protocol adapters.

Each adapter keeps one ledger of the protocol keys it has registered
(``(verb, path)`` for REST, ``(operation kind, field name)`` for GraphQL).
Binding the same action again replaces its registration; another action
claiming a taken key is a conflict.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from type_server.errors import ConflictError
from type_server.specs import ActionDescriptor

logger = logging.getLogger(__name__)

BindingKey = tuple[str, str]


def same_action(left: ActionDescriptor, right: ActionDescriptor) -> bool:
    """True when both descriptors describe the same member with equal options."""
    return (
        left.owner == right.owner
        and left.member_name == right.member_name
        and left == right
    )


class BindingLedger:
    """
    Keys claimed by bound actions for one protocol.

    Example:
        ledger = BindingLedger("rest")
        ledger.claim(("PATCH", "/widget/rename"), descriptor)  # False: new
        ledger.claim(("PATCH", "/widget/rename"), descriptor)  # True: replaced
    """

    def __init__(self, protocol: str) -> None:
        self.protocol = protocol
        self._claims: dict[BindingKey, ActionDescriptor] = {}

    def check(self, key: BindingKey, descriptor: ActionDescriptor) -> bool:
        """
        Check that ``descriptor`` may claim ``key`` without recording it.

        Returns:
            True if the claim would replace an earlier registration of the same action

        Raises:
            ConflictError: if a different action already holds the key
        """
        existing = self._claims.get(key)
        if existing is None:
            return False

        if not same_action(existing, descriptor):
            raise ConflictError(
                f"{self.protocol} {key[0]} {key[1]} is already bound to "
                f"{existing.owner}.{existing.member_name}",
                protocol=self.protocol,
                key=key,
                existing=f"{existing.owner}.{existing.member_name}",
                action=f"{descriptor.owner}.{descriptor.member_name}",
            )
        return True

    def claim(self, key: BindingKey, descriptor: ActionDescriptor) -> bool:
        """
        Record ``descriptor`` under ``key``.

        Returns:
            True if an earlier registration of the same action was replaced

        Raises:
            ConflictError: if a different action already holds the key
        """
        replaced = self.check(key, descriptor)
        if replaced:
            logger.debug("Replacing %s binding %s %s", self.protocol, *key)
        self._claims[key] = descriptor
        return replaced

    def release(self, key: BindingKey) -> None:
        self._claims.pop(key, None)

    def get(self, key: BindingKey) -> ActionDescriptor | None:
        return self._claims.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._claims

    def __iter__(self) -> Iterator[BindingKey]:
        return iter(self._claims)

    def __len__(self) -> int:
        return len(self._claims)
