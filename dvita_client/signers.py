"""Signer-set construction for transactions."""

from __future__ import annotations

from typing import Iterable, List, Sequence

from .model import Account, Signer, WitnessScope

# A witness may be used by the entry script and by the listed contracts only.
TRANSFER_SCOPES = WitnessScope.CALLED_BY_ENTRY | WitnessScope.CUSTOM_CONTRACTS


def order_signer_accounts(
    sender: Account, extra: Iterable[Account] | None = None
) -> List[Account]:
    """Return ``sender`` followed by the distinct remaining ``extra`` accounts.

    A sender already present in ``extra`` is moved to the front rather than
    duplicated; the relative order of every other account is kept.
    """

    ordered = [sender]
    seen = {sender}
    for account in extra or ():
        if account in seen:
            continue
        seen.add(account)
        ordered.append(account)
    return ordered


def build_signer_set(
    sender: Account,
    extra: Iterable[Account] | None,
    allowed_contracts: Sequence[Account],
) -> List[Signer]:
    """Build the signer list for a transaction sent by ``sender``."""

    allow_list = tuple(dict.fromkeys(allowed_contracts))
    if not allow_list:
        raise ValueError("Signers need at least one allowed contract")
    return [
        Signer(account=account, scopes=TRANSFER_SCOPES, allowed_contracts=allow_list)
        for account in order_signer_accounts(sender, extra)
    ]
