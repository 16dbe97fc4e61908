"""DVITA name resolution and token transfer client."""

from .amounts import ScaleConversionError, format_amount, scale_amount
from .identifiers import (
    ClassificationMismatch,
    IdentifierKind,
    RESOLUTION_PRECEDENCE,
    is_domain_name,
    is_social_handle,
    is_yes,
)
from .model import (
    Account,
    AssetDescriptor,
    InvocationOutcome,
    Signer,
    TransactionDraft,
    VMState,
    WitnessScope,
    parse_account,
)
from .pipeline import (
    Aborted,
    ContractCall,
    DraftBuildFailure,
    InvocationFault,
    PipelineError,
    RelayFailure,
    Relayed,
    SigningFailure,
    TransactionPipeline,
)
from .resolver import AccountTarget, HandleTarget, NameResolver, ResolutionFailure
from .signers import build_signer_set

__all__ = [
    "Aborted",
    "Account",
    "AccountTarget",
    "AssetDescriptor",
    "ClassificationMismatch",
    "ContractCall",
    "DraftBuildFailure",
    "HandleTarget",
    "IdentifierKind",
    "InvocationFault",
    "InvocationOutcome",
    "NameResolver",
    "PipelineError",
    "RESOLUTION_PRECEDENCE",
    "RelayFailure",
    "Relayed",
    "ResolutionFailure",
    "ScaleConversionError",
    "Signer",
    "SigningFailure",
    "TransactionDraft",
    "TransactionPipeline",
    "VMState",
    "WitnessScope",
    "build_signer_set",
    "format_amount",
    "is_domain_name",
    "is_social_handle",
    "is_yes",
    "parse_account",
    "scale_amount",
]
