"""P2P Disputes

The dispute record exchanged between peers of a peer-to-peer trading network,
together with its versioned wire/storage encoding.

Architecture:
    disputes/
    ├── __init__.py       # Package entry, version, public API
    ├── core.py           # Primitives: sha256, canonical JSON, base64url, timestamps
    ├── errors.py         # Error hierarchy
    ├── config.py         # YAML/env configuration
    ├── observability.py  # Logging setup and dispute context
    ├── notifier.py       # Observable values and lists
    ├── crypto.py         # Key rings and contract signatures
    ├── models.py         # Contract, direct messages, dispute result
    ├── dispute.py        # The dispute record
    ├── schema.py         # JSON Schema validation per network version
    ├── codec.py          # Versioned encode/decode
    ├── storage.py        # DisputeList and file-backed persistence
    └── cli.py            # Command-line interface
"""

__version__ = "0.2.0"

from disputes.errors import (
    DisputeError,
    DuplicateMessageError,
    UnboundMutationError,
    DecodeError,
    IncompatibleEncodingError,
    PartialDecodeError,
)

from disputes.crypto import (
    PubKeyRing,
    KeyRing,
    sign_contract,
    verify_contract_signature,
)

from disputes.models import (
    Contract,
    Attachment,
    DisputeDirectMessage,
    DisputeResult,
    FeePolicy,
    Winner,
)

from disputes.notifier import (
    ObservableValue,
    ObservableList,
    ReadOnlyObservable,
    ReadOnlyObservableList,
    SubscriberError,
)

from disputes.dispute import (
    Dispute,
    PersistenceTrigger,
    make_dispute_id,
)

from disputes.codec import (
    P2P_NETWORK_VERSION,
    SUPPORTED_NETWORK_VERSIONS,
    encode_dispute,
    decode_dispute,
    encode_dispute_list,
    decode_dispute_list,
    dispute_digest,
    DecodeFailure,
    DisputeListDecodeResult,
)

from disputes.storage import (
    DisputeList,
    FileStorage,
)

__all__ = [
    "__version__",
    # Errors
    "DisputeError",
    "DuplicateMessageError",
    "UnboundMutationError",
    "DecodeError",
    "IncompatibleEncodingError",
    "PartialDecodeError",
    # Crypto
    "PubKeyRing",
    "KeyRing",
    "sign_contract",
    "verify_contract_signature",
    # Models
    "Contract",
    "Attachment",
    "DisputeDirectMessage",
    "DisputeResult",
    "FeePolicy",
    "Winner",
    # Notifier
    "ObservableValue",
    "ObservableList",
    "ReadOnlyObservable",
    "ReadOnlyObservableList",
    "SubscriberError",
    # Dispute
    "Dispute",
    "PersistenceTrigger",
    "make_dispute_id",
    # Codec
    "P2P_NETWORK_VERSION",
    "SUPPORTED_NETWORK_VERSIONS",
    "encode_dispute",
    "decode_dispute",
    "encode_dispute_list",
    "decode_dispute_list",
    "dispute_digest",
    "DecodeFailure",
    "DisputeListDecodeResult",
    # Storage
    "DisputeList",
    "FileStorage",
]
