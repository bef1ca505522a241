"""Error taxonomy shared by the classifier, assembler and resolver."""

from __future__ import annotations


class UTXONotFoundError(RuntimeError):
    """Raised when a required structural role is absent from an output set."""

    role = "UTXO"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or f"No {self.role} UTXO found")


class ThreadNFTNotFoundError(UTXONotFoundError):
    role = "thread NFT"


class RegistrationCounterNotFoundError(UTXONotFoundError):
    role = "registration counter"


class NameMintingNotFoundError(UTXONotFoundError):
    role = "name minting"


class RunningAuctionNotFoundError(UTXONotFoundError):
    role = "running auction"


class AuthorizedContractNotFoundError(UTXONotFoundError):
    role = "authorized contract"


class ThreadWithTokenNotFoundError(UTXONotFoundError):
    role = "thread-with-token"


class FundingNotFoundError(UTXONotFoundError):
    role = "funding"


class OwnershipNotFoundError(UTXONotFoundError):
    role = "ownership NFT"


class InternalAuthNotFoundError(UTXONotFoundError):
    role = "internal auth NFT"


class ExternalAuthNotFoundError(UTXONotFoundError):
    role = "external auth NFT"


class InvalidInputError(ValueError):
    """Raised when caller-supplied data cannot produce a valid transaction."""


class InvalidNameError(InvalidInputError):
    """Raised when a name contains characters outside ``[A-Za-z0-9-]``."""


class BidTooLowError(InvalidInputError):
    """Raised when a bid does not clear the minimum increase."""

    def __init__(self, amount: int, minimum: int) -> None:
        super().__init__(f"Bid of {amount} sats is below the minimum next bid of {minimum} sats")
        self.amount = amount
        self.minimum = minimum


class AuctionPriceError(InvalidInputError):
    """Raised when an opening bid is below the current auction price."""

    def __init__(self, amount: int, price: int) -> None:
        super().__init__(f"Auction amount {amount} sats is below the current auction price of {price} sats")
        self.amount = amount
        self.price = price


class PenaltyConditionError(InvalidInputError):
    """Raised when a penalty transaction's precondition is not met."""


class InsufficientFundsError(InvalidInputError):
    """Raised when a funding output cannot cover the amount plus fee."""


class RecordTooLargeError(InvalidInputError):
    """Raised when a record does not fit in a single OP_RETURN push."""


class ResolutionError(RuntimeError):
    """Raised when the current holder of a name cannot be determined."""


class NameNotClaimedError(ResolutionError):
    """Raised when a name has no claim transaction on record."""


class AmbiguousOwnershipError(ResolutionError):
    """Raised when more than one address appears to hold the identity token."""

    def __init__(self, candidates: list[str]) -> None:
        super().__init__(
            "Identity token appears at more than one address: " + ", ".join(sorted(candidates))
        )
        self.candidates = candidates


class MalformedCommitmentError(ResolutionError):
    """Raised when a token commitment does not have the expected layout."""


class AddressError(ValueError):
    """Raised when an address or locking bytecode cannot be decoded."""


class TransactionDecodeError(ValueError):
    """Raised when raw transaction bytes cannot be parsed."""


class ArtifactError(RuntimeError):
    """Raised when a covenant artifact is missing or malformed."""


class TokenConservationError(RuntimeError):
    """Raised when a built transaction would create or destroy fungible tokens."""
