from .asset_transfer_repository import AssetTransferRepository
from .lock_repository import NamedLockRepository
from .pending_user_repository import PendingUserRepository

__all__ = [
    "AssetTransferRepository",
    "NamedLockRepository",
    "PendingUserRepository",
]
