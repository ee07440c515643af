from .asset_transfer_service import AssetTransferService
from .pending_user_service import PendingUserCleanupService
from .system_api_service import SystemApiService

__all__ = [
    "AssetTransferService",
    "PendingUserCleanupService",
    "SystemApiService",
]
