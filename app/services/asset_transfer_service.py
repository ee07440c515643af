from datetime import datetime
from zoneinfo import ZoneInfo

from app.logger import logger


class AssetTransferService:
    """资产转移生效：把已接收且生效日期已到的转移明细落地到资产归属"""

    def __init__(self, transfer_repo, *, timezone: ZoneInfo):
        self.transfer_repo = transfer_repo
        self.timezone = timezone

    def effectuate_due_transfers(self) -> int:
        now = datetime.now(self.timezone)
        items = self.transfer_repo.list_due_transfer_items(now.date().isoformat())
        if not items:
            logger.info("没有到期待生效的资产转移")
            return 0

        transferred_on = now.strftime("%Y-%m-%d %H:%M:%S")
        processed = 0
        for item in items:
            if self.transfer_repo.apply_transfer_item(item, transferred_on=transferred_on):
                processed += 1
            else:
                logger.info(f"转移明细 {item['id']} 未生效（已被处理或资产缺失），跳过")

        logger.info(f"资产转移生效完成: due={len(items)}, applied={processed}")
        return processed
