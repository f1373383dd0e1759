"""CLI 入口模块 -- python -m fieldops.core <command>

支持的命令：
  cleanup-notifications [days]  删除 N 天前创建的已读通知（默认 30）
  purge-expired                 删除已过期的通知
"""

import asyncio
import sys
from datetime import UTC, datetime, timedelta

from .config import NOTIFICATION_RETENTION_DAYS, get_db_path

_USAGE = """用法: python -m fieldops.core <command>
命令:
  cleanup-notifications [days]  删除 N 天前创建的已读通知
  purge-expired                 删除已过期的通知"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "cleanup-notifications":
        days = NOTIFICATION_RETENTION_DAYS
        if len(sys.argv) > 2:
            try:
                days = int(sys.argv[2])
            except ValueError:
                print(f"天数必须是整数: {sys.argv[2]}")
                sys.exit(1)
        asyncio.run(cleanup_notifications(days))
    elif command == "purge-expired":
        asyncio.run(purge_expired())
    else:
        print(f"未知命令: {command}")
        print("可用命令: cleanup-notifications, purge-expired")
        sys.exit(1)


async def cleanup_notifications(days: int) -> int:
    """删除 days 天前创建的已读通知"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        cutoff = datetime.now(UTC) - timedelta(days=days)
        deleted = await store_group.notification_store.delete_read_before(cutoff)
        print(f"清理完成，删除 {deleted} 条已读通知（{days} 天前）")
        return deleted
    finally:
        await store_group.conn.close()


async def purge_expired() -> int:
    """删除已过期的通知"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        deleted = await store_group.notification_store.delete_expired(datetime.now(UTC))
        print(f"清理完成，删除 {deleted} 条过期通知")
        return deleted
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
